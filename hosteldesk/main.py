import logging
from typing import Optional

from fastapi import Cookie, Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .auth import context_from_session, delete_session, get_session, login
from .backend import BackendClient
from .bookings import (
    MutationInProgress,
    booking_view,
    cancel_booking,
    check_in_booking,
    check_out_booking,
    confirm_booking,
    get_booking,
    hostel_bookings,
    list_bookings,
    record_payment,
    summarize,
)
from .config import API_BASE_URL, DATABASE_PATH, FRONTEND_ORIGINS, POLICY_PATH
from .dashboard import build_dashboard
from .db import create_connection, get_db, init_db
from .errors import BackendError, ErrorKind, PaymentValidationError
from .payments import payment_requirement, quick_amounts, remaining_after
from .policy import load_policy
from .schemas import (
    BookingsResponse,
    BookingView,
    CancelRequest,
    CheckInRequest,
    CheckOutRequest,
    ConfirmRequest,
    LoginRequest,
    LoginResponse,
    PaymentRequest,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
)

app = FastAPI(title="Hostel Desk")
logger = logging.getLogger(__name__)

origins = [origin.strip() for origin in FRONTEND_ORIGINS.split(",") if origin.strip()]
if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.on_event("startup")
def startup() -> None:
    conn = create_connection(DATABASE_PATH)
    try:
        init_db(conn)
        load_policy()
        logger.info(
            "Config API_BASE_URL=%s POLICY_PATH=%s DATABASE_PATH=%s",
            API_BASE_URL,
            "set" if bool(POLICY_PATH) else "missing",
            DATABASE_PATH,
        )
    finally:
        conn.close()


@app.exception_handler(BackendError)
def backend_error_handler(request: Request, exc: BackendError):
    return JSONResponse(
        status_code=exc.http_status,
        content={"detail": exc.message, "kind": exc.kind.value},
    )


@app.exception_handler(PaymentValidationError)
def payment_error_handler(request: Request, exc: PaymentValidationError):
    return JSONResponse(
        status_code=422,
        content={"detail": "invalid_payment", "errors": exc.errors},
    )


@app.exception_handler(MutationInProgress)
def mutation_in_progress_handler(request: Request, exc: MutationInProgress):
    return JSONResponse(status_code=409, content={"detail": "mutation_in_progress"})


def get_backend_factory():
    return BackendClient


def require_session(
    session: str = Cookie(default=""),
    conn=Depends(get_db),
):
    data = get_session(conn, session)
    if data is None:
        raise HTTPException(status_code=401, detail="unauthorized")
    return data


def get_auth(session=Depends(require_session)):
    return context_from_session(session)


def get_backend(
    auth=Depends(get_auth),
    conn=Depends(get_db),
    factory=Depends(get_backend_factory),
):
    backend = factory(with_auth=auth.with_auth)
    try:
        yield backend
    except BackendError as exc:
        if exc.kind in (ErrorKind.SESSION_EXPIRED, ErrorKind.INVALID_TOKEN):
            delete_session(conn, auth.session_token)
            logger.info("Dropped session for user %s after %s", auth.user_id, exc.kind.value)
        raise


@app.post("/login", response_model=LoginResponse)
def login_route(
    payload: LoginRequest,
    response: Response,
    conn=Depends(get_db),
    factory=Depends(get_backend_factory),
):
    result = login(conn, factory(), payload.email.strip(), payload.password)
    response.set_cookie("session", result["token"], httponly=True, samesite="lax")
    return LoginResponse(user_id=result["user_id"], role=result["role"], dashboard_url="/dashboard")


@app.post("/logout")
def logout(response: Response, session: str = Cookie(default=""), conn=Depends(get_db)):
    delete_session(conn, session)
    response.delete_cookie("session")
    return {"status": "ok"}


@app.get("/session")
def get_session_state(session=Depends(require_session)):
    return {
        "status": "ok",
        "user_id": session["user_id"],
        "role": session["role"],
        "expires_at": session["expires_at"],
    }


@app.get("/bookings", response_model=BookingsResponse)
def bookings_index(
    page: int = 1,
    limit: int = 20,
    search: Optional[str] = None,
    status: Optional[str] = None,
    payment_status: Optional[str] = None,
    hostel_id: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
    active_only: bool = False,
    auth=Depends(get_auth),
    backend=Depends(get_backend),
):
    filters = {
        "page": page,
        "limit": limit,
        "search": search,
        "status": status,
        "paymentStatus": payment_status,
        # Hostel-scoped operators see their own hostel unless they ask for another.
        "hostelId": hostel_id or auth.hostel_id,
        "sortBy": sort_by,
        "sortOrder": sort_order.upper() if sort_order else None,
    }
    return list_bookings(backend, filters, active_only=active_only)


@app.get("/bookings/{booking_id}", response_model=BookingView)
def booking_detail(booking_id: str, backend=Depends(get_backend)):
    return booking_view(get_booking(backend, booking_id))


@app.get("/bookings/{booking_id}/payment-requirement")
def booking_payment_requirement(booking_id: str, backend=Depends(get_backend)):
    booking = get_booking(backend, booking_id)
    requirement = payment_requirement(booking)
    quick_amounts_due = quick_amounts(booking.amount_due)
    return {
        "minimum_required": requirement.minimum_required,
        "meets_requirement": requirement.meets_requirement,
        "days_until_auto_cancel": requirement.days_until_auto_cancel,
        "description": requirement.description,
        "quick_amounts": quick_amounts_due,
        "remaining_after": {
            label: remaining_after(booking.amount_due, amount)
            for label, amount in quick_amounts_due.items()
        },
    }


@app.post("/bookings/{booking_id}/confirm", response_model=BookingView)
def confirm(booking_id: str, payload: ConfirmRequest, backend=Depends(get_backend)):
    return booking_view(confirm_booking(backend, booking_id, payload.notes))


@app.post("/bookings/{booking_id}/cancel", response_model=BookingView)
def cancel(booking_id: str, payload: CancelRequest, backend=Depends(get_backend)):
    reason = payload.reason.strip()
    if not reason:
        raise HTTPException(status_code=400, detail="reason_required")
    return booking_view(cancel_booking(backend, booking_id, reason, payload.notes))


@app.post("/bookings/{booking_id}/check-in", response_model=BookingView)
def check_in(booking_id: str, payload: CheckInRequest, backend=Depends(get_backend)):
    body = payload.model_dump(by_alias=True)
    return booking_view(check_in_booking(backend, booking_id, body))


@app.post("/bookings/{booking_id}/check-out", response_model=BookingView)
def check_out(booking_id: str, payload: CheckOutRequest, backend=Depends(get_backend)):
    if payload.cleaning_fee < 0 or payload.deposit_refund < 0:
        raise HTTPException(status_code=400, detail="negative_amount")
    body = payload.model_dump(by_alias=True)
    return booking_view(check_out_booking(backend, booking_id, body))


@app.post("/bookings/{booking_id}/payments", response_model=BookingView)
def payments(booking_id: str, payload: PaymentRequest, backend=Depends(get_backend)):
    booking = get_booking(backend, booking_id)
    updated = record_payment(
        backend,
        booking,
        payload.amount,
        payload.payment_method,
        payload.transaction_ref,
        payload.notes,
    )
    return booking_view(updated)


@app.get("/hostels/{hostel_id}/summary")
def hostel_summary(hostel_id: str, backend=Depends(get_backend)):
    return summarize(hostel_bookings(backend, hostel_id))


@app.get("/dashboard")
def dashboard(backend=Depends(get_backend)):
    data = build_dashboard(backend)
    data["recent_bookings"] = [
        booking.model_dump(by_alias=True) for booking in data["recent_bookings"]
    ]
    return data


@app.get("/health")
def health():
    return {"status": "ok"}
