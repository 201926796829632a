import logging
import threading
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from pydantic import ValidationError

from .errors import BackendError, ErrorKind
from .gate import evaluate, payment_badge, status_badge
from .payments import ensure_valid_payment
from .policy import PaymentPolicy
from .schemas import Booking, BookingStatus, PaymentStatus

logger = logging.getLogger(__name__)

# Rows the booking-management view hides from its active list.
INACTIVE_STATUSES = frozenset({BookingStatus.CHECKED_OUT, BookingStatus.CANCELLED})

DEFAULT_PAGINATION = {"page": 1, "limit": 20, "total": 0, "totalPages": 1}


class MutationInProgress(RuntimeError):
    pass


_in_flight: set = set()
_in_flight_lock = threading.Lock()


@contextmanager
def mutation_guard(booking_id: str) -> Iterator[None]:
    """Allow one mutation per booking at a time."""
    with _in_flight_lock:
        if booking_id in _in_flight:
            raise MutationInProgress("mutation_in_progress")
        _in_flight.add(booking_id)
    try:
        yield
    finally:
        with _in_flight_lock:
            _in_flight.discard(booking_id)


def parse_booking(payload: Any) -> Booking:
    if isinstance(payload, dict) and "booking" in payload and isinstance(payload["booking"], dict):
        payload = payload["booking"]
    try:
        return Booking.model_validate(payload)
    except ValidationError as exc:
        logger.warning(
            "Malformed booking in API response id=%s: %s", _item_id(payload), exc.error_count()
        )
        raise BackendError(ErrorKind.SERVER, 200, "Malformed booking in API response") from exc


def _parse_many(items: Any) -> List[Booking]:
    if not isinstance(items, list):
        return []
    bookings = []
    for item in items:
        try:
            bookings.append(Booking.model_validate(item))
        except ValidationError:
            logger.warning("Skipping malformed booking payload id=%s", _item_id(item))
    return bookings


def _item_id(item: Any) -> Any:
    return item.get("id") if isinstance(item, dict) else None


def booking_view(booking: Booking, today: Optional[date] = None) -> Dict[str, Any]:
    gate = evaluate(booking, today)
    return {
        "booking": booking,
        "actions": gate.actions.as_dict(),
        "check_in_warnings": gate.check_in_warnings,
        "check_out_warnings": gate.check_out_warnings,
        "status_badge": status_badge(booking.status),
        "payment_badge": payment_badge(booking.payment_status),
    }


def list_bookings(
    backend,
    filters: Optional[Dict[str, Any]] = None,
    active_only: bool = False,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    data = backend.get("/bookings", params=filters or {})
    if isinstance(data, list):
        items, pagination = data, dict(DEFAULT_PAGINATION, total=len(data))
    elif isinstance(data, dict):
        items = data.get("bookings") or data.get("data") or []
        pagination = data.get("pagination") or DEFAULT_PAGINATION
    else:
        items, pagination = [], DEFAULT_PAGINATION

    bookings = _parse_many(items)
    hidden = 0
    if active_only:
        visible = [b for b in bookings if b.status not in INACTIVE_STATUSES]
        hidden = len(bookings) - len(visible)
        bookings = visible
    return {
        "bookings": [booking_view(b, today) for b in bookings],
        "pagination": pagination,
        "hidden_on_page": hidden,
    }


def get_booking(backend, booking_id: str) -> Booking:
    return parse_booking(backend.get(f"/bookings/{booking_id}"))


def hostel_bookings(backend, hostel_id: str) -> List[Booking]:
    return _parse_many(backend.get(f"/bookings/hostel/{hostel_id}") or [])


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _with_action_time(body: Dict[str, Any], key: str) -> Dict[str, Any]:
    # Minute precision, the format of a datetime-local input.
    if body.get(key):
        return body
    return dict(body, **{key: _now().strftime("%Y-%m-%dT%H:%M")})


def _mutate(backend, booking_id: str, action: str, body: Dict[str, Any]) -> Booking:
    with mutation_guard(booking_id):
        logger.info("Submitting %s for booking %s", action, booking_id)
        data = backend.post(f"/bookings/{booking_id}/{action}", body)
    return parse_booking(data)


def confirm_booking(backend, booking_id: str, notes: Optional[str] = None) -> Booking:
    return _mutate(backend, booking_id, "confirm", {"notes": notes})


def cancel_booking(backend, booking_id: str, reason: str, notes: Optional[str] = None) -> Booking:
    return _mutate(backend, booking_id, "cancel", {"reason": reason, "notes": notes})


def check_in_booking(backend, booking_id: str, body: Dict[str, Any]) -> Booking:
    body = _with_action_time(body, "actualCheckInTime")
    return _mutate(backend, booking_id, "check-in", body)


def check_out_booking(backend, booking_id: str, body: Dict[str, Any]) -> Booking:
    body = _with_action_time(body, "actualCheckOutTime")
    return _mutate(backend, booking_id, "check-out", body)


def record_payment(
    backend,
    booking: Booking,
    amount: Any,
    payment_method: Any,
    transaction_ref: Optional[str] = None,
    notes: Optional[str] = None,
    policy: Optional[PaymentPolicy] = None,
) -> Booking:
    """Validate locally, then post the payment and return the new snapshot.

    Raises PaymentValidationError without touching the network when the
    amount or reference is unacceptable.
    """
    ensure_valid_payment(amount, payment_method, transaction_ref, booking.amount_due, policy)
    method = getattr(payment_method, "value", payment_method)
    body = {
        "amount": float(amount),
        "paymentMethod": str(method).strip().lower(),
        "transactionRef": transaction_ref.strip() if transaction_ref else None,
        "notes": notes or None,
    }
    return _mutate(backend, booking.id, "payments", body)


def summarize(bookings: List[Booking]) -> Dict[str, Any]:
    counts = {status.value: 0 for status in BookingStatus}
    total_revenue = 0.0
    paid_revenue = 0.0
    for booking in bookings:
        counts[booking.status.value] += 1
        if booking.status == BookingStatus.CANCELLED:
            continue
        total_revenue += booking.total_amount
        paid_revenue += booking.amount_paid
    outstanding = sum(
        1
        for b in bookings
        if b.payment_status in (PaymentStatus.PENDING, PaymentStatus.PARTIAL, PaymentStatus.OVERDUE)
        and b.status != BookingStatus.CANCELLED
    )
    return {
        "total": len(bookings),
        "by_status": counts,
        "total_revenue": round(total_revenue, 2),
        "paid_revenue": round(paid_revenue, 2),
        "pending_revenue": round(total_revenue - paid_revenue, 2),
        "outstanding_payments": outstanding,
    }
