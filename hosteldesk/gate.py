"""Status-gated booking actions.

Every list and detail view decides which buttons to offer from the booking's
``status`` and ``payment_status`` pair only. Dates never block an action; they
only produce warnings shown next to the check-in and check-out forms.
"""
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional

from .schemas import Booking, BookingStatus, PaymentStatus

_CANCELLABLE = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})
_PAYABLE = frozenset({PaymentStatus.PENDING, PaymentStatus.PARTIAL})

_STATUS_TONES = {
    BookingStatus.PENDING: "warning",
    BookingStatus.CONFIRMED: "info",
    BookingStatus.CHECKED_IN: "success",
    BookingStatus.CHECKED_OUT: "neutral",
    BookingStatus.CANCELLED: "danger",
    BookingStatus.NO_SHOW: "danger",
}

_PAYMENT_TONES = {
    PaymentStatus.PENDING: "warning",
    PaymentStatus.PARTIAL: "warning",
    PaymentStatus.PAID: "success",
    PaymentStatus.OVERDUE: "danger",
    PaymentStatus.REFUNDED: "neutral",
}


@dataclass(frozen=True)
class BookingActions:
    confirm: bool = False
    cancel: bool = False
    record_payment: bool = False
    check_in: bool = False
    check_out: bool = False
    write_review: bool = False

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class BookingGate:
    actions: BookingActions
    check_in_warnings: List[str] = field(default_factory=list)
    check_out_warnings: List[str] = field(default_factory=list)


def _today() -> date:
    return datetime.now(timezone.utc).date()


def parse_day(value: str) -> date:
    """Calendar day of an API date, accepting plain dates and ISO timestamps."""
    normalized = value.strip()
    if normalized.endswith("Z"):
        normalized = normalized[:-1] + "+00:00"
    if len(normalized) == 10:
        return date.fromisoformat(normalized)
    dt = datetime.fromisoformat(normalized)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.date()


def can_write_review(status: BookingStatus, has_review: bool = False) -> bool:
    return status == BookingStatus.CHECKED_OUT and not has_review


def allowed_actions(
    status: BookingStatus,
    payment_status: PaymentStatus,
    has_review: bool = False,
) -> BookingActions:
    return BookingActions(
        confirm=status == BookingStatus.PENDING,
        cancel=status in _CANCELLABLE,
        record_payment=payment_status in _PAYABLE,
        check_in=status == BookingStatus.CONFIRMED and payment_status == PaymentStatus.PAID,
        check_out=status == BookingStatus.CHECKED_IN,
        write_review=can_write_review(status, has_review),
    )


def check_in_warnings(booking: Booking, today: Optional[date] = None) -> List[str]:
    today = today or _today()
    warnings: List[str] = []
    if booking.payment_status != PaymentStatus.PAID:
        warnings.append("Payment is not fully completed")
    try:
        check_in = parse_day(booking.check_in_date)
    except ValueError:
        return warnings
    if check_in > today:
        warnings.append("Check-in date is in the future")
    days_late = (today - check_in).days
    if days_late > 1:
        warnings.append(f"Check-in is {days_late} days late")
    return warnings


def check_out_warnings(booking: Booking, today: Optional[date] = None) -> List[str]:
    today = today or _today()
    warnings: List[str] = []
    try:
        check_out = parse_day(booking.check_out_date)
    except ValueError:
        return warnings
    if check_out > today:
        warnings.append("Early check-out - scheduled date not reached")
    days_late = (today - check_out).days
    if days_late > 0:
        warnings.append(f"Check-out is {days_late} days late")
    return warnings


def evaluate(booking: Booking, today: Optional[date] = None) -> BookingGate:
    today = today or _today()
    return BookingGate(
        actions=allowed_actions(booking.status, booking.payment_status, booking.has_review),
        check_in_warnings=check_in_warnings(booking, today),
        check_out_warnings=check_out_warnings(booking, today),
    )


def status_badge(status: BookingStatus) -> str:
    return _STATUS_TONES.get(status, "neutral")


def payment_badge(status: PaymentStatus) -> str:
    return _PAYMENT_TONES.get(status, "neutral")
