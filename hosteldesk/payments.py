import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .errors import PaymentValidationError
from .gate import parse_day
from .policy import PaymentPolicy, get_policy
from .schemas import Booking, PaymentMethod

MIN_AMOUNT = 0.01


@dataclass(frozen=True)
class PaymentRequirement:
    minimum_required: float
    meets_requirement: bool
    days_until_auto_cancel: int
    description: str


def _to_amount(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        amount = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            amount = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(amount) or math.isinf(amount):
        return None
    return amount


def _to_method(value: Any) -> Optional[PaymentMethod]:
    if isinstance(value, PaymentMethod):
        return value
    if not isinstance(value, str):
        return None
    try:
        return PaymentMethod(value.strip().lower())
    except ValueError:
        return None


def validate_payment(
    amount: Any,
    method: Any,
    transaction_ref: Optional[str],
    amount_due: float,
    policy: Optional[PaymentPolicy] = None,
) -> Dict[str, str]:
    """Return field errors for a payment about to be recorded.

    An empty dict means the payment may be submitted. These checks mirror the
    form guards of the operator UI; the hostel API still has the final say.
    """
    policy = policy or get_policy()
    errors: Dict[str, str] = {}

    value = _to_amount(amount)
    if value is None or value <= 0:
        errors["amount"] = "Amount must be greater than 0"
    elif value < MIN_AMOUNT:
        errors["amount"] = "Amount must be at least 0.01"
    elif value > amount_due:
        errors["amount"] = "Amount cannot exceed amount due"

    payment_method = _to_method(method)
    if payment_method is None:
        errors["payment_method"] = "Payment method is required"
    elif payment_method in policy.electronic_methods:
        if not isinstance(transaction_ref, str) or not transaction_ref.strip():
            errors["transaction_ref"] = "Transaction reference is required for this payment method"
    return errors


def ensure_valid_payment(
    amount: Any,
    method: Any,
    transaction_ref: Optional[str],
    amount_due: float,
    policy: Optional[PaymentPolicy] = None,
) -> None:
    errors = validate_payment(amount, method, transaction_ref, amount_due, policy)
    if errors:
        raise PaymentValidationError(errors)


def quick_amounts(amount_due: float) -> Dict[str, float]:
    return {
        "full": amount_due,
        "half": round(amount_due / 2, 2),
        "quarter": round(amount_due * 0.25, 2),
    }


def remaining_after(amount_due: float, amount: float) -> float:
    return round(amount_due - amount, 2)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _days_until(value: Optional[str], now: datetime, default: int) -> int:
    if not value:
        return default
    normalized = value.strip()
    if normalized.endswith("Z"):
        normalized = normalized[:-1] + "+00:00"
    try:
        deadline = datetime.fromisoformat(normalized)
    except ValueError:
        try:
            day = parse_day(value)
        except ValueError:
            return default
        deadline = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    if deadline.tzinfo is None:
        deadline = deadline.replace(tzinfo=timezone.utc)
    seconds = (deadline - now).total_seconds()
    return max(0, math.ceil(seconds / 86400))


def payment_requirement(
    booking: Booking,
    now: Optional[datetime] = None,
    policy: Optional[PaymentPolicy] = None,
) -> PaymentRequirement:
    """Minimum deposit a student owes before the booking is auto-cancelled."""
    policy = policy or get_policy()
    now = now or _now_utc()
    minimum = round(booking.total_amount * policy.deposit_ratio, 2)
    percent = int(round(policy.deposit_ratio * 100))
    return PaymentRequirement(
        minimum_required=minimum,
        meets_requirement=booking.amount_paid >= minimum,
        days_until_auto_cancel=_days_until(booking.auto_cancel_at, now, policy.auto_cancel_days),
        description=(
            f"At least {percent}% ({policy.currency} {minimum:.2f}) of the fee must be paid "
            f"within {policy.auto_cancel_days} days to avoid automatic cancellation"
        ),
    )
