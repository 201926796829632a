from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    MOBILE_MONEY = "mobile_money"
    CARD = "card"
    CHEQUE = "cheque"


class BookingType(str, Enum):
    SEMESTER = "semester"
    MONTHLY = "monthly"
    WEEKLY = "weekly"


class RoomStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"
    RESERVED = "reserved"


class ApiModel(BaseModel):
    """Base for payloads exchanged with the hostel API (camelCase on the wire)."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )


class HostelRef(ApiModel):
    id: str
    name: str = ""
    address: str = ""
    phone: Optional[str] = None
    email: Optional[str] = None


class RoomRef(ApiModel):
    id: str
    room_number: str = Field("", alias="roomNumber")
    floor: Optional[int] = None


class Booking(ApiModel):
    id: str
    hostel_id: Optional[str] = Field(None, alias="hostelId")
    room_id: Optional[str] = Field(None, alias="roomId")
    student_id: Optional[str] = Field(None, alias="studentId")
    student_name: str = Field("", alias="studentName")
    student_email: str = Field("", alias="studentEmail")
    student_phone: str = Field("", alias="studentPhone")
    booking_type: Optional[BookingType] = Field(None, alias="bookingType")
    status: BookingStatus
    payment_status: PaymentStatus = Field(alias="paymentStatus")
    check_in_date: str = Field(alias="checkInDate")
    check_out_date: str = Field(alias="checkOutDate")
    total_amount: float = Field(0.0, alias="totalAmount")
    amount_paid: float = Field(0.0, alias="amountPaid")
    amount_due: float = Field(0.0, alias="amountDue")
    payment_due_date: Optional[str] = Field(None, alias="paymentDueDate")
    confirmed_at: Optional[str] = Field(None, alias="confirmedAt")
    checked_in_at: Optional[str] = Field(None, alias="checkedInAt")
    checked_out_at: Optional[str] = Field(None, alias="checkedOutAt")
    cancelled_at: Optional[str] = Field(None, alias="cancelledAt")
    cancellation_reason: Optional[str] = Field(None, alias="cancellationReason")
    auto_cancel_at: Optional[str] = Field(None, alias="autoCancelAt")
    has_review: bool = Field(False, alias="hasReview")
    created_at: Optional[str] = Field(None, alias="createdAt")
    hostel: Optional[HostelRef] = None
    room: Optional[RoomRef] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class ConfirmRequest(BaseModel):
    notes: Optional[str] = None


class CancelRequest(BaseModel):
    reason: str
    notes: Optional[str] = None


class CheckInChecklist(ApiModel):
    id_verified: bool = Field(False, alias="idVerified")
    keys_handed: bool = Field(False, alias="keysHanded")
    rules_explained: bool = Field(False, alias="rulesExplained")
    room_inspected: bool = Field(False, alias="roomInspected")
    contact_updated: bool = Field(False, alias="contactUpdated")


class CheckInRequest(ApiModel):
    notes: Optional[str] = None
    actual_check_in_time: Optional[str] = Field(None, alias="actualCheckInTime")
    checklist: CheckInChecklist = Field(default_factory=CheckInChecklist)


class CheckOutRequest(ApiModel):
    notes: Optional[str] = None
    actual_check_out_time: Optional[str] = Field(None, alias="actualCheckOutTime")
    room_condition: str = Field("good", alias="roomCondition")
    key_returned: bool = Field(True, alias="keyReturned")
    damage_notes: Optional[str] = Field(None, alias="damageNotes")
    cleaning_fee: float = Field(0.0, alias="cleaningFee")
    deposit_refund: float = Field(0.0, alias="depositRefund")


class PaymentRequest(ApiModel):
    # Validated locally by payments.validate_payment, not by pydantic, so the
    # caller gets every field error at once.
    amount: Any = None
    payment_method: Any = Field(None, alias="paymentMethod")
    transaction_ref: Optional[str] = Field(None, alias="transactionRef")
    notes: Optional[str] = None


class BookingActionsItem(BaseModel):
    confirm: bool
    cancel: bool
    record_payment: bool
    check_in: bool
    check_out: bool
    write_review: bool


class BookingView(BaseModel):
    booking: Booking
    actions: BookingActionsItem
    check_in_warnings: list[str]
    check_out_warnings: list[str]
    status_badge: str
    payment_badge: str


class PaginationItem(BaseModel):
    page: int = 1
    limit: int = 20
    total: int = 0
    total_pages: int = Field(1, alias="totalPages")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class BookingsResponse(BaseModel):
    bookings: list[BookingView]
    pagination: PaginationItem
    hidden_on_page: int = 0


class LoginResponse(BaseModel):
    user_id: str
    role: str
    dashboard_url: str
