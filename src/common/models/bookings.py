from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
from src.common.models.services import Service
from src.common.models.users import User


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class CancellationReason(str, Enum):
    ADMIN_CANCELLED = "ADMIN_CANCELLED"
    CUSTOMER_REQUEST = "CUSTOMER_REQUEST"


@dataclass
class Booking:
    booking_id: str
    customer_id: str
    service_id: str
    start_time: datetime
    end_time: datetime
    status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.UNPAID

    # minor currency units
    refund_amount: int = 0

    stripe_session_id: Optional[str] = None
    stripe_refund_id: Optional[str] = None
    cancelled_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[CancellationReason] = None

    booked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class BookingDetails:
    """A booking joined with its service and owning customer."""

    booking: Booking
    service: Service
    customer: Optional[User] = None
