from datetime import datetime, timezone, timedelta
from typing import Optional
from pydantic import BaseModel, Field, HttpUrl, model_validator
from src.common.models.bookings import Booking
from src.common.utils.constants import MAX_BOOKING_DURATION_DAYS, MINOR_UNITS_PER_MAJOR


def _normalize_start(start_time: datetime) -> datetime:
    if start_time.tzinfo is None:
        raise ValueError("start_time must include timezone info")

    start_utc = start_time.astimezone(timezone.utc)
    now_utc = datetime.now(timezone.utc)

    if start_utc <= now_utc:
        raise ValueError("start_time must be in the future")

    if start_utc - now_utc > timedelta(days=MAX_BOOKING_DURATION_DAYS):
        raise ValueError(
            f"Bookings can be made at most {MAX_BOOKING_DURATION_DAYS} days ahead"
        )

    return start_utc


class BookingRequest(BaseModel):
    service_id: str = Field(min_length=1)
    start_time: datetime

    @model_validator(mode="after")
    def validate_and_normalize(self):
        self.start_time = _normalize_start(self.start_time)
        return self


class RescheduleRequest(BaseModel):
    start_time: datetime

    @model_validator(mode="after")
    def validate_and_normalize(self):
        self.start_time = _normalize_start(self.start_time)
        return self


class CheckoutRequest(BaseModel):
    success_url: HttpUrl
    cancel_url: HttpUrl


class BookingResponse(BaseModel):
    booking_id: str
    service_id: str
    status: str
    payment_status: str
    start_time: datetime
    end_time: datetime
    booked_at: datetime
    refund_amount: float = 0
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    @classmethod
    def from_domain(cls, booking: Booking) -> "BookingResponse":
        return cls(
            booking_id=booking.booking_id,
            service_id=booking.service_id,
            status=booking.status.value,
            payment_status=booking.payment_status.value,
            start_time=booking.start_time,
            end_time=booking.end_time,
            booked_at=booking.booked_at,
            refund_amount=booking.refund_amount / MINOR_UNITS_PER_MAJOR,
            cancelled_at=booking.cancelled_at,
            cancellation_reason=(
                booking.cancellation_reason.value if booking.cancellation_reason else None
            ),
        )
