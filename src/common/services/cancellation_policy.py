"""Cancellation policy: who may cancel a booking and how much is refunded.

Pure decision logic with no storage or Stripe access; the
caller passes ``now`` in.

Minimum notice (``Service.cancellation_hours_before``) is not
enforced: any owner or admin may cancel at any time, and the notice window only
feeds the refund calculation.
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from src.common.models.bookings import Booking, BookingStatus, PaymentStatus
from src.common.models.refunds import RefundDecision
from src.common.models.services import Service
from src.common.models.users import Actor
from src.common.utils.constants import FULL_REFUND_HOURS
from src.common.utils.custom_exceptions import (
    AlreadyCancelled,
    NotCancellable,
    Unauthorized,
)


def hours_until(start_time: datetime, now: datetime) -> float:
    return (start_time - now).total_seconds() / 3600


def calculate_refund_amount(
    service_price: int, hours_before: float, cancellation_fee_percentage: int
) -> int:
    """Refund owed in minor units.

    Inside the full-refund window the cancellation fee is withheld; the fee is
    rounded half-up to a whole minor unit.
    """
    if hours_before < FULL_REFUND_HOURS:
        fee = (
            Decimal(service_price) * Decimal(cancellation_fee_percentage) / Decimal(100)
        ).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return max(0, service_price - int(fee))

    return service_price


def is_refundable(booking: Booking) -> bool:
    return booking.payment_status == PaymentStatus.PAID and bool(
        booking.stripe_session_id
    )


def evaluate_cancellation(
    booking: Booking, service: Service, actor: Actor, now: datetime
) -> RefundDecision:
    if booking.status == BookingStatus.CANCELLED:
        raise AlreadyCancelled(booking.booking_id)

    if booking.status == BookingStatus.COMPLETED:
        raise NotCancellable(booking.booking_id, booking.status.value)

    if not actor.is_admin and booking.customer_id != actor.user_id:
        raise Unauthorized("You can only cancel your own bookings")

    hours_before = hours_until(booking.start_time, now)

    if not is_refundable(booking):
        return RefundDecision(amount=0, hours_before=hours_before)

    amount = calculate_refund_amount(
        service.price, hours_before, service.cancellation_fee_percentage
    )
    # fee percentages outside 0-100 must not push the refund out of range
    amount = min(max(amount, 0), service.price)
    return RefundDecision(amount=amount, hours_before=hours_before)
