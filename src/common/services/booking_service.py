from src.common.repository.booking_repo import BookingRepository
from src.common.repository.service_repo import ServiceRepository
from src.common.models.bookings import Booking, BookingStatus, PaymentStatus
from src.common.models.users import Actor
from src.common.schemas.bookings import BookingRequest
from typing import List, Optional
from src.common.services.notification_service import NotificationService
from src.common.services.payment_service import PaymentService
from src.common.services.schedule_service import SchedulerService
from src.common.utils.custom_exceptions import (
    BookingConflict,
    InvalidBookingState,
    NotFoundException,
    Unauthorized,
)
from datetime import datetime, timedelta
from uuid import uuid4
import logging

logger = logging.getLogger(__name__)


class BookingService:
    def __init__(
        self,
        booking_repo: BookingRepository,
        service_repo: ServiceRepository,
        schedule_service: Optional[SchedulerService] = None,
        payment_service: Optional[PaymentService] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        self.booking_repo = booking_repo
        self.service_repo = service_repo
        self.schedule_service = schedule_service
        self.payment_service = payment_service
        self.notification_service = notification_service

    def add_booking(self, req: BookingRequest, actor: Actor) -> Booking:
        service = self.service_repo.get_by_id(req.service_id)
        if service is None:
            raise NotFoundException("service", req.service_id)

        booking = Booking(
            booking_id=str(uuid4()),
            customer_id=actor.user_id,
            service_id=service.service_id,
            start_time=req.start_time,
            end_time=req.start_time + timedelta(minutes=service.duration_minutes),
        )
        self.booking_repo.add_booking(booking)
        if self.schedule_service:
            self.schedule_service.schedule_completion(
                booking_id=booking.booking_id,
                end_time=booking.end_time,
            )
        return booking

    def get_user_bookings(self, actor: Actor, user_id: Optional[str] = None) -> List[Booking]:
        target = user_id or actor.user_id
        if not actor.is_admin and target != actor.user_id:
            raise Unauthorized("You can only view your own bookings")
        return self.booking_repo.get_user_bookings(target)

    def start_checkout(
        self, booking_id: str, actor: Actor, success_url: str, cancel_url: str
    ) -> str:
        details = self.booking_repo.get_booking_with_relations(booking_id)
        if details is None:
            raise NotFoundException("booking", booking_id)

        booking = details.booking
        if not actor.is_admin and booking.customer_id != actor.user_id:
            raise Unauthorized("You can only pay for your own bookings")
        if (
            booking.status != BookingStatus.PENDING
            or booking.payment_status != PaymentStatus.UNPAID
        ):
            raise InvalidBookingState(
                f"booking '{booking_id}' is {booking.status.value}/"
                f"{booking.payment_status.value} and cannot be paid"
            )
        if self.payment_service is None:
            raise RuntimeError("payments are not configured")

        customer_email = details.customer.email if details.customer else None
        session_id, url = self.payment_service.create_checkout_session(
            booking, details.service, customer_email, success_url, cancel_url
        )
        try:
            self.booking_repo.set_checkout_session(booking, session_id)
        except BookingConflict:
            raise InvalidBookingState(f"booking '{booking_id}' changed during checkout")
        return url

    def confirm_payment(self, booking_id: str, session_id: str) -> bool:
        booking = self.booking_repo.get_booking_by_id(booking_id, consistent=True)
        if booking is None:
            raise NotFoundException("booking", booking_id)

        if booking.stripe_session_id and booking.stripe_session_id != session_id:
            logger.warning(
                f"Session {session_id} does not match booking {booking_id} "
                f"session {booking.stripe_session_id}, ignoring"
            )
            return False

        try:
            self.booking_repo.mark_paid(booking, session_id)
        except BookingConflict:
            logger.info(f"Booking {booking_id} is no longer awaiting payment")
            return False

        logger.info(f"Booking {booking_id} marked PAID and CONFIRMED")
        self._notify("send_booking_confirmation", booking_id)
        return True

    def approve_booking(self, booking_id: str, actor: Actor) -> Booking:
        if not actor.is_admin:
            raise Unauthorized("Only admins can approve bookings")

        booking = self.booking_repo.get_booking_by_id(booking_id, consistent=True)
        if booking is None:
            raise NotFoundException("booking", booking_id)

        if booking.status != BookingStatus.PENDING:
            raise InvalidBookingState(
                f"booking '{booking_id}' is {booking.status.value} and cannot be approved"
            )

        try:
            self.booking_repo.mark_approved(booking)
        except BookingConflict:
            raise InvalidBookingState(f"booking '{booking_id}' changed during approval")

        booking.status = BookingStatus.CONFIRMED
        logger.info(f"Booking {booking_id} approved by {actor.user_id}")
        self._notify("send_booking_approved", booking_id)
        return booking

    def reschedule_booking(
        self, booking_id: str, actor: Actor, start_time: datetime
    ) -> Booking:
        if not actor.is_admin:
            raise Unauthorized("Only admins can reschedule bookings")

        details = self.booking_repo.get_booking_with_relations(booking_id, consistent=True)
        if details is None:
            raise NotFoundException("booking", booking_id)

        booking = details.booking
        if booking.status not in (BookingStatus.PENDING, BookingStatus.CONFIRMED):
            raise InvalidBookingState(
                f"booking '{booking_id}' is {booking.status.value} and cannot be rescheduled"
            )

        end_time = start_time + timedelta(minutes=details.service.duration_minutes)
        try:
            self.booking_repo.reschedule(booking, start_time, end_time)
        except BookingConflict:
            raise InvalidBookingState(f"booking '{booking_id}' changed during rescheduling")

        booking.start_time = start_time
        booking.end_time = end_time
        logger.info(f"Booking {booking_id} moved to {start_time.isoformat()} by {actor.user_id}")

        if self.schedule_service:
            # replaces the existing completion schedule of the same name
            try:
                self.schedule_service.schedule_completion(
                    booking_id=booking_id,
                    end_time=end_time,
                )
            except Exception:
                logger.exception(f"Booking {booking_id} moved but completion was not rescheduled")
        self._notify("send_booking_rescheduled", booking_id)
        return booking

    def _notify(self, notification: str, booking_id: str):
        if self.notification_service is None:
            return
        try:
            getattr(self.notification_service, notification)(booking_id)
        except Exception:
            logger.exception(f"Failed to {notification} for booking {booking_id}")

    def complete_booking(self, booking_id: str) -> bool:
        booking = self.booking_repo.get_booking_by_id(booking_id, consistent=True)
        if booking is None:
            raise NotFoundException("booking", booking_id)

        try:
            self.booking_repo.mark_completed(booking)
        except BookingConflict:
            logger.info(
                f"Booking {booking_id} is {booking.status.value}, not completing"
            )
            return False

        logger.info(f"Booking {booking_id} marked COMPLETED")
        return True
