import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional

import boto3

from src.common.models.bookings import BookingDetails, PaymentStatus
from src.common.utils.constants import MINOR_UNITS_PER_MAJOR

logger = logging.getLogger(__name__)


def format_amount(minor_units: int) -> str:
    return f"${minor_units / MINOR_UNITS_PER_MAJOR:.2f}"


def format_start(details: BookingDetails) -> str:
    return details.booking.start_time.strftime("%A, %d %B %Y at %H:%M UTC")


class NotificationService:
    """Booking emails over SES and admin SMS over SNS.

    Every send raises on delivery failure; callers decide whether a failure
    matters.
    """

    def __init__(
        self,
        booking_repo,
        sender: str,
        admin_email: Optional[str] = None,
        admin_phone: Optional[str] = None,
        region: str = "ap-south-1",
    ):
        self.booking_repo = booking_repo
        self.sender = sender
        self.admin_email = admin_email
        self.admin_phone = admin_phone
        self.ses = boto3.client("ses", region_name=region)
        self.sns = boto3.client("sns", region_name=region)

    def send_email(self, recipient: str, subject: str, body: str):
        msg = MIMEMultipart()
        msg["From"] = self.sender
        msg["To"] = recipient
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "plain"))

        self.ses.send_raw_email(
            Source=self.sender,
            Destinations=[recipient],
            RawMessage={"Data": msg.as_string()},
        )
        logger.info(f"Email '{subject}' sent to {recipient}")

    def send_sms(self, phone_number: str, message: str):
        self.sns.publish(PhoneNumber=phone_number, Message=message)
        logger.info(f"SMS sent to {phone_number}")

    def _load(self, booking_id: str) -> Optional[BookingDetails]:
        details = self.booking_repo.get_booking_with_relations(booking_id, consistent=True)
        if details is None or details.customer is None:
            logger.warning(f"Skipping notification, booking {booking_id} has no customer")
            return None
        return details

    def send_customer_cancelled(self, booking_id: str):
        details = self._load(booking_id)
        if details is None:
            return

        body = f"""
            Hi {details.customer.full_name},

            Your booking for {details.service.name} on {format_start(details)}
            has been cancelled.
            """
        refund = format_amount(details.booking.refund_amount)
        if details.booking.payment_status == PaymentStatus.REFUNDED:
            body += f"""
            A refund of {refund} has been issued to your original payment method.
            """
        elif details.booking.refund_amount:
            body += f"""
            Your refund of {refund} is being processed.
            """

        self.send_email(
            details.customer.email,
            f"Booking Cancelled - {details.service.name}",
            body,
        )

    def send_admin_cancellation_notice(self, booking_id: str):
        if not self.admin_email and not self.admin_phone:
            logger.warning("No admin contact configured, skipping cancellation notice")
            return

        details = self._load(booking_id)
        if details is None:
            return

        booking = details.booking
        summary = (
            f"Booking {booking.booking_id} for {details.service.name} "
            f"({details.customer.full_name}, {format_start(details)}) was cancelled"
        )

        if self.admin_email:
            body = f"""
            {summary}.

            Cancelled by: {booking.cancelled_by}
            Reason: {booking.cancellation_reason.value if booking.cancellation_reason else "-"}
            Refund amount: {format_amount(booking.refund_amount)}
            Payment status: {booking.payment_status.value}
            """
            self.send_email(
                self.admin_email,
                f"Booking Cancelled - {details.service.name}",
                body,
            )

        if self.admin_phone:
            self.send_sms(self.admin_phone, summary)

    def send_booking_confirmation(self, booking_id: str):
        details = self._load(booking_id)
        if details is None:
            return

        self.send_email(
            details.customer.email,
            f"Booking Confirmed - {details.service.name}",
            f"""
            Hi {details.customer.full_name},

            Your booking has been confirmed.

            Service: {details.service.name}
            Date: {format_start(details)}
            Duration: {details.service.duration_minutes} minutes
            Price: {format_amount(details.service.price)}
            """,
        )

        if self.admin_email:
            self.send_email(
                self.admin_email,
                f"New Booking - {details.service.name}",
                f"""
            {details.customer.full_name} ({details.customer.email}) booked
            {details.service.name} on {format_start(details)}
            for {format_amount(details.service.price)}.
            """,
            )

    def send_booking_approved(self, booking_id: str):
        details = self._load(booking_id)
        if details is None:
            return

        self.send_email(
            details.customer.email,
            f"Booking Approved - {details.service.name}",
            f"""
            Hi {details.customer.full_name},

            Your booking has been approved and confirmed.

            Service: {details.service.name}
            Date: {format_start(details)}

            Please arrive 5-10 minutes early.
            """,
        )

    def send_booking_rescheduled(self, booking_id: str):
        details = self._load(booking_id)
        if details is None:
            return

        self.send_email(
            details.customer.email,
            f"Booking Rescheduled - {details.service.name}",
            f"""
            Hi {details.customer.full_name},

            Your booking has been rescheduled.

            Service: {details.service.name}
            New date: {format_start(details)}
            """,
        )
