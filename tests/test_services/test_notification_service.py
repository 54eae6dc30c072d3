import unittest
from unittest.mock import MagicMock, patch
from datetime import datetime, timezone, timedelta

from src.common.models.bookings import (
    Booking,
    BookingDetails,
    BookingStatus,
    CancellationReason,
    PaymentStatus,
)
from src.common.models.services import Service
from src.common.models.users import User
from src.common.services.notification_service import NotificationService, format_amount


class TestNotificationService(unittest.TestCase):

    @patch("src.common.services.notification_service.boto3.client")
    def setUp(self, mock_boto_client):
        self.mock_ses = MagicMock()
        self.mock_sns = MagicMock()
        mock_boto_client.side_effect = lambda name, **kwargs: {
            "ses": self.mock_ses,
            "sns": self.mock_sns,
        }[name]

        self.repo = MagicMock()
        self.service = NotificationService(
            self.repo,
            sender="noreply@bookease.com",
            admin_email="admin@bookease.com",
            admin_phone="+15550100",
        )

        start = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
        self.details = BookingDetails(
            booking=Booking(
                booking_id="b1",
                customer_id="c1",
                service_id="s1",
                start_time=start,
                end_time=start + timedelta(hours=1),
                status=BookingStatus.CANCELLED,
                payment_status=PaymentStatus.REFUNDED,
                refund_amount=8000,
                cancelled_by="c1",
                cancellation_reason=CancellationReason.CUSTOMER_REQUEST,
            ),
            service=Service(service_id="s1", name="Massage", duration_minutes=60, price=10000),
            customer=User(user_id="c1", email="ada@example.com", first_name="Ada", last_name="L"),
        )
        self.repo.get_booking_with_relations.return_value = self.details

    def _sent(self):
        return [c.kwargs for c in self.mock_ses.send_raw_email.call_args_list]

    def test_format_amount(self):
        self.assertEqual(format_amount(8000), "$80.00")
        self.assertEqual(format_amount(5), "$0.05")

    def test_send_customer_cancelled(self):
        self.service.send_customer_cancelled("b1")

        sent = self._sent()
        self.assertEqual(len(sent), 1)
        self.assertEqual(sent[0]["Destinations"], ["ada@example.com"])
        self.assertEqual(sent[0]["Source"], "noreply@bookease.com")
        raw = sent[0]["RawMessage"]["Data"]
        self.assertIn("Booking Cancelled - Massage", raw)

    def test_send_customer_cancelled_missing_booking(self):
        self.repo.get_booking_with_relations.return_value = None

        self.service.send_customer_cancelled("b1")

        self.mock_ses.send_raw_email.assert_not_called()

    def test_send_customer_cancelled_propagates_ses_error(self):
        self.mock_ses.send_raw_email.side_effect = RuntimeError("throttled")

        with self.assertRaises(RuntimeError):
            self.service.send_customer_cancelled("b1")

    def test_send_admin_cancellation_notice_email_and_sms(self):
        self.service.send_admin_cancellation_notice("b1")

        sent = self._sent()
        self.assertEqual(sent[0]["Destinations"], ["admin@bookease.com"])
        self.mock_sns.publish.assert_called_once()
        _, kwargs = self.mock_sns.publish.call_args
        self.assertEqual(kwargs["PhoneNumber"], "+15550100")
        self.assertIn("b1", kwargs["Message"])

    def test_send_admin_cancellation_notice_without_phone(self):
        self.service.admin_phone = None

        self.service.send_admin_cancellation_notice("b1")

        self.mock_ses.send_raw_email.assert_called_once()
        self.mock_sns.publish.assert_not_called()

    def test_send_admin_cancellation_notice_no_admin_contact(self):
        self.service.admin_email = None
        self.service.admin_phone = None

        self.service.send_admin_cancellation_notice("b1")

        self.repo.get_booking_with_relations.assert_not_called()
        self.mock_ses.send_raw_email.assert_not_called()

    def test_send_booking_confirmation_customer_and_admin(self):
        self.service.send_booking_confirmation("b1")

        recipients = [s["Destinations"][0] for s in self._sent()]
        self.assertEqual(recipients, ["ada@example.com", "admin@bookease.com"])

    def test_send_booking_approved(self):
        self.service.send_booking_approved("b1")

        sent = self._sent()
        self.assertEqual(len(sent), 1)
        self.assertEqual(sent[0]["Destinations"], ["ada@example.com"])
        self.assertIn("Booking Approved - Massage", sent[0]["RawMessage"]["Data"])

    def test_send_booking_rescheduled_uses_new_start(self):
        start = datetime(2026, 3, 5, 14, 0, tzinfo=timezone.utc)
        self.details.booking.start_time = start

        self.service.send_booking_rescheduled("b1")

        data = self._sent()[0]["RawMessage"]["Data"]
        self.assertIn("Booking Rescheduled - Massage", data)
        self.assertIn("Thursday, 05 March 2026 at 14:00 UTC", data)
        self.mock_sns.publish.assert_not_called()

    def test_send_booking_rescheduled_missing_customer(self):
        self.details.customer = None

        self.service.send_booking_rescheduled("b1")

        self.mock_ses.send_raw_email.assert_not_called()


if __name__ == "__main__":
    unittest.main()
