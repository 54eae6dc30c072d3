import unittest
from unittest.mock import MagicMock, patch
from datetime import datetime, timezone, timedelta

import stripe

from src.common.models.bookings import Booking
from src.common.models.services import Service
from src.common.services.payment_service import PaymentService
from src.common.utils.custom_exceptions import PaymentProviderError


class TestPaymentService(unittest.TestCase):

    @patch("src.common.services.payment_service.stripe.RequestsClient")
    def setUp(self, _):
        self.service = PaymentService("sk_test_123", webhook_secret="whsec_123")

        start = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
        self.booking = Booking(
            booking_id="b1",
            customer_id="c1",
            service_id="s1",
            start_time=start,
            end_time=start + timedelta(hours=1),
        )
        self.offering = Service(
            service_id="s1", name="Massage", description="Relaxing", duration_minutes=60, price=10000
        )

    def test_requires_secret_key(self):
        with self.assertRaises(RuntimeError):
            PaymentService(None)

    @patch("src.common.services.payment_service.stripe.checkout.Session.create")
    def test_create_checkout_session(self, mock_create):
        mock_create.return_value = MagicMock(id="cs_1", url="https://checkout.stripe.com/cs_1")

        session_id, url = self.service.create_checkout_session(
            self.booking, self.offering, "c@example.com", "https://ok", "https://no"
        )

        self.assertEqual(session_id, "cs_1")
        self.assertEqual(url, "https://checkout.stripe.com/cs_1")
        _, kwargs = mock_create.call_args
        self.assertEqual(kwargs["mode"], "payment")
        self.assertEqual(kwargs["client_reference_id"], "b1")
        self.assertEqual(kwargs["customer_email"], "c@example.com")
        price_data = kwargs["line_items"][0]["price_data"]
        self.assertEqual(price_data["unit_amount"], 10000)
        self.assertEqual(price_data["product_data"]["name"], "Massage")

    @patch("src.common.services.payment_service.stripe.checkout.Session.create")
    def test_create_checkout_session_provider_error(self, mock_create):
        mock_create.side_effect = stripe.APIConnectionError("network down")

        with self.assertRaises(PaymentProviderError):
            self.service.create_checkout_session(
                self.booking, self.offering, None, "https://ok", "https://no"
            )

    @patch("src.common.services.payment_service.stripe.Refund.create")
    @patch("src.common.services.payment_service.stripe.checkout.Session.retrieve")
    def test_issue_refund(self, mock_retrieve, mock_refund):
        mock_retrieve.return_value = MagicMock(payment_intent="pi_1")
        mock_refund.return_value = MagicMock(id="re_1")

        refund_id = self.service.issue_refund("cs_1", 8000, idempotency_key="cancel-refund-b1")

        self.assertEqual(refund_id, "re_1")
        mock_retrieve.assert_called_once_with("cs_1")
        mock_refund.assert_called_once_with(
            payment_intent="pi_1",
            amount=8000,
            reason="requested_by_customer",
            metadata={"booking_cancellation": "true"},
            idempotency_key="cancel-refund-b1",
        )

    @patch("src.common.services.payment_service.stripe.Refund.create")
    @patch("src.common.services.payment_service.stripe.checkout.Session.retrieve")
    def test_issue_refund_without_payment_intent(self, mock_retrieve, mock_refund):
        mock_retrieve.return_value = MagicMock(payment_intent=None)

        with self.assertRaises(PaymentProviderError):
            self.service.issue_refund("cs_1", 8000)

        mock_refund.assert_not_called()

    @patch("src.common.services.payment_service.stripe.Refund.create")
    @patch("src.common.services.payment_service.stripe.checkout.Session.retrieve")
    def test_issue_refund_stripe_error_wrapped(self, mock_retrieve, mock_refund):
        mock_retrieve.return_value = MagicMock(payment_intent="pi_1")
        mock_refund.side_effect = stripe.InvalidRequestError("charge already refunded", "amount")

        with self.assertRaises(PaymentProviderError):
            self.service.issue_refund("cs_1", 8000)

    @patch("src.common.services.payment_service.stripe.Webhook.construct_event")
    def test_construct_webhook_event(self, mock_construct):
        mock_construct.return_value = {"type": "checkout.session.completed"}

        event = self.service.construct_webhook_event("{}", "t=1,v1=abc")

        self.assertEqual(event["type"], "checkout.session.completed")
        mock_construct.assert_called_once_with("{}", "t=1,v1=abc", "whsec_123")

    @patch("src.common.services.payment_service.stripe.Webhook.construct_event")
    def test_construct_webhook_event_bad_signature(self, mock_construct):
        mock_construct.side_effect = stripe.SignatureVerificationError("bad", "t=1,v1=abc")

        with self.assertRaises(ValueError):
            self.service.construct_webhook_event("{}", "t=1,v1=abc")


if __name__ == "__main__":
    unittest.main()
