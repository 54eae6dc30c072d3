import logging
from typing import Optional, Tuple

import stripe

from src.common.models.bookings import Booking
from src.common.models.services import Service
from src.common.utils.constants import (
    CURRENCY,
    STRIPE_MAX_NETWORK_RETRIES,
    STRIPE_TIMEOUT_SECONDS,
)
from src.common.utils.custom_exceptions import PaymentProviderError

logger = logging.getLogger(__name__)


class PaymentService:
    """Narrow wrapper over Stripe hosted checkout and refunds."""

    def __init__(self, secret_key: Optional[str], webhook_secret: Optional[str] = None):
        if not secret_key:
            raise RuntimeError("STRIPE_SECRET_KEY environment variable is not set")
        stripe.api_key = secret_key
        # refunds run while a booking transaction is open, keep calls bounded
        stripe.default_http_client = stripe.RequestsClient(timeout=STRIPE_TIMEOUT_SECONDS)
        stripe.max_network_retries = STRIPE_MAX_NETWORK_RETRIES
        self.webhook_secret = webhook_secret

    def create_checkout_session(
        self,
        booking: Booking,
        service: Service,
        customer_email: Optional[str],
        success_url: str,
        cancel_url: str,
    ) -> Tuple[str, str]:
        product_data = {"name": service.name}
        if service.description:
            product_data["description"] = service.description

        params = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": CURRENCY,
                        "unit_amount": service.price,
                        "product_data": product_data,
                    },
                    "quantity": 1,
                }
            ],
            "client_reference_id": booking.booking_id,
            "metadata": {"booking_id": booking.booking_id},
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        if customer_email:
            params["customer_email"] = customer_email

        try:
            session = stripe.checkout.Session.create(**params)
        except stripe.StripeError as err:
            logger.error(f"Checkout session creation failed for {booking.booking_id}: {err}")
            raise PaymentProviderError(str(err)) from err

        logger.info(f"Created checkout session {session.id} for booking {booking.booking_id}")
        return session.id, session.url

    def issue_refund(
        self, session_id: str, amount: int, idempotency_key: Optional[str] = None
    ) -> str:
        """Refund ``amount`` minor units of the payment behind a checkout session."""
        try:
            session = stripe.checkout.Session.retrieve(session_id)
            payment_intent = session.payment_intent
            if not payment_intent:
                raise PaymentProviderError(
                    f"No payment intent found for session {session_id}"
                )
            if not isinstance(payment_intent, str):
                payment_intent = payment_intent.id

            params = {
                "payment_intent": payment_intent,
                "amount": amount,
                "reason": "requested_by_customer",
                "metadata": {"booking_cancellation": "true"},
            }
            if idempotency_key:
                params["idempotency_key"] = idempotency_key
            refund = stripe.Refund.create(**params)
        except stripe.StripeError as err:
            logger.error(f"Refund failed for session {session_id}: {err}")
            raise PaymentProviderError(str(err)) from err

        logger.info(f"Issued refund {refund.id} of {amount} for session {session_id}")
        return refund.id

    def construct_webhook_event(self, payload: str, signature: Optional[str]):
        if not self.webhook_secret:
            raise RuntimeError("STRIPE_WEBHOOK_SECRET environment variable is not set")
        try:
            return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as err:
            raise ValueError("Invalid webhook signature") from err
