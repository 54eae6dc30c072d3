import logging
import os
from boto3 import resource

from src.common.repository.booking_repo import BookingRepository
from src.common.repository.service_repo import ServiceRepository
from src.common.services.booking_service import BookingService
from src.common.services.notification_service import NotificationService
from src.common.services.payment_service import PaymentService
from src.common.utils.custom_response import send_custom_response
from src.common.utils.custom_exceptions import NotFoundException

logger = logging.getLogger()
logger.setLevel(logging.INFO)

TABLE_NAME = os.environ.get("TABLE_NAME")
REGION = os.environ.get("AWS_REGION_NAME", "ap-south-1")
STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET")
SENDER_EMAIL = os.environ.get("SENDER_EMAIL", "noreply@bookease.com")
ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL")

dynamodb = resource("dynamodb", region_name=REGION)
table = dynamodb.Table(TABLE_NAME)

booking_repo = BookingRepository(table)
service_repo = ServiceRepository(table)
payment_service = PaymentService(STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET)
notification_service = NotificationService(
    booking_repo, sender=SENDER_EMAIL, admin_email=ADMIN_EMAIL, region=REGION
)

booking_service = BookingService(
    booking_repo=booking_repo,
    service_repo=service_repo,
    payment_service=payment_service,
    notification_service=notification_service,
)


def stripe_webhook(event, context):
    headers = event.get("headers") or {}
    signature = headers.get("Stripe-Signature") or headers.get("stripe-signature")

    try:
        stripe_event = payment_service.construct_webhook_event(event.get("body") or "", signature)
    except ValueError as err:
        logger.error(f"Webhook signature verification failed: {err}")
        return send_custom_response(400, "Invalid signature")

    logger.info(f"Received webhook event: {stripe_event['type']}")

    if stripe_event["type"] != "checkout.session.completed":
        return send_custom_response(200, "Event ignored", {"received": True})

    session = stripe_event["data"]["object"]
    booking_id = session.get("client_reference_id") or (session.get("metadata") or {}).get("booking_id")
    if not booking_id:
        logger.error(f"No booking reference on session {session.get('id')}")
        return send_custom_response(200, "Event ignored", {"received": True})

    if session.get("payment_status") != "paid":
        logger.info(f"Payment not completed for booking {booking_id}")
        return send_custom_response(200, "Payment pending", {"received": True})

    try:
        booking_service.confirm_payment(booking_id, session["id"])
    except NotFoundException as err:
        logger.error(f"No booking found for session {session['id']}: {err}")
    except Exception:
        # a 500 makes Stripe redeliver the event
        logger.exception(f"Failed to confirm payment for booking {booking_id}")
        return send_custom_response(500, "Internal server error")

    return send_custom_response(200, "Webhook processed", {"received": True})
