import logging
import os
from boto3 import resource

from src.common.models.users import Actor
from src.common.repository.booking_repo import BookingRepository
from src.common.services.cancellation_service import CancellationService
from src.common.services.notification_service import NotificationService
from src.common.services.payment_service import PaymentService
from src.common.utils.constants import MINOR_UNITS_PER_MAJOR
from src.common.utils.custom_response import send_custom_response
from src.common.utils.custom_exceptions import (
    InternalError,
    NotFoundException,
    PolicyError,
)

logger = logging.getLogger()
logger.setLevel(logging.INFO)

TABLE_NAME = os.environ.get("TABLE_NAME")
REGION = os.environ.get("AWS_REGION_NAME", "ap-south-1")
STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")
SENDER_EMAIL = os.environ.get("SENDER_EMAIL", "noreply@bookease.com")
ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL")
ADMIN_PHONE = os.environ.get("ADMIN_PHONE")

dynamodb = resource("dynamodb", region_name=REGION)
table = dynamodb.Table(TABLE_NAME)

booking_repo = BookingRepository(table)
payment_service = PaymentService(STRIPE_SECRET_KEY) if STRIPE_SECRET_KEY else None
notification_service = NotificationService(
    booking_repo,
    sender=SENDER_EMAIL,
    admin_email=ADMIN_EMAIL,
    admin_phone=ADMIN_PHONE,
    region=REGION,
)

cancellation_service = CancellationService(
    booking_repo=booking_repo,
    payment_service=payment_service,
    notification_service=notification_service,
)


def cancel_booking(event, context):
    try:
        actor = Actor.from_authorizer(event["requestContext"]["authorizer"])
    except (KeyError, TypeError):
        return send_custom_response(401, "Unauthorized")

    booking_id = (event.get("pathParameters") or {}).get("id")
    if not booking_id:
        return send_custom_response(400, "Booking id is required")

    logger.info(f"Cancel booking request for {booking_id} by {actor.user_id}")

    try:
        result = cancellation_service.cancel_booking(booking_id, actor)

    except NotFoundException as err:
        return send_custom_response(err.status_code, str(err))

    except PolicyError as err:
        return send_custom_response(err.status_code, str(err))

    except InternalError as err:
        return send_custom_response(err.status_code, str(err), details=err.details)

    except Exception as err:
        logger.exception(f"Unhandled error cancelling booking {booking_id}")
        return send_custom_response(500, "Failed to cancel booking", details=str(err))

    data = {
        "success": result.cancelled,
        "refundProcessed": result.refund_processed,
        "refundAmount": result.refund_amount / MINOR_UNITS_PER_MAJOR,
    }
    if result.warning:
        data["warning"] = result.warning
    return send_custom_response(200, "Booking cancelled successfully", data)
