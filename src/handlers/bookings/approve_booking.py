import logging
import os
from boto3 import resource

from src.common.models.users import Actor
from src.common.repository.booking_repo import BookingRepository
from src.common.repository.service_repo import ServiceRepository
from src.common.schemas.bookings import BookingResponse
from src.common.services.booking_service import BookingService
from src.common.services.notification_service import NotificationService
from src.common.utils.custom_response import send_custom_response
from src.common.utils.custom_exceptions import (
    InvalidBookingState,
    NotFoundException,
    Unauthorized,
)

logger = logging.getLogger()
logger.setLevel(logging.INFO)

TABLE_NAME = os.environ.get("TABLE_NAME")
REGION = os.environ.get("AWS_REGION_NAME", "ap-south-1")
SENDER_EMAIL = os.environ.get("SENDER_EMAIL", "noreply@bookease.com")

dynamodb = resource("dynamodb", region_name=REGION)
table = dynamodb.Table(TABLE_NAME)

booking_repo = BookingRepository(table)
service_repo = ServiceRepository(table)
notification_service = NotificationService(booking_repo, sender=SENDER_EMAIL, region=REGION)

booking_service = BookingService(
    booking_repo=booking_repo,
    service_repo=service_repo,
    notification_service=notification_service,
)


def approve_booking(event, context):
    try:
        actor = Actor.from_authorizer(event["requestContext"]["authorizer"])
    except (KeyError, TypeError):
        return send_custom_response(401, "Unauthorized")

    booking_id = (event.get("pathParameters") or {}).get("id")
    if not booking_id:
        return send_custom_response(400, "Booking id is required")

    try:
        booking = booking_service.approve_booking(booking_id, actor)
        return send_custom_response(
            200,
            "Booking approved",
            BookingResponse.from_domain(booking).model_dump(mode="json"),
        )

    except (NotFoundException, Unauthorized, InvalidBookingState) as err:
        return send_custom_response(err.status_code, str(err))

    except Exception:
        logger.exception(f"Unhandled error approving booking {booking_id}")
        return send_custom_response(500, "Failed to approve booking")
