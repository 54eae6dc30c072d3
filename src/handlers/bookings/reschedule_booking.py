import logging
import os
from boto3 import resource
from pydantic import ValidationError

from src.common.models.users import Actor
from src.common.repository.booking_repo import BookingRepository
from src.common.repository.service_repo import ServiceRepository
from src.common.schemas.bookings import BookingResponse, RescheduleRequest
from src.common.services.booking_service import BookingService
from src.common.services.notification_service import NotificationService
from src.common.services.schedule_service import SchedulerService
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
AUTO_COMPLETE_LAMBDA_ARN = os.environ.get("AUTO_COMPLETE_LAMBDA_ARN")
SCHEDULER_ROLE_ARN = os.environ.get("SCHEDULER_ROLE_ARN")

dynamodb = resource("dynamodb", region_name=REGION)
table = dynamodb.Table(TABLE_NAME)

booking_repo = BookingRepository(table)
service_repo = ServiceRepository(table)
notification_service = NotificationService(booking_repo, sender=SENDER_EMAIL, region=REGION)
scheduler_service = (
    SchedulerService(AUTO_COMPLETE_LAMBDA_ARN, SCHEDULER_ROLE_ARN, region=REGION)
    if AUTO_COMPLETE_LAMBDA_ARN
    else None
)

booking_service = BookingService(
    booking_repo=booking_repo,
    service_repo=service_repo,
    schedule_service=scheduler_service,
    notification_service=notification_service,
)


def reschedule_booking(event, context):
    try:
        actor = Actor.from_authorizer(event["requestContext"]["authorizer"])
    except (KeyError, TypeError):
        return send_custom_response(401, "Unauthorized")

    booking_id = (event.get("pathParameters") or {}).get("id")
    if not booking_id:
        return send_custom_response(400, "Booking id is required")

    if not event.get("body"):
        return send_custom_response(400, "Start time is required")

    try:
        request_body = RescheduleRequest.model_validate_json(event["body"])
    except ValidationError as e:
        formatted = "; ".join(f"{err['msg']}" for err in e.errors())
        return send_custom_response(400, formatted)

    try:
        booking = booking_service.reschedule_booking(
            booking_id, actor, request_body.start_time
        )
        return send_custom_response(
            200,
            "Booking rescheduled",
            BookingResponse.from_domain(booking).model_dump(mode="json"),
        )

    except (NotFoundException, Unauthorized, InvalidBookingState) as err:
        return send_custom_response(err.status_code, str(err))

    except Exception:
        logger.exception(f"Unhandled error rescheduling booking {booking_id}")
        return send_custom_response(500, "Failed to reschedule booking")
