import logging
import os
from boto3 import resource

from src.common.models.users import Actor
from src.common.repository.booking_repo import BookingRepository
from src.common.repository.service_repo import ServiceRepository
from src.common.services.booking_service import BookingService
from src.common.services.schedule_service import SchedulerService
from src.common.schemas.bookings import BookingRequest, BookingResponse
from src.common.utils.custom_response import send_custom_response
from src.common.utils.custom_exceptions import NotFoundException
from pydantic import ValidationError

logger = logging.getLogger()
logger.setLevel(logging.INFO)

TABLE_NAME = os.environ.get("TABLE_NAME")
REGION = os.environ.get("AWS_REGION_NAME", "ap-south-1")
AUTO_COMPLETE_LAMBDA_ARN = os.environ.get("AUTO_COMPLETE_LAMBDA_ARN")
SCHEDULER_ROLE_ARN = os.environ.get("SCHEDULER_ROLE_ARN")

dynamodb = resource("dynamodb", region_name=REGION)
table = dynamodb.Table(TABLE_NAME)

booking_repo = BookingRepository(table)
service_repo = ServiceRepository(table)
scheduler_service = (
    SchedulerService(AUTO_COMPLETE_LAMBDA_ARN, SCHEDULER_ROLE_ARN, region=REGION)
    if AUTO_COMPLETE_LAMBDA_ARN
    else None
)

booking_service = BookingService(
    booking_repo=booking_repo,
    service_repo=service_repo,
    schedule_service=scheduler_service,
)


def create_booking(event, context):
    if not event.get("body"):
        return send_custom_response(400, "Request body is required")

    try:
        request_body = BookingRequest.model_validate_json(event["body"])
    except ValidationError as e:
        formatted = "; ".join(f"{err['msg']}" for err in e.errors())
        return send_custom_response(400, formatted)

    except ValueError as e:
        return send_custom_response(400, str(e))

    try:
        actor = Actor.from_authorizer(event["requestContext"]["authorizer"])
    except (KeyError, TypeError):
        return send_custom_response(401, "Unauthorized")

    try:
        booking = booking_service.add_booking(request_body, actor)

        return send_custom_response(
            201,
            "Booking created successfully",
            BookingResponse.from_domain(booking).model_dump(mode="json"),
        )

    except NotFoundException as err:
        return send_custom_response(err.status_code, str(err))

    except Exception:
        logger.exception("Unhandled error creating booking")
        return send_custom_response(500, "Internal server error")
