import logging
import os
from boto3 import resource

from src.common.models.users import Actor
from src.common.repository.booking_repo import BookingRepository
from src.common.repository.service_repo import ServiceRepository
from src.common.services.booking_service import BookingService
from src.common.schemas.bookings import BookingResponse
from src.common.utils.custom_response import send_custom_response
from src.common.utils.custom_exceptions import Unauthorized

logger = logging.getLogger()
logger.setLevel(logging.INFO)

TABLE_NAME = os.environ.get("TABLE_NAME")
REGION = os.environ.get("AWS_REGION_NAME", "ap-south-1")

dynamodb = resource("dynamodb", region_name=REGION)
table = dynamodb.Table(TABLE_NAME)

booking_repo = BookingRepository(table)
service_repo = ServiceRepository(table)

booking_service = BookingService(
    booking_repo=booking_repo,
    service_repo=service_repo,
)


def get_user_bookings(event, context):
    try:
        actor = Actor.from_authorizer(event["requestContext"]["authorizer"])
    except (KeyError, TypeError):
        return send_custom_response(401, "Unauthorized")

    requested_user_id = (event.get("queryStringParameters") or {}).get("user_id")

    try:
        bookings = booking_service.get_user_bookings(actor, requested_user_id)

    except Unauthorized as err:
        return send_custom_response(err.status_code, str(err))

    except Exception:
        logger.exception("Unhandled error listing bookings")
        return send_custom_response(500, "Internal server error")

    result = [BookingResponse.from_domain(b).model_dump(mode="json") for b in bookings]
    return send_custom_response(
        200,
        "Bookings retrieved successfully",
        {
            "count": len(result),
            "bookings": result,
        },
    )
