import logging
import os
from boto3 import resource
from pydantic import ValidationError

from src.common.models.users import Actor
from src.common.repository.booking_repo import BookingRepository
from src.common.repository.service_repo import ServiceRepository
from src.common.schemas.bookings import CheckoutRequest
from src.common.services.booking_service import BookingService
from src.common.services.payment_service import PaymentService
from src.common.utils.custom_response import send_custom_response
from src.common.utils.custom_exceptions import (
    InvalidBookingState,
    NotFoundException,
    PaymentProviderError,
    Unauthorized,
)

logger = logging.getLogger()
logger.setLevel(logging.INFO)

TABLE_NAME = os.environ.get("TABLE_NAME")
REGION = os.environ.get("AWS_REGION_NAME", "ap-south-1")
STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")

dynamodb = resource("dynamodb", region_name=REGION)
table = dynamodb.Table(TABLE_NAME)

booking_repo = BookingRepository(table)
service_repo = ServiceRepository(table)
payment_service = PaymentService(STRIPE_SECRET_KEY) if STRIPE_SECRET_KEY else None

booking_service = BookingService(
    booking_repo=booking_repo,
    service_repo=service_repo,
    payment_service=payment_service,
)


def create_checkout(event, context):
    try:
        actor = Actor.from_authorizer(event["requestContext"]["authorizer"])
    except (KeyError, TypeError):
        return send_custom_response(401, "Unauthorized")

    booking_id = (event.get("pathParameters") or {}).get("id")
    if not booking_id:
        return send_custom_response(400, "Booking id is required")

    if not event.get("body"):
        return send_custom_response(400, "Request body is required")

    try:
        request_body = CheckoutRequest.model_validate_json(event["body"])
    except ValidationError as e:
        formatted = "; ".join(f"{err['msg']}" for err in e.errors())
        return send_custom_response(400, formatted)

    try:
        url = booking_service.start_checkout(
            booking_id,
            actor,
            success_url=str(request_body.success_url),
            cancel_url=str(request_body.cancel_url),
        )
        return send_custom_response(200, "Checkout session created", {"url": url})

    except NotFoundException as err:
        return send_custom_response(err.status_code, str(err))

    except (Unauthorized, InvalidBookingState) as err:
        return send_custom_response(err.status_code, str(err))

    except PaymentProviderError as err:
        return send_custom_response(502, "Payment provider error", details=str(err))

    except Exception:
        logger.exception(f"Unhandled error creating checkout for {booking_id}")
        return send_custom_response(500, "Internal server error")
