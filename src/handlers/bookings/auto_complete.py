import logging
import os
from src.common.services.booking_service import BookingService
from src.common.repository.booking_repo import BookingRepository
from src.common.repository.service_repo import ServiceRepository
from src.common.utils.custom_exceptions import NotFoundException
from boto3 import resource
from botocore.exceptions import ClientError

logger = logging.getLogger()
logger.setLevel(logging.INFO)

TABLE_NAME = os.environ.get("TABLE_NAME")
REGION = os.environ.get("AWS_REGION_NAME", "ap-south-1")
dynamodb = resource("dynamodb", region_name=REGION)
table = dynamodb.Table(TABLE_NAME)

booking_repo = BookingRepository(table)
service_repo = ServiceRepository(table)
booking_service = BookingService(booking_repo=booking_repo, service_repo=service_repo)


def auto_complete(event, context):
    booking_id = event.get("booking_id")

    if not booking_id:
        raise KeyError("Missing booking_id in event")

    try:
        booking_service.complete_booking(booking_id)
    except NotFoundException as err:
        logger.error(f"Auto-complete failed: {err}")
    except ClientError as err:
        logger.error(f"Auto-complete failed for {booking_id}: {err}")
        raise
