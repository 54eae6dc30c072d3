from botocore.exceptions import ClientError
import logging
from typing import Optional
from src.common.models.services import Service

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from types_boto3_dynamodb.service_resource import Table
    from types_boto3_dynamodb import DynamoDBClient
else:
    Table = object
    DynamoDBClient = object


logger = logging.getLogger(__name__)


class ServiceRepository:
    def __init__(self, table: Table, client: DynamoDBClient = None):
        self.table = table
        self.client = client if client else table.meta.client

    def get_by_id(self, service_id: str) -> Optional[Service]:
        try:
            response = self.table.get_item(
                Key={"pk": f"SERVICE#{service_id}", "sk": "DETAILS"}
            )
        except ClientError as err:
            logger.error(f"Error retrieving service {service_id}: {err}")
            raise

        item = response.get("Item")
        if not item:
            return None

        return self._to_domain(item)

    @staticmethod
    def _to_domain(item: dict) -> Service:
        return Service(
            service_id=item["pk"].split("#", 1)[1],
            name=item["name"],
            description=item.get("description"),
            duration_minutes=int(item["duration_minutes"]),
            price=int(item["price"]),
            cancellation_hours_before=int(item.get("cancellation_hours_before", 24)),
            cancellation_fee_percentage=int(item.get("cancellation_fee_percentage", 0)),
        )
