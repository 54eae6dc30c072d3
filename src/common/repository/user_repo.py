from botocore.exceptions import ClientError
import logging
from typing import Optional
from src.common.models.users import User, UserRole

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from types_boto3_dynamodb.service_resource import Table
    from types_boto3_dynamodb import DynamoDBClient
else:
    Table = object
    DynamoDBClient = object

logger = logging.getLogger(__name__)


class UserRepository:
    def __init__(self, table: Table, client: DynamoDBClient = None):
        self.table = table
        self.client = client if client else table.meta.client

    def get_by_id(self, user_id: str) -> Optional[User]:
        try:
            response = self.table.get_item(
                Key={"pk": f"USER#{user_id}", "sk": "DETAILS"}
            )
        except ClientError as err:
            logger.error(f"Error retrieving user by id {user_id}: {err}")
            raise

        item = response.get("Item")
        if not item:
            return None

        return self._to_domain(item=item)

    @staticmethod
    def _to_domain(item: dict) -> User:
        return User(
            user_id=item["pk"].split("#", 1)[1],
            email=item["email"],
            first_name=item.get("first_name", ""),
            last_name=item.get("last_name", ""),
            phone_number=item.get("phone_number"),
            role=UserRole(item.get("role", UserRole.CUSTOMER.value)),
        )
