from botocore.exceptions import ClientError
import logging
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Optional, List
from boto3.dynamodb.conditions import Key
from src.common.models.bookings import (
    Booking,
    BookingDetails,
    BookingStatus,
    CancellationReason,
    PaymentStatus,
)
from src.common.repository.service_repo import ServiceRepository
from src.common.repository.user_repo import UserRepository
from src.common.utils.custom_exceptions import BookingConflict, NotFoundException
from src.common.utils.datetime_normaliser import (
    from_iso_string,
    optional_from_iso_string,
    to_iso_string,
)
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from types_boto3_dynamodb.service_resource import Table
    from types_boto3_dynamodb import DynamoDBClient
else:
    Table = object
    DynamoDBClient = object


logger = logging.getLogger(__name__)

# Booking field name -> stored attribute name, where they differ
_ATTRIBUTE_NAMES = {"status": "booking_status"}


def _serialize(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return to_iso_string(value)
    return value


class BookingRepository:
    def __init__(
        self,
        table: Table,
        client: DynamoDBClient = None,
        service_repo: Optional[ServiceRepository] = None,
        user_repo: Optional[UserRepository] = None,
    ):
        self.table = table
        self.client = client if client else table.meta.client
        self.service_repo = service_repo or ServiceRepository(table, self.client)
        self.user_repo = user_repo or UserRepository(table, self.client)

    @staticmethod
    def _to_item(booking: Booking) -> dict:
        item = {
            "customer_id": booking.customer_id,
            "service_id": booking.service_id,
            "start_time": to_iso_string(booking.start_time),
            "end_time": to_iso_string(booking.end_time),
            "booking_status": booking.status.value,
            "payment_status": booking.payment_status.value,
            "refund_amount": booking.refund_amount,
            "booked_at": to_iso_string(booking.booked_at),
        }
        optional = {
            "stripe_session_id": booking.stripe_session_id,
            "stripe_refund_id": booking.stripe_refund_id,
            "cancelled_by": booking.cancelled_by,
            "cancelled_at": booking.cancelled_at,
            "cancellation_reason": booking.cancellation_reason,
        }
        for name, value in optional.items():
            if value is not None:
                item[name] = _serialize(value)
        return item

    @staticmethod
    def _to_domain(booking_id: str, item: dict) -> Booking:
        reason = item.get("cancellation_reason")
        return Booking(
            booking_id=booking_id,
            customer_id=item["customer_id"],
            service_id=item["service_id"],
            start_time=from_iso_string(item["start_time"]),
            end_time=from_iso_string(item["end_time"]),
            status=BookingStatus(item["booking_status"]),
            payment_status=PaymentStatus(item["payment_status"]),
            refund_amount=int(item.get("refund_amount", 0)),
            stripe_session_id=item.get("stripe_session_id"),
            stripe_refund_id=item.get("stripe_refund_id"),
            cancelled_by=item.get("cancelled_by"),
            cancelled_at=optional_from_iso_string(item.get("cancelled_at")),
            cancellation_reason=CancellationReason(reason) if reason else None,
            booked_at=from_iso_string(item["booked_at"]),
        )

    def add_booking(self, booking: Booking):
        booking_item = {
            "pk": f"BOOKING#{booking.booking_id}",
            "sk": "DETAILS",
            **self._to_item(booking),
        }
        user_booking = {
            "pk": f"USER#{booking.customer_id}",
            "sk": f"BOOKING#{booking.booking_id}",
            **self._to_item(booking),
        }

        try:
            self.client.transact_write_items(
                TransactItems=[
                    {
                        "Put": {
                            "TableName": self.table.name,
                            "Item": booking_item,
                            "ConditionExpression": "attribute_not_exists(pk)",
                        }
                    },
                    {
                        "Put": {
                            "TableName": self.table.name,
                            "Item": user_booking,
                        }
                    },
                ]
            )

        except ClientError as err:
            logger.error(f"Error creating booking {booking.booking_id}: {err}")
            raise

    def get_user_bookings(self, user_id: str) -> List[Booking]:
        try:
            response = self.table.query(
                KeyConditionExpression=Key("pk").eq(f"USER#{user_id}")
                & Key("sk").begins_with("BOOKING#")
            )
        except ClientError as err:
            logger.error(f"Error retrieving user {user_id} bookings: {err}")
            raise

        return [
            self._to_domain(item["sk"].removeprefix("BOOKING#"), item)
            for item in response.get("Items", [])
        ]

    def get_booking_by_id(
        self, booking_id: str, consistent: bool = False
    ) -> Optional[Booking]:
        try:
            response = self.table.get_item(
                Key={"pk": f"BOOKING#{booking_id}", "sk": "DETAILS"},
                ConsistentRead=consistent,
            )
        except ClientError as err:
            logger.error(f"Error retrieving booking {booking_id}: {err}")
            raise

        item = response.get("Item")
        if not item:
            return None

        return self._to_domain(booking_id, item)

    def get_booking_with_relations(
        self, booking_id: str, consistent: bool = False
    ) -> Optional[BookingDetails]:
        booking = self.get_booking_by_id(booking_id, consistent=consistent)
        if booking is None:
            return None

        service = self.service_repo.get_by_id(booking.service_id)
        if service is None:
            raise NotFoundException("service", booking.service_id)

        customer = self.user_repo.get_by_id(booking.customer_id)
        return BookingDetails(booking=booking, service=service, customer=customer)

    def update_booking_fields(
        self,
        booking: Booking,
        fields: dict,
        expected_status: Optional[BookingStatus] = None,
        expected_payment_status: Optional[PaymentStatus] = None,
    ):
        """Apply ``fields`` to the booking and its per-customer copy atomically.

        ``fields`` is keyed by Booking attribute name. When expected statuses are
        given the write only happens if the stored booking still has them;
        otherwise ``BookingConflict`` is raised and nothing is written.
        """
        names = {}
        values = {}
        assignments = []
        for i, (field_name, value) in enumerate(fields.items()):
            names[f"#f{i}"] = _ATTRIBUTE_NAMES.get(field_name, field_name)
            values[f":v{i}"] = _serialize(value)
            assignments.append(f"#f{i} = :v{i}")
        update_expression = "SET " + ", ".join(assignments)

        conditions = ["attribute_exists(pk)"]
        condition_names = dict(names)
        condition_values = dict(values)
        if expected_status is not None:
            condition_names["#expected_status"] = "booking_status"
            condition_values[":expected_status"] = expected_status.value
            conditions.append("#expected_status = :expected_status")
        if expected_payment_status is not None:
            condition_names["#expected_payment"] = "payment_status"
            condition_values[":expected_payment"] = expected_payment_status.value
            conditions.append("#expected_payment = :expected_payment")

        try:
            self.client.transact_write_items(
                TransactItems=[
                    {
                        "Update": {
                            "Key": {
                                "pk": f"BOOKING#{booking.booking_id}",
                                "sk": "DETAILS",
                            },
                            "TableName": self.table.name,
                            "UpdateExpression": update_expression,
                            "ExpressionAttributeNames": condition_names,
                            "ExpressionAttributeValues": condition_values,
                            "ConditionExpression": " AND ".join(conditions),
                        }
                    },
                    {
                        "Update": {
                            "Key": {
                                "pk": f"USER#{booking.customer_id}",
                                "sk": f"BOOKING#{booking.booking_id}",
                            },
                            "TableName": self.table.name,
                            "UpdateExpression": update_expression,
                            "ExpressionAttributeNames": names,
                            "ExpressionAttributeValues": values,
                            "ConditionExpression": "attribute_exists(pk)",
                        }
                    },
                ]
            )
        except ClientError as err:
            if self._is_condition_failure(err):
                logger.info(f"Booking {booking.booking_id} changed before update")
                raise BookingConflict(booking.booking_id) from err
            logger.error(f"Error updating booking {booking.booking_id}: {err}")
            raise

    @staticmethod
    def _is_condition_failure(err: ClientError) -> bool:
        if err.response.get("Error", {}).get("Code") != "TransactionCanceledException":
            return False
        reasons = err.response.get("CancellationReasons") or []
        return any(r.get("Code") == "ConditionalCheckFailed" for r in reasons)

    @contextmanager
    def transaction(self) -> Iterator["BookingTransaction"]:
        """Stage a booking update and commit it on normal exit.

        Nothing is written until the block exits cleanly, so an exception
        raised inside the block leaves the stored booking untouched.
        """
        tx = BookingTransaction(self)
        yield tx
        tx.commit()

    def set_checkout_session(self, booking: Booking, session_id: str):
        self.update_booking_fields(
            booking,
            {"stripe_session_id": session_id},
            expected_status=BookingStatus.PENDING,
            expected_payment_status=PaymentStatus.UNPAID,
        )

    def mark_paid(self, booking: Booking, session_id: str):
        self.update_booking_fields(
            booking,
            {
                "status": BookingStatus.CONFIRMED,
                "payment_status": PaymentStatus.PAID,
                "stripe_session_id": session_id,
            },
            expected_status=BookingStatus.PENDING,
            expected_payment_status=PaymentStatus.UNPAID,
        )

    def mark_approved(self, booking: Booking):
        self.update_booking_fields(
            booking,
            {"status": BookingStatus.CONFIRMED},
            expected_status=BookingStatus.PENDING,
        )

    def reschedule(self, booking: Booking, start_time: datetime, end_time: datetime):
        self.update_booking_fields(
            booking,
            {"start_time": start_time, "end_time": end_time},
            expected_status=booking.status,
        )

    def mark_completed(self, booking: Booking):
        self.update_booking_fields(
            booking,
            {"status": BookingStatus.COMPLETED},
            expected_status=BookingStatus.CONFIRMED,
        )


class BookingTransaction:
    """Load-then-update unit of work over a single booking.

    The update is guarded by the status observed at load time, so two
    transactions racing on the same booking cannot both commit.
    """

    def __init__(self, repo: BookingRepository):
        self.repo = repo
        self._loaded: dict[str, Booking] = {}
        self._staged: Optional[tuple[Booking, dict]] = None

    def load_booking_with_relations(self, booking_id: str) -> Optional[BookingDetails]:
        details = self.repo.get_booking_with_relations(booking_id, consistent=True)
        if details is not None:
            self._loaded[booking_id] = details.booking
        return details

    def update_booking(self, booking_id: str, fields: dict):
        if self._staged is not None:
            raise RuntimeError("a booking update is already staged in this transaction")
        booking = self._loaded.get(booking_id)
        if booking is None:
            raise RuntimeError(f"booking {booking_id} was not loaded in this transaction")
        self._staged = (booking, dict(fields))

    def commit(self):
        if self._staged is None:
            return
        booking, fields = self._staged
        self.repo.update_booking_fields(
            booking,
            fields,
            expected_status=booking.status,
            expected_payment_status=booking.payment_status,
        )
        self._staged = None
