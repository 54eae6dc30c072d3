import boto3
from datetime import timezone, datetime
import json
import logging

logger = logging.getLogger(__name__)


class SchedulerService:
    """One-time EventBridge schedules that complete a booking once it ends."""

    def __init__(self, lambda_arn: str, role_arn: str, region="ap-south-1"):
        self.client = boto3.client("scheduler", region_name=region)
        self.lambda_arn = lambda_arn
        self.role_arn = role_arn

    def schedule_completion(self, booking_id: str, end_time: datetime):
        schedule_name = f"complete-{booking_id}"

        try:
            schedule_expression = self._to_at_expression(end_time)
        except ValueError as e:
            logger.error(f"Invalid time format: {e}")
            raise e

        schedule_params = {
            "Name": schedule_name,
            "ScheduleExpression": schedule_expression,
            "ScheduleExpressionTimezone": "UTC",
            "FlexibleTimeWindow": {"Mode": "OFF"},
            "Target": {
                "Arn": self.lambda_arn,
                "RoleArn": self.role_arn,
                "Input": json.dumps({"booking_id": booking_id}),
            },
            "ActionAfterCompletion": "DELETE",
        }

        try:
            self.client.create_schedule(
                **schedule_params,
                ClientToken=booking_id
            )
            logger.info(f"Scheduled completion for {booking_id} at {schedule_expression}")
            return True

        except self.client.exceptions.ConflictException:
            logger.info(f"Schedule {schedule_name} exists. Updating target time.")
            self.client.update_schedule(**schedule_params)
            return True

        except Exception:
            logger.exception(f"Failed to schedule completion for {booking_id}")
            raise

    def _to_at_expression(self, dt: datetime) -> str:
        if dt.tzinfo is None:
            raise ValueError("end_time must be timezone-aware")

        utc_dt = dt.astimezone(timezone.utc)
        return f"at({utc_dt.strftime('%Y-%m-%dT%H:%M:%S')})"
