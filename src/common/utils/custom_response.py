from pydantic import BaseModel
from typing import Any, Generic, TypeVar, Optional

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    status_code: int
    message: str
    data: Optional[T] = None
    details: Optional[str] = None


def send_custom_response(
    status_code: int,
    message: str,
    data: Optional[Any] = None,
    details: Optional[str] = None,
):
    body = APIResponse(
        status_code=status_code, message=message, data=data, details=details
    )
    return {
        "statusCode": status_code,
        "headers": {
            "Content-Type": "application/json",
        },
        "body": body.model_dump_json(exclude_none=True),
    }
