from enum import Enum
from dataclasses import dataclass
from typing import Optional


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    CUSTOMER = "CUSTOMER"


@dataclass
class User:
    user_id: str
    email: str
    first_name: str
    last_name: str
    role: UserRole = UserRole.CUSTOMER
    phone_number: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, as resolved by the JWT authorizer."""

    user_id: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @classmethod
    def from_authorizer(cls, authorizer: dict) -> "Actor":
        user_id = authorizer["user_id"]
        try:
            role = UserRole((authorizer.get("role") or "").upper())
        except ValueError:
            role = UserRole.CUSTOMER
        return cls(user_id=user_id, role=role)
