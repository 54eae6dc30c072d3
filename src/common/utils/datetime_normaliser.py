from datetime import datetime, timezone
from typing import Optional


def from_iso_string(value: str) -> datetime:
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        raise ValueError("Stored datetime must be timezone-aware")
    return dt.astimezone(timezone.utc)


def to_iso_string(value: datetime | str) -> str:
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value)
    else:
        parsed = value

    if parsed.tzinfo is None:
        raise ValueError("Datetime must be timezone-aware")

    return parsed.astimezone(timezone.utc).isoformat()


def optional_from_iso_string(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return from_iso_string(value)
