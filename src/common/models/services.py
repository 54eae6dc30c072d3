from dataclasses import dataclass
from typing import Optional


@dataclass
class Service:
    service_id: str
    name: str
    duration_minutes: int
    # minor currency units
    price: int
    description: Optional[str] = None
    cancellation_hours_before: int = 24
    cancellation_fee_percentage: int = 0
