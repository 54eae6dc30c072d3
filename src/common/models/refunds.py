from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RefundDecision:
    amount: int
    hours_before: float


@dataclass
class CancellationResult:
    refund_processed: bool
    refund_amount: int
    cancelled: bool = True
    warning: Optional[str] = None
