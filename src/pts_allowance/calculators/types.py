"""Type definitions for the calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

ZERO = Decimal("0")
CENT = Decimal("0.01")

NO_SERVICE_REMARK = "ไม่ได้ปฏิบัติงานในเดือนนี้"
STUDY_LEAVE_REMARK = "ลาศึกษาต่อ"


class MovementType(str, Enum):
    """Employment movement event types."""

    ENTRY = "ENTRY"
    RESIGN = "RESIGN"
    RETIRE = "RETIRE"
    DEATH = "DEATH"
    TRANSFER_OUT = "TRANSFER_OUT"
    STUDY = "STUDY"

    @property
    def is_exit(self) -> bool:
        return self in EXIT_MOVEMENTS


EXIT_MOVEMENTS = frozenset(
    {
        MovementType.RESIGN,
        MovementType.RETIRE,
        MovementType.DEATH,
        MovementType.TRANSFER_OUT,
    }
)


class ItemType(str, Enum):
    """Payout item types."""

    CURRENT = "CURRENT"
    RETROACTIVE_ADD = "RETROACTIVE_ADD"
    RETROACTIVE_DEDUCT = "RETROACTIVE_DEDUCT"


@dataclass(frozen=True)
class WorkPeriod:
    """Contiguous range of active service inside one month (inclusive)."""

    start: date
    end: date


@dataclass
class WorkPeriodResolution:
    """Active service ranges for a month plus an explanatory remark."""

    periods: list[WorkPeriod]
    remark: str = ""

    @property
    def has_service(self) -> bool:
        return len(self.periods) > 0


@dataclass
class RetroDetail:
    """Signed correction for one past month."""

    month: int
    year: int
    diff: Decimal
    remark: str


@dataclass
class RetroactiveResult:
    """Result of recomputing past months for one citizen."""

    total_retro: Decimal = ZERO
    retro_details: list[RetroDetail] = field(default_factory=list)


@dataclass
class CalculationResult:
    """Result of calculating one citizen's allowance for one month."""

    net_payment: Decimal
    total_deduction_days: Decimal
    valid_license_days: int
    eligible_days: Decimal
    remark: str
    master_rate_id: int | None
    rate_snapshot: Decimal
    retroactive_total: Decimal = ZERO
    retro_details: list[RetroDetail] = field(default_factory=list)

    @property
    def grand_total(self) -> Decimal:
        return self.net_payment + self.retroactive_total

    @classmethod
    def empty(cls, remark: str) -> CalculationResult:
        """Zero result for a month without active service."""
        return cls(
            net_payment=Decimal("0.00"),
            total_deduction_days=ZERO,
            valid_license_days=0,
            eligible_days=ZERO,
            remark=remark,
            master_rate_id=None,
            rate_snapshot=ZERO,
        )

    def apply_retroactive(self, retro: RetroactiveResult) -> None:
        self.retroactive_total = retro.total_retro
        self.retro_details = list(retro.retro_details)


@dataclass
class PayoutItemCandidate:
    """A payout item before persistence."""

    item_type: ItemType
    amount: Decimal  # always non-negative; sign carried by item_type
    reference_month: int
    reference_year: int
    description: str | None = None

    @property
    def signed_amount(self) -> Decimal:
        if self.item_type == ItemType.RETROACTIVE_DEDUCT:
            return -self.amount
        return self.amount

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_type": self.item_type.value,
            "amount": str(self.amount),
            "reference_month": self.reference_month,
            "reference_year": self.reference_year,
            "description": self.description,
        }
