"""Payout item builder for current and retroactive amounts."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from pts_allowance.calculators.types import (
    CENT,
    ZERO,
    CalculationResult,
    ItemType,
    PayoutItemCandidate,
)

CURRENT_DESCRIPTION = "ค่าตอบแทนงวดปัจจุบัน"
AGGREGATE_RETRO_DESCRIPTION = "ปรับตกเบิกย้อนหลัง (รวมยอด)"


class PayoutItemBuilder:
    """Builds the child items that explain a payout's total.

    Sign conventions:
    - Item amounts are stored non-negative
    - CURRENT and RETROACTIVE_ADD add to the payout
    - RETROACTIVE_DEDUCT subtracts from it
    """

    OUTPUT_PRECISION = CENT

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places."""
        return amount.quantize(PayoutItemBuilder.OUTPUT_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def create_current_item(
        amount: Decimal, reference_year: int, reference_month: int
    ) -> PayoutItemCandidate:
        return PayoutItemCandidate(
            item_type=ItemType.CURRENT,
            amount=PayoutItemBuilder.round_to_cents(abs(amount)),
            reference_month=reference_month,
            reference_year=reference_year,
            description=CURRENT_DESCRIPTION,
        )

    @staticmethod
    def create_retro_item(
        diff: Decimal,
        reference_year: int,
        reference_month: int,
        description: str | None = None,
    ) -> PayoutItemCandidate:
        """Create a retroactive item typed by the sign of ``diff``."""
        item_type = ItemType.RETROACTIVE_ADD if diff > 0 else ItemType.RETROACTIVE_DEDUCT
        return PayoutItemCandidate(
            item_type=item_type,
            amount=PayoutItemBuilder.round_to_cents(abs(diff)),
            reference_month=reference_month,
            reference_year=reference_year,
            description=description,
        )

    @classmethod
    def build_items(
        cls,
        result: CalculationResult,
        reference_year: int,
        reference_month: int,
    ) -> list[PayoutItemCandidate]:
        """Build all items for a calculated payout."""
        items: list[PayoutItemCandidate] = []

        if result.net_payment != ZERO:
            items.append(
                cls.create_current_item(result.net_payment, reference_year, reference_month)
            )

        if result.retro_details:
            for detail in result.retro_details:
                items.append(
                    cls.create_retro_item(
                        detail.diff, detail.year, detail.month, detail.remark
                    )
                )
        elif abs(result.retroactive_total) > CENT:
            # Total without breakdown: reference month/year 0
            items.append(
                cls.create_retro_item(
                    result.retroactive_total, 0, 0, AGGREGATE_RETRO_DESCRIPTION
                )
            )

        return items

    @staticmethod
    def signed_total(items: Iterable[PayoutItemCandidate]) -> Decimal:
        return sum((item.signed_amount for item in items), ZERO)
