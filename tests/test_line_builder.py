"""Tests for payout item builder."""

from decimal import Decimal

from pts_allowance.calculators.line_builder import (
    AGGREGATE_RETRO_DESCRIPTION,
    CURRENT_DESCRIPTION,
    PayoutItemBuilder,
)
from pts_allowance.calculators.types import (
    CalculationResult,
    ItemType,
    RetroactiveResult,
    RetroDetail,
)


def result_with(net: str, retro_total: str = "0", details=None) -> CalculationResult:
    result = CalculationResult.empty("")
    result.net_payment = Decimal(net)
    result.apply_retroactive(
        RetroactiveResult(total_retro=Decimal(retro_total), retro_details=details or [])
    )
    return result


class TestPayoutItemBuilder:
    """Test payout item builder functionality."""

    def test_round_to_cents(self):
        """Test rounding to 2 decimal places."""
        assert PayoutItemBuilder.round_to_cents(Decimal("10.124")) == Decimal("10.12")

        # Half-up rounding
        assert PayoutItemBuilder.round_to_cents(Decimal("10.125")) == Decimal("10.13")
        assert PayoutItemBuilder.round_to_cents(Decimal("1000.005")) == Decimal("1000.01")
        assert PayoutItemBuilder.round_to_cents(Decimal("-0.005")) == Decimal("-0.01")

    def test_current_item_only(self):
        items = PayoutItemBuilder.build_items(result_with("3000.00"), 2024, 6)

        assert len(items) == 1
        assert items[0].item_type == ItemType.CURRENT
        assert items[0].amount == Decimal("3000.00")
        assert (items[0].reference_year, items[0].reference_month) == (2024, 6)
        assert items[0].description == CURRENT_DESCRIPTION

    def test_zero_net_has_no_current_item(self):
        assert PayoutItemBuilder.build_items(result_with("0.00"), 2024, 6) == []

    def test_retro_details_become_typed_items(self):
        details = [
            RetroDetail(month=4, year=2024, diff=Decimal("250.00"), remark="add"),
            RetroDetail(month=5, year=2024, diff=Decimal("-100.00"), remark="deduct"),
        ]

        items = PayoutItemBuilder.build_items(
            result_with("3000.00", "150.00", details), 2024, 6
        )

        assert [i.item_type for i in items] == [
            ItemType.CURRENT,
            ItemType.RETROACTIVE_ADD,
            ItemType.RETROACTIVE_DEDUCT,
        ]
        # Amounts are stored non-negative; the type carries the sign
        assert items[2].amount == Decimal("100.00")
        assert items[2].signed_amount == Decimal("-100.00")
        assert (items[1].reference_year, items[1].reference_month) == (2024, 4)
        assert PayoutItemBuilder.signed_total(items) == Decimal("3150.00")

    def test_aggregate_retro_without_details(self):
        items = PayoutItemBuilder.build_items(result_with("0.00", "-75.50"), 2024, 6)

        assert len(items) == 1
        assert items[0].item_type == ItemType.RETROACTIVE_DEDUCT
        assert items[0].amount == Decimal("75.50")
        assert (items[0].reference_year, items[0].reference_month) == (0, 0)
        assert items[0].description == AGGREGATE_RETRO_DESCRIPTION

    def test_tiny_aggregate_is_dropped(self):
        items = PayoutItemBuilder.build_items(result_with("100.00", "0.01"), 2024, 6)

        assert [i.item_type for i in items] == [ItemType.CURRENT]

    def test_to_dict(self):
        item = PayoutItemBuilder.create_retro_item(Decimal("12.345"), 2024, 5, "x")

        assert item.to_dict() == {
            "item_type": "RETROACTIVE_ADD",
            "amount": "12.35",
            "reference_month": 5,
            "reference_year": 2024,
            "description": "x",
        }
