"""Allowance calculation engine."""

from pts_allowance.calculators.deductions import calculate_deductions
from pts_allowance.calculators.engine import MonthlyCalculator
from pts_allowance.calculators.line_builder import PayoutItemBuilder
from pts_allowance.calculators.rate_resolver import EligibilityWindow, RateResolver
from pts_allowance.calculators.retroactive import RetroactiveAdjuster
from pts_allowance.calculators.types import (
    CalculationResult,
    ItemType,
    MovementType,
    RetroactiveResult,
    RetroDetail,
)
from pts_allowance.calculators.work_periods import resolve_periods

__all__ = [
    "MonthlyCalculator",
    "CalculationResult",
    "EligibilityWindow",
    "ItemType",
    "MovementType",
    "PayoutItemBuilder",
    "RateResolver",
    "RetroactiveAdjuster",
    "RetroactiveResult",
    "RetroDetail",
    "calculate_deductions",
    "resolve_periods",
]
