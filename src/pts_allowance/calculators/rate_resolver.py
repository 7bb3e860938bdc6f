"""Eligibility-rate and license resolution for a single day."""

from __future__ import annotations

import unicodedata
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Protocol

from pts_allowance.calculators.types import ZERO


@dataclass(frozen=True)
class EligibilityWindow:
    """A rate interval flattened from an eligibility row and its master rate."""

    effective_date: date
    expiry_date: date | None
    rate: Decimal
    master_rate_id: int | None = None

    def covers(self, day: date) -> bool:
        if day < self.effective_date:
            return False
        return self.expiry_date is None or day <= self.expiry_date


class LicenseLike(Protocol):
    valid_from: date | None
    valid_until: date | None
    status: str | None
    license_name: str | None
    license_type: str | None
    occupation_name: str | None


def normalize_text(value: str | None) -> str:
    """Case-insensitive, NFC-normalized form used for keyword matching."""
    return unicodedata.normalize("NFC", (value or "").strip()).casefold()


class RateResolver:
    """Resolves the active rate and license validity for a day.

    Rate selection:
    - Windows are scanned in effective-date order
    - The first window whose [effective_date, expiry_date] contains the day wins
    - No window means a rate of zero

    License validity:
    - A position containing a lifetime-license keyword is always licensed
    - A license whose name/type/occupation contains a keyword is accepted
    - Otherwise an ACTIVE license must cover the day
    """

    def __init__(self, lifetime_keywords: Iterable[str] = ()):
        self.keywords = tuple(
            kw for kw in (normalize_text(k) for k in lifetime_keywords) if kw
        )

    @staticmethod
    def sort_windows(windows: Iterable[EligibilityWindow]) -> list[EligibilityWindow]:
        return sorted(windows, key=lambda w: w.effective_date)

    def active_eligibility_for_day(
        self, windows: Sequence[EligibilityWindow], day: date
    ) -> EligibilityWindow | None:
        """Return the first covering window; callers pass windows pre-sorted."""
        for window in windows:
            if window.covers(day):
                return window
        return None

    def active_rate_for_day(
        self, windows: Sequence[EligibilityWindow], day: date
    ) -> Decimal:
        window = self.active_eligibility_for_day(windows, day)
        return window.rate if window is not None else ZERO

    def is_lifetime_position(self, position_name: str | None) -> bool:
        position = normalize_text(position_name)
        return bool(position) and any(kw in position for kw in self.keywords)

    def has_valid_license(
        self,
        licenses: Iterable[LicenseLike],
        day: date,
        position_name: str | None = "",
    ) -> bool:
        if self.is_lifetime_position(position_name):
            return True

        for lic in licenses:
            if self.keywords:
                combined = normalize_text(
                    f"{lic.license_name or ''} {lic.license_type or ''} "
                    f"{lic.occupation_name or ''}"
                )
                if any(kw in combined for kw in self.keywords):
                    return True

            if (lic.status or "").upper() != "ACTIVE":
                continue
            if lic.valid_from is None or lic.valid_until is None:
                continue
            if lic.valid_from <= day <= lic.valid_until:
                return True

        return False
