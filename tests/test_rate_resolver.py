"""Tests for eligibility rate and license resolution."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import pytest

from pts_allowance.calculators.rate_resolver import (
    EligibilityWindow,
    RateResolver,
    normalize_text,
)
from pts_allowance.config import DEFAULT_LIFETIME_LICENSE_KEYWORDS


@dataclass
class Lic:
    valid_from: date | None = date(2024, 1, 1)
    valid_until: date | None = date(2024, 12, 31)
    status: str | None = "ACTIVE"
    license_name: str | None = None
    license_type: str | None = None
    occupation_name: str | None = None


@pytest.fixture
def resolver() -> RateResolver:
    return RateResolver(DEFAULT_LIFETIME_LICENSE_KEYWORDS)


class TestActiveRate:
    """Test rate selection by date."""

    def test_first_covering_window_wins(self, resolver):
        windows = RateResolver.sort_windows(
            [
                EligibilityWindow(date(2024, 6, 16), None, Decimal("1500"), 2),
                EligibilityWindow(
                    date(2024, 1, 1), date(2024, 6, 15), Decimal("1000"), 1
                ),
            ]
        )

        assert resolver.active_rate_for_day(windows, date(2024, 6, 15)) == Decimal("1000")
        assert resolver.active_rate_for_day(windows, date(2024, 6, 16)) == Decimal("1500")
        assert resolver.active_eligibility_for_day(windows, date(2024, 6, 16)).master_rate_id == 2

    def test_no_window_means_zero(self, resolver):
        windows = [EligibilityWindow(date(2024, 7, 1), None, Decimal("1500"))]

        assert resolver.active_rate_for_day(windows, date(2024, 6, 30)) == Decimal("0")
        assert resolver.active_eligibility_for_day(windows, date(2024, 6, 30)) is None

    def test_open_ended_window(self):
        window = EligibilityWindow(date(2024, 1, 1), None, Decimal("1000"))

        assert window.covers(date(2099, 1, 1)) is True
        assert window.covers(date(2023, 12, 31)) is False


class TestLicenseValidity:
    """Test license checks."""

    def test_active_license_covering_day(self, resolver):
        assert resolver.has_valid_license([Lic()], date(2024, 6, 1), "พยาบาลวิชาชีพ")

    def test_expired_license(self, resolver):
        lic = Lic(valid_until=date(2024, 5, 31))

        assert not resolver.has_valid_license([lic], date(2024, 6, 1), "พยาบาลวิชาชีพ")

    def test_inactive_status(self, resolver):
        lic = Lic(status="SUSPENDED")

        assert not resolver.has_valid_license([lic], date(2024, 6, 1), "พยาบาลวิชาชีพ")

    def test_status_is_case_insensitive(self, resolver):
        assert resolver.has_valid_license([Lic(status="active")], date(2024, 6, 1))

    def test_missing_dates(self, resolver):
        lic = Lic(valid_from=None)

        assert not resolver.has_valid_license([lic], date(2024, 6, 1), "พยาบาลวิชาชีพ")

    def test_lifetime_position_needs_no_license(self, resolver):
        assert resolver.has_valid_license([], date(2024, 6, 1), "นายแพทย์ชำนาญการ")
        assert resolver.has_valid_license([], date(2024, 6, 1), "เภสัชกรปฏิบัติการ")

    def test_lifetime_keyword_in_license_fields(self, resolver):
        lic = Lic(status="EXPIRED", valid_until=date(2000, 1, 1), occupation_name="ทันตแพทย์")

        assert resolver.has_valid_license([lic], date(2024, 6, 1), "")

    def test_no_keywords_configured(self):
        resolver = RateResolver(())

        assert not resolver.has_valid_license([], date(2024, 6, 1), "นายแพทย์")

    def test_no_licenses(self, resolver):
        assert not resolver.has_valid_license([], date(2024, 6, 1), "พยาบาลวิชาชีพ")
        assert not resolver.has_valid_license([], date(2024, 6, 1), None)


def test_normalize_text():
    assert normalize_text("  Doctor ") == "doctor"
    assert normalize_text(None) == ""
