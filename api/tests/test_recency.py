# SPDX-License-Identifier: Apache-2.0

"""
Tests for the event recency window.
"""

import pytest
from datetime import date, datetime, timezone

from domain.recency import claim_window_start, is_event_claimable, subtract_years
from models.enums import BenefitType

NOW = datetime(2025, 6, 15, 10, 30, tzinfo=timezone.utc)


class TestSubtractYears:
    """Test calendar year arithmetic."""

    def test_regular_date(self):
        assert subtract_years(date(2025, 6, 15), 1) == date(2024, 6, 15)

    def test_leap_day_rolls_to_march(self):
        assert subtract_years(date(2024, 2, 29), 1) == date(2023, 3, 1)

    def test_leap_day_to_leap_year(self):
        assert subtract_years(date(2024, 2, 29), 4) == date(2020, 2, 29)

    def test_window_start_from_datetime(self):
        assert claim_window_start(NOW) == date(2024, 6, 15)
        assert claim_window_start("2025-06-15T10:30:00Z") == date(2024, 6, 15)


class TestIsEventClaimable:
    """Test the one-year claim window for allowances."""

    @pytest.mark.parametrize("event_date,expected", [
        (date(2025, 6, 15), True),
        (date(2025, 1, 1), True),
        (date(2024, 6, 16), True),
        (date(2024, 6, 15), False),
        (date(2023, 12, 31), False),
        (date(2025, 6, 16), False),
    ])
    def test_birth_allowance_window(self, event_date, expected):
        assert is_event_claimable(BenefitType.BIRTH_ALLOWANCE, event_date, NOW) is expected

    def test_iso_string_dates(self):
        assert is_event_claimable("death-allowance", "2025-03-01", "2025-06-15")
        assert not is_event_claimable("death-allowance", "2024-06-15", "2025-06-15")

    def test_missing_event_date(self):
        assert not is_event_claimable(BenefitType.MARRIAGE_ALLOWANCE, None, NOW)
        assert not is_event_claimable(BenefitType.MARRIAGE_ALLOWANCE, "", NOW)

    @pytest.mark.parametrize("benefit_type", [BenefitType.SOCIAL_LOAN, BenefitType.ECONOMIC_LOAN])
    def test_loans_always_claimable(self, benefit_type):
        assert is_event_claimable(benefit_type, None, NOW)
        assert is_event_claimable(benefit_type, date(2010, 1, 1), NOW)

    def test_leap_day_reference(self):
        now = date(2024, 2, 29)

        assert is_event_claimable(BenefitType.BIRTH_ALLOWANCE, date(2023, 3, 2), now)
        assert not is_event_claimable(BenefitType.BIRTH_ALLOWANCE, date(2023, 3, 1), now)
        assert not is_event_claimable(BenefitType.BIRTH_ALLOWANCE, date(2023, 2, 28), now)
