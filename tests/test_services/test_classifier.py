"""
Tests for arrears classification.
"""
from datetime import date, datetime, timezone

import pytest

from collections_service.models.domain import DebtTier
from collections_service.services.classifier import Classification, classify, days_between, tier_for_days

DUE = date(2024, 1, 1)


class TestTierBoundaries:
    @pytest.mark.parametrize(
        "days,tier",
        [
            (0, DebtTier.CURRENT),
            (1, DebtTier.EARLY),
            (30, DebtTier.EARLY),
            (31, DebtTier.MID),
            (90, DebtTier.MID),
            (91, DebtTier.ADVANCED),
            (400, DebtTier.ADVANCED),
        ],
    )
    def test_tier_for_days(self, days, tier):
        assert tier_for_days(days) == tier

    @pytest.mark.parametrize(
        "reference,expected",
        [
            (date(2024, 1, 1), Classification(0, DebtTier.CURRENT)),
            (date(2024, 1, 2), Classification(1, DebtTier.EARLY)),
            (date(2024, 1, 31), Classification(30, DebtTier.EARLY)),
            (date(2024, 2, 1), Classification(31, DebtTier.MID)),
            (date(2024, 3, 31), Classification(90, DebtTier.MID)),
            (date(2024, 4, 1), Classification(91, DebtTier.ADVANCED)),
        ],
    )
    def test_classify_boundaries(self, reference, expected):
        assert classify(DUE, reference, DebtTier.CURRENT) == expected


class TestDaysBetween:
    def test_future_due_date_is_zero(self):
        assert days_between(date(2024, 6, 1), date(2024, 5, 1)) == 0

    def test_partial_days_are_floored(self):
        due = datetime(2024, 1, 1, 18, 0, tzinfo=timezone.utc)
        reference = datetime(2024, 1, 3, 9, 0, tzinfo=timezone.utc)
        assert days_between(due, reference) == 1

    def test_mixed_date_and_datetime(self):
        assert days_between(date(2024, 1, 1), datetime(2024, 1, 11, 12, 0, tzinfo=timezone.utc)) == 10


class TestClassify:
    def test_idempotent(self):
        first = classify(DUE, date(2024, 2, 15), DebtTier.CURRENT)
        second = classify(DUE, date(2024, 2, 15), first.tier, first.days_in_arrears)
        assert first == second

    @pytest.mark.parametrize("tier", [DebtTier.PAID, DebtTier.CANCELLED])
    def test_terminal_tiers_never_change(self, tier):
        result = classify(DUE, date(2025, 1, 1), tier, current_days=12)
        assert result == Classification(12, tier)

    def test_accepts_tier_value_strings(self):
        assert classify(DUE, date(2024, 1, 5), "early").tier == DebtTier.EARLY
