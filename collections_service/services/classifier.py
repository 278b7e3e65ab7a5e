"""
Arrears classification.

Maps a debt's due date and a reference date onto a day count and an arrears
tier. Paid and cancelled debts are terminal and are returned unchanged.
"""
from datetime import date, datetime, timezone
from typing import NamedTuple, Union

from collections_service.models.domain import DebtTier

DateLike = Union[date, datetime]

# Inclusive upper bound of days in arrears for each ageing tier
EARLY_MAX_DAYS = 30
MID_MAX_DAYS = 90


class Classification(NamedTuple):
    days_in_arrears: int
    tier: DebtTier


def _as_datetime(value: DateLike) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def days_between(due_date: DateLike, reference_date: DateLike) -> int:
    """Whole days from due date to reference date, floored, never negative."""
    if not isinstance(due_date, datetime) and not isinstance(reference_date, datetime):
        return max(0, (reference_date - due_date).days)
    delta = _as_datetime(reference_date) - _as_datetime(due_date)
    return max(0, delta.days)


def tier_for_days(days_in_arrears: int) -> DebtTier:
    if days_in_arrears <= 0:
        return DebtTier.CURRENT
    if days_in_arrears <= EARLY_MAX_DAYS:
        return DebtTier.EARLY
    if days_in_arrears <= MID_MAX_DAYS:
        return DebtTier.MID
    return DebtTier.ADVANCED


def classify(
    due_date: DateLike,
    reference_date: DateLike,
    current_tier: DebtTier,
    current_days: int = 0,
) -> Classification:
    """
    Classify a debt as of ``reference_date``.

    Args:
        due_date: When the debt fell due
        reference_date: Date the classification is computed for
        current_tier: Stored tier of the debt
        current_days: Stored day count, returned as-is for terminal debts

    Returns:
        Classification with the day count and tier
    """
    current_tier = DebtTier(current_tier)
    if current_tier.is_terminal:
        return Classification(current_days, current_tier)

    days = days_between(due_date, reference_date)
    return Classification(days, tier_for_days(days))
