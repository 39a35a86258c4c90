"""Decide which days, and which subjects, have enough wear time."""

from typing import Sequence

from wearday.core import models


def is_valid_day(wear_minutes: int, minimum: int = 600, maximum: int = 1440) -> bool:
    """A day is valid when its wear minutes are within [minimum, maximum]."""
    return minimum <= wear_minutes <= maximum


def evaluate_eligibility(
    records: Sequence[models.SummaryRecord],
    required_valid_days: int = 1,
    required_valid_weekdays: int = 0,
    required_valid_weekend_days: int = 0,
) -> models.Eligibility:
    """Count a subject's valid days and check them against the requirements.

    The eligibility is reported next to the per-day validity flags, it does not
    replace them.

    Args:
        records: The subject's day records.
        required_valid_days: Valid days needed in total.
        required_valid_weekdays: Valid days needed from Monday through Friday.
        required_valid_weekend_days: Valid days needed on Saturday or Sunday.

    Returns:
        The valid day counts and whether all requirements are met.
    """
    valid = [record for record in records if record.valid_day]
    valid_weekend_days = sum(
        1 for record in valid if record.weekday in models.WEEKEND_DAYS
    )
    valid_weekdays = len(valid) - valid_weekend_days
    return models.Eligibility(
        valid_days=len(valid),
        valid_weekdays=valid_weekdays,
        valid_weekend_days=valid_weekend_days,
        eligible=(
            len(valid) >= required_valid_days
            and valid_weekdays >= required_valid_weekdays
            and valid_weekend_days >= required_valid_weekend_days
        ),
    )
