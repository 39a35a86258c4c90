"""Test the bout detection."""

from typing import Optional

import numpy as np
import pytest

from wearday.core import models
from wearday.processing import bouts, intensity

MVPA = (3, 4)


def _mvpa_day(interruption_position: int) -> np.ndarray:
    """Ten MVPA minutes surrounded by sedentary minutes.

    Args:
        interruption_position: 1-based position inside the ten minutes that is
            replaced by a light minute.
    """
    counts = np.array([0] * 5 + [3000] * 10 + [0] * 5, dtype=float)
    counts[4 + interruption_position] = 500
    return counts


def _find(
    counts: np.ndarray,
    settings: models.BoutSettings,
    band_range: tuple = MVPA,
    wear: Optional[np.ndarray] = None,
    segment: Optional[models.DaySegment] = None,
) -> list:
    """Runs bout detection on a single-day series."""
    bands = intensity.classify_intensity(counts)
    wear = np.ones(len(counts), dtype=bool) if wear is None else wear
    segment = segment or models.DaySegment(day=1, weekday=1, start=0, stop=len(counts))
    return bouts.detect_bouts(
        bands, counts, wear, segment, "mvpa", band_range, settings
    )


def test_interrupted_bout() -> None:
    """An interruption inside the run keeps it a single ten minute bout."""
    result = _find(
        _mvpa_day(interruption_position=5),
        models.BoutSettings(min_length=10, tolerance=2),
    )

    assert result == [models.Bout(target="mvpa", day=1, start=5, end=14)]
    assert result[0].duration == 10


@pytest.mark.parametrize("interruption_position", [1, 10])
def test_interruption_at_boundary(interruption_position: int) -> None:
    """A run may not start or end on an interruption."""
    result = _find(
        _mvpa_day(interruption_position),
        models.BoutSettings(min_length=10, tolerance=2),
    )

    assert result == []


def test_interruption_without_tolerance() -> None:
    """Without tolerance an interruption splits the run."""
    result = _find(
        _mvpa_day(interruption_position=5),
        models.BoutSettings(min_length=4, tolerance=0),
    )

    assert result == [
        models.Bout(target="mvpa", day=1, start=5, end=8),
        models.Bout(target="mvpa", day=1, start=10, end=14),
    ]


def test_interruption_lower_bound() -> None:
    """Interruptions below the lower bound end the bout."""
    result = _find(
        _mvpa_day(interruption_position=5),
        models.BoutSettings(min_length=10, tolerance=2, tolerance_lower_bound=1000),
    )

    assert result == []


def test_nonwear_ends_bout() -> None:
    """Non-wear minutes are never part of a bout."""
    counts = np.full(20, 3000.0)
    wear = np.ones(20, dtype=bool)
    wear[10] = False

    result = _find(counts, models.BoutSettings(min_length=10, tolerance=2), wear=wear)

    assert result == [models.Bout(target="mvpa", day=1, start=0, end=9)]


def test_bout_stays_within_day() -> None:
    """Bouts are cut at the day boundary."""
    counts = np.full(30, 3000.0)
    segment = models.DaySegment(day=2, weekday=2, start=10, stop=20)

    too_long = _find(counts, models.BoutSettings(min_length=11), segment=segment)
    within = _find(counts, models.BoutSettings(min_length=10), segment=segment)

    assert too_long == []
    assert within == [models.Bout(target="mvpa", day=2, start=10, end=19)]


def test_sedentary_interruption_upper_bound() -> None:
    """Sedentary bouts only tolerate interruptions up to the upper bound."""
    counts = np.array([0] * 15 + [1000] + [0] * 15, dtype=float)
    settings = models.BoutSettings(
        min_length=30, tolerance=1, tolerance_upper_bound=759
    )

    result = _find(counts, settings, band_range=(0, 0))
    counts[15] = 700
    lowered = _find(counts, settings, band_range=(0, 0))

    assert result == []
    assert len(lowered) == 1 and lowered[0].duration == 31


def test_detect_day_bouts() -> None:
    """Every target is searched with its own settings."""
    processing_config = models.ProcessingConfig(
        day_length=60, weartime_minimum=0, sedentary_bout_length=20
    )
    counts = np.array([0] * 20 + [1000] * 10 + [7000] * 10 + [0] * 20, dtype=float)
    bands = intensity.classify_intensity(counts, processing_config.cutpoints)
    segment = models.DaySegment(day=1, weekday=1, start=0, stop=60)

    result = bouts.detect_day_bouts(
        bands, counts, np.ones(60, dtype=bool), segment, processing_config
    )

    assert set(result) == set(models.BOUT_TARGETS)
    assert [(b.start, b.end) for b in result["sedentary"]] == [(0, 19), (40, 59)]
    assert [(b.start, b.end) for b in result["active"]] == [(20, 39)]
    assert [(b.start, b.end) for b in result["mvpa"]] == [(30, 39)]
    assert [(b.start, b.end) for b in result["vigorous"]] == [(30, 39)]
