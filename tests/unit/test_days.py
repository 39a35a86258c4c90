"""Test the day segmentation."""

import pytest

from wearday.core import models
from wearday.processing import days


def test_weekday_labels() -> None:
    """Test weekday labels across a week starting on Sunday."""
    labels = days.weekday_labels(10081, start_day=1, day_length=1440)

    assert labels[0] == 1
    assert labels[1439] == 1
    assert labels[1440] == 2
    assert labels[10079] == 7
    assert labels[10080] == 1


def test_weekday_labels_wrap() -> None:
    """A series starting on Saturday continues on Sunday."""
    labels = days.weekday_labels(3, start_day=7, day_length=2)

    assert list(labels) == [7, 7, 1]


def test_segment_days_partial_day() -> None:
    """The final, shorter segment is still returned."""
    result = days.segment_days(3000, start_day=7, day_length=1440)

    assert result == [
        models.DaySegment(day=1, weekday=7, start=0, stop=1440),
        models.DaySegment(day=2, weekday=1, start=1440, stop=2880),
        models.DaySegment(day=3, weekday=2, start=2880, stop=3000),
    ]
    assert result[-1].length == 120
    assert result[0].is_weekend and result[1].is_weekend
    assert not result[2].is_weekend


def test_segment_days_partition() -> None:
    """Segments cover every epoch exactly once."""
    segments = days.segment_days(10080, start_day=3)

    covered = [index for s in segments for index in range(s.start, s.stop)]

    assert covered == list(range(10080))
    assert [s.weekday for s in segments] == [3, 4, 5, 6, 7, 1, 2]


@pytest.mark.parametrize("start_day, day_length", [(0, 1440), (8, 1440), (1, 0)])
def test_segment_days_bad_arguments(start_day: int, day_length: int) -> None:
    """Test the errors for invalid arguments."""
    with pytest.raises(ValueError):
        days.segment_days(100, start_day=start_day, day_length=day_length)
