"""Split a minute series into calendar days."""

from typing import List

import numpy as np

from wearday.core import models


def weekday_labels(
    n_epochs: int, start_day: int, day_length: int = 1440
) -> np.ndarray:
    """Label every epoch with its weekday code.

    The epoch at 1-based index i gets the weekday
    ((start_day - 1 + floor((i - 1) / day_length)) mod 7) + 1.

    Args:
        n_epochs: Number of epochs in the series.
        start_day: Weekday code of the first epoch, 1=Sunday ... 7=Saturday.
        day_length: Number of epochs per day.

    Returns:
        An integer array of weekday codes.
    """
    day_offsets = np.arange(n_epochs) // day_length
    return (start_day - 1 + day_offsets) % 7 + 1


def segment_days(
    n_epochs: int, start_day: int, day_length: int = 1440
) -> List[models.DaySegment]:
    """Partition a series into consecutive day segments.

    Every segment but the last is exactly day_length epochs long. A shorter final
    segment is still returned; whether it counts as a valid day is decided from
    its wear time.

    Args:
        n_epochs: Number of epochs in the series.
        start_day: Weekday code of the first epoch, 1=Sunday ... 7=Saturday.
        day_length: Number of epochs per day.

    Returns:
        The list of day segments, in order.

    Raises:
        ValueError: If day_length is not positive or start_day is not in 1-7.
    """
    if day_length <= 0:
        raise ValueError("Day length must be greater than 0.")
    if not 1 <= start_day <= 7:
        raise ValueError("Start day must be a weekday code between 1 and 7.")

    return [
        models.DaySegment(
            day=day_index + 1,
            weekday=(start_day - 1 + day_index) % 7 + 1,
            start=start,
            stop=min(start + day_length, n_epochs),
        )
        for day_index, start in enumerate(range(0, n_epochs, day_length))
    ]
