"""Classify activity counts into intensity bands."""

from typing import Sequence

import numpy as np

from wearday.core import config

logger = config.get_logger()

MISSING_BAND = -1


def validate_cutpoints(cutpoints: Sequence[float]) -> None:
    """Checks that cutpoints define contiguous, non-overlapping bands.

    Args:
        cutpoints: The intensity cutpoints.

    Raises:
        ValueError: If no cutpoints are given, or they are negative, not finite
            or not strictly ascending.
    """
    thresholds = np.asarray(cutpoints, dtype=float)
    if thresholds.size == 0:
        raise ValueError("At least one cutpoint is required.")
    if not np.all(np.isfinite(thresholds)) or thresholds[0] < 0:
        raise ValueError("Cutpoints must be finite and not negative.")
    if np.any(np.diff(thresholds) <= 0):
        message = "Cutpoints must be unique and given in ascending order."
        logger.error(message)
        raise ValueError(message)


def classify_intensity(
    counts: np.ndarray, cutpoints: Sequence[float] = (100, 760, 2020, 5999)
) -> np.ndarray:
    """Compute the intensity band of every count.

    With k cutpoints there are k+1 bands. Band i covers
    [cutpoints[i-1], cutpoints[i]), where the first band starts at 0 and the last
    one is unbounded, so a count equal to a cutpoint belongs to the band that
    starts there. With the default cutpoints the bands are sedentary (< 100),
    light (100-759), lifestyle (760-2019), moderate (2020-5998) and vigorous
    (>= 5999).

    Args:
        counts: The corrected counts. Missing counts are NaN.
        cutpoints: The strictly ascending intensity cutpoints.

    Returns:
        An integer array with the band index of every count, MISSING_BAND for
        missing counts.

    Raises:
        ValueError: If the cutpoints are negative or not strictly ascending.

    References:
        Troiano RP, Berrigan D, Dodd KW, Masse LC, Tilert T, McDowell M. Physical
            activity in the United States measured by accelerometer. Med Sci Sports
            Exerc. 2008;40(1):181-188.
    """
    validate_cutpoints(cutpoints)
    values = np.asarray(counts, dtype=float)
    bands = np.searchsorted(
        np.asarray(cutpoints, dtype=float), values, side="right"
    ).astype(np.int64)
    bands[np.isnan(values)] = MISSING_BAND
    return bands
