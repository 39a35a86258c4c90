"""Detect sustained bouts of sedentary and active behavior."""

from typing import Dict, List, Tuple

import numpy as np

from wearday.core import config, models
from wearday.processing import runs

logger = config.get_logger()


def detect_bouts(
    bands: np.ndarray,
    counts: np.ndarray,
    wear: np.ndarray,
    segment: models.DaySegment,
    target: str,
    band_range: Tuple[int, int],
    settings: models.BoutSettings,
) -> List[models.Bout]:
    """Find the bouts of one target within one day segment.

    A bout is a maximal run of wear minutes whose band lies in band_range. Up to
    settings.tolerance minutes outside the target may interrupt a bout, as long as
    each of them is a classified wear minute with a count between
    settings.tolerance_lower_bound and settings.tolerance_upper_bound. A bout
    starts and ends on a target minute, never crosses the day boundary, and is
    only kept when it lasts at least settings.min_length minutes. Non-wear,
    missing and excluded artifact minutes always end a bout.

    Args:
        bands: Band index of every minute of the series.
        counts: Corrected count of every minute of the series.
        wear: Wear flag of every minute of the series.
        segment: The day segment to search.
        target: Name of the bout target, stored on the bouts.
        band_range: Inclusive lowest and highest band index of the target.
        settings: Length and tolerance settings of the target.

    Returns:
        The bouts in the segment, in ascending order. Positions are relative to
        the whole series.
    """
    day = slice(segment.start, segment.stop)
    day_bands = bands[day]
    day_counts = counts[day]
    classified = wear[day] & (day_bands >= 0)

    lowest, highest = band_range
    in_target = classified & (day_bands >= lowest) & (day_bands <= highest)
    upper_bound = (
        np.inf
        if settings.tolerance_upper_bound is None
        else settings.tolerance_upper_bound
    )
    interruptible = (
        classified
        & ~in_target
        & (day_counts >= settings.tolerance_lower_bound)
        & (day_counts <= upper_bound)
    )

    return [
        models.Bout(
            target=target,
            day=segment.day,
            start=segment.start + start,
            end=segment.start + end,
        )
        for start, end in runs.find_tolerant_runs(
            in_target, interruptible, settings.tolerance, settings.min_length
        )
    ]


def detect_day_bouts(
    bands: np.ndarray,
    counts: np.ndarray,
    wear: np.ndarray,
    segment: models.DaySegment,
    processing_config: models.ProcessingConfig,
) -> Dict[str, List[models.Bout]]:
    """Find the bouts of every target within one day segment.

    Args:
        bands: Band index of every minute of the series.
        counts: Corrected count of every minute of the series.
        wear: Wear flag of every minute of the series.
        segment: The day segment to search.
        processing_config: The run configuration.

    Returns:
        A dictionary from bout target to its bouts.
    """
    day_bouts = {
        target: detect_bouts(
            bands=bands,
            counts=counts,
            wear=wear,
            segment=segment,
            target=target,
            band_range=processing_config.band_range(target),
            settings=processing_config.bout_settings(target),
        )
        for target in models.BOUT_TARGETS
    }
    logger.debug(
        "Day %s bouts: %s",
        segment.day,
        {target: len(found) for target, found in day_bouts.items()},
    )
    return day_bouts
