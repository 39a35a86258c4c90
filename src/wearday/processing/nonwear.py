"""Detect periods in which the activity monitor was not worn."""

from typing import List, Tuple

import numpy as np

from wearday.core import config, models
from wearday.processing import runs

logger = config.get_logger()


def detect_nonwear(
    counts: np.ndarray,
    window: int = 60,
    tolerance: int = 0,
    upper_bound: float = 99,
) -> Tuple[np.ndarray, List[models.NonwearEpisode]]:
    """Find sustained runs of zero counts and mark them as non-wear.

    A non-wear episode is a run of zero-count minutes, at least `window` minutes
    long, that may contain up to `tolerance` interrupting minutes with a count
    between 1 and `upper_bound`. Any minute above the upper bound, or a missing
    count, ends the run. Episodes start and end on a zero-count minute; runs are
    grown greedily with a single tolerance budget per episode, which makes the
    episodes deterministic, disjoint and maximal. All other minutes, including
    zero runs shorter than the window, are wear.

    Args:
        counts: The corrected counts. Missing counts are NaN.
        window: Minimum length of an episode, in minutes.
        tolerance: Maximum number of non-zero minutes inside one episode.
        upper_bound: Highest count a tolerated non-zero minute may have.

    Returns:
        A tuple that contains:
            - a boolean wear array, False inside non-wear episodes.
            - the list of non-wear episodes, in ascending order.

    Raises:
        ValueError: If window is not positive or tolerance is negative.

    References:
        Troiano RP, Berrigan D, Dodd KW, Masse LC, Tilert T, McDowell M. Physical
            activity in the United States measured by accelerometer. Med Sci Sports
            Exerc. 2008;40(1):181-188.
    """
    if window <= 0:
        raise ValueError("Non-wear window must be greater than 0.")
    if tolerance < 0:
        raise ValueError("Non-wear tolerance must not be negative.")

    values = np.asarray(counts, dtype=float)
    observed = ~np.isnan(values)
    zero = observed & (values == 0)
    interruption = observed & (values > 0) & (values <= upper_bound)

    wear = np.ones(len(values), dtype=bool)
    episodes = []
    for start, end in runs.find_tolerant_runs(zero, interruption, tolerance, window):
        wear[start : end + 1] = False
        episodes.append(models.NonwearEpisode(start=start, end=end))

    logger.debug(
        "Non-wear episodes found: %s, non-wear minutes: %s",
        len(episodes),
        int((~wear).sum()),
    )
    return wear, episodes
