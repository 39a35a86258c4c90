"""Detect and correct implausibly large activity counts."""

from dataclasses import dataclass

import numpy as np

from wearday.core import config, exceptions, models
from wearday.processing import runs

logger = config.get_logger()

EXCLUDING_ACTIONS = ("flag", "missing")


@dataclass
class ArtifactCorrection:
    """Dataclass to store the outcome of artifact correction.

    Attributes:
        corrected: The corrected counts, as floats. Missing counts are NaN.
        artifact: True for every minute whose raw count exceeded the threshold.
        excluded: True for artifact minutes that must be left out of count and
            intensity totals.
    """

    corrected: np.ndarray
    artifact: np.ndarray
    excluded: np.ndarray


def correct_artifacts(
    counts: np.ndarray,
    threshold: float = 25000,
    action: models.ArtifactAction = "replace",
) -> ArtifactCorrection:
    """Flag counts above the artifact threshold and repair them.

    Supported actions:
        - 'flag': the count is kept but excluded from totals.
        - 'missing': the count is set to missing (NaN) and excluded from totals.
        - 'replace': each run of consecutive artifacts is replaced by the mean of
            the nearest non-artifact count on either side of the run. At the start
            or end of the series only the available neighbor is used.
        - 'cap': the count is lowered to the threshold.

    The corrected series always has the same length as the input.

    Args:
        counts: The raw counts.
        threshold: Counts strictly greater than this value are artifacts.
        action: What to do with the artifacts.

    Returns:
        An ArtifactCorrection with corrected counts and artifact masks.

    Raises:
        ValueError: If the action is unknown.
        InvalidSeriesError: If every count is an artifact and action is 'replace'.
    """
    raw = np.asarray(counts, dtype=float)
    artifact = raw > threshold
    corrected = raw.copy()
    logger.debug(
        "Correcting %s artifacts above %s with action '%s'.",
        int(artifact.sum()),
        threshold,
        action,
    )

    if action == "flag":
        pass
    elif action == "missing":
        corrected[artifact] = np.nan
    elif action == "cap":
        corrected[artifact] = threshold
    elif action == "replace":
        corrected = _replace_with_neighbors(raw, artifact)
    else:
        raise ValueError(
            f"Invalid artifact action: {action}. "
            "Choose: 'flag', 'missing', 'replace', 'cap'."
        )

    excluded = artifact if action in EXCLUDING_ACTIONS else np.zeros_like(artifact)
    return ArtifactCorrection(corrected=corrected, artifact=artifact, excluded=excluded)


def _replace_with_neighbors(counts: np.ndarray, artifact: np.ndarray) -> np.ndarray:
    """Replaces every run of artifacts with the mean of its neighbors.

    Args:
        counts: The raw counts.
        artifact: Boolean artifact mask.

    Returns:
        A copy of counts with the artifact runs replaced.

    Raises:
        InvalidSeriesError: If there is no non-artifact count to replace with.
    """
    if artifact.size and artifact.all():
        raise exceptions.InvalidSeriesError(
            "Every count exceeds the artifact threshold; "
            "no neighboring counts are available for replacement."
        )

    replaced = counts.copy()
    last_index = len(counts) - 1
    for start, end in runs.true_runs(artifact):
        neighbors = []
        if start > 0:
            neighbors.append(counts[start - 1])
        if end < last_index:
            neighbors.append(counts[end + 1])
        replaced[start : end + 1] = np.mean(neighbors)
    return replaced
