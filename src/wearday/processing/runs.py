"""Find sustained runs in a sequence of minutes, tolerating short interruptions."""

from typing import List, Tuple

import numpy as np


def find_tolerant_runs(
    in_target: np.ndarray,
    interruptible: np.ndarray,
    tolerance: int,
    min_length: int,
) -> List[Tuple[int, int]]:
    """Find maximal runs of target minutes that tolerate a few interruptions.

    The scan is greedy. A run starts at a target minute and grows forward: target
    minutes extend it, interruptible minutes are absorbed while fewer than
    `tolerance` have been used, and any other minute ends it. The run is closed
    at its last target minute, so a run never starts or ends on an interruption.
    Runs of at least `min_length` minutes are kept and the scan resumes after
    them. The tolerance is a single budget for the whole run; it is not reset
    between stretches of target minutes.

    When a candidate run is too short, later starts before its first
    interruption can only give shorter runs, so the scan resumes right after that
    interruption (or after the candidate, if it had none).

    Args:
        in_target: Boolean array, True for minutes that belong to the target.
        interruptible: Boolean array, True for minutes that may interrupt a run.
            Only consulted for minutes that are not in the target.
        tolerance: Maximum number of interrupting minutes per run.
        min_length: Minimum length of a run, in minutes.

    Returns:
        A list of (start, end) tuples, 0-based and inclusive, in ascending order.
        Runs never overlap.
    """
    target = np.asarray(in_target, dtype=bool).tolist()
    allowed = np.asarray(interruptible, dtype=bool).tolist()
    n_minutes = len(target)

    runs = []
    position = 0
    while position < n_minutes:
        if not target[position]:
            position += 1
            continue

        start = last_target = position
        used = 0
        first_interruption = None
        cursor = position + 1
        while cursor < n_minutes:
            if target[cursor]:
                last_target = cursor
            elif allowed[cursor] and used < tolerance:
                used += 1
                if first_interruption is None:
                    first_interruption = cursor
            else:
                break
            cursor += 1

        if last_target - start + 1 >= min_length:
            runs.append((start, last_target))
            position = last_target + 1
        elif first_interruption is not None:
            position = first_interruption + 1
        else:
            position = cursor

    return runs


def true_runs(mask: np.ndarray) -> List[Tuple[int, int]]:
    """Find blocks of consecutive True values.

    Args:
        mask: A boolean array.

    Returns:
        A list of (start, end) tuples, 0-based and inclusive.
    """
    padded = np.concatenate(([0], np.asarray(mask, dtype=np.int8), [0]))
    edges = np.flatnonzero(np.diff(padded))
    return [(int(start), int(stop) - 1) for start, stop in edges.reshape(-1, 2)]
