"""Fixtures used by pytest."""

import pathlib

import numpy as np
import polars as pl
import pytest

from wearday.core import models

DAY = 1440
NONWEAR_MINUTES_PER_DAY = (0, 900, 0, 1000, 840, 0, 1200)


@pytest.fixture
def week_counts() -> np.ndarray:
    """Seven days of light activity, some days starting with a block of zeros.

    The zero blocks give wear times of 1440, 540, 1440, 440, 600, 1440 and 240
    minutes.
    """
    counts = np.full(7 * DAY, 300)
    for day, minutes in enumerate(NONWEAR_MINUTES_PER_DAY):
        counts[day * DAY : day * DAY + minutes] = 0
    return counts


@pytest.fixture
def week_series(week_counts: np.ndarray) -> models.RawSeries:
    """A subject starting on a Sunday with seven days of counts."""
    return models.RawSeries(
        subject_id="21005",
        counts=week_counts,
        start_day=1,
        indices=np.arange(1, len(week_counts) + 1),
    )


@pytest.fixture
def nhanes_config() -> models.ProcessingConfig:
    """The parameters used for the NHANES 2003-2004 example."""
    return models.ProcessingConfig(
        cutpoints=(100, 760, 2020, 5999),
        nonwear_window=60,
        nonwear_tolerance=2,
        weartime_minimum=600,
        required_valid_days=4,
        bout_tolerance={"active": 2, "mvpa": 2, "vigorous": 2},
    )


@pytest.fixture
def counts_table(week_counts: np.ndarray) -> pl.DataFrame:
    """A two-subject table in the layout of the NHANES minute files."""
    n_minutes = len(week_counts)
    return pl.DataFrame(
        {
            "seqn": [21005] * n_minutes + [21006] * DAY,
            "paxday": np.concatenate(
                [np.repeat(np.arange(1, 8), DAY), np.full(DAY, 3)]
            ),
            "paxn": np.concatenate(
                [np.arange(1, n_minutes + 1), np.arange(1, DAY + 1)]
            ),
            "paxinten": np.concatenate([week_counts, np.full(DAY, 2500)]),
        }
    )


@pytest.fixture
def counts_csv(tmp_path: pathlib.Path, counts_table: pl.DataFrame) -> pathlib.Path:
    """The two-subject table saved as a csv file."""
    path = tmp_path / "input" / "NHANES_accel.csv"
    path.parent.mkdir()
    counts_table.write_csv(path)
    return path


@pytest.fixture
def demographics() -> pl.DataFrame:
    """Covariates for the subjects of the counts table."""
    return pl.DataFrame({"seqn": [21005, 21006], "male": [1, 0]})
