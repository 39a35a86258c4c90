"""Combine minute-level results into per-day and per-subject summaries."""

from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np
import polars as pl

from wearday.core import config, models
from wearday.processing import validity

logger = config.get_logger()

IDENTIFIER_COLUMNS = ("subject_id", "day", "weekday", "valid_day")


def summarize_day(
    subject_id: str,
    segment: models.DaySegment,
    raw: np.ndarray,
    corrected: np.ndarray,
    excluded: np.ndarray,
    artifact: np.ndarray,
    bands: np.ndarray,
    wear: np.ndarray,
    day_bouts: Mapping[str, List[models.Bout]],
    processing_config: models.ProcessingConfig,
) -> models.SummaryRecord:
    """Summarize one day segment of a subject.

    Only wear minutes contribute to counts and band minutes. Minutes that are
    missing or whose artifact is excluded by the artifact action are wear time,
    but contribute to neither. Counts per minute are the counts divided by the
    wear minutes that contributed to them.

    Args:
        subject_id: Identifier of the subject.
        segment: The day segment.
        raw: The raw counts of the whole series.
        corrected: The corrected counts of the whole series.
        excluded: Mask of artifact minutes excluded from totals.
        artifact: Mask of all artifact minutes.
        bands: Band index of every minute.
        wear: Wear flag of every minute.
        day_bouts: The day's bouts, by target.
        processing_config: The run configuration.

    Returns:
        The SummaryRecord of the day.
    """
    day = slice(segment.start, segment.stop)
    day_wear = wear[day]
    day_bands = bands[day]
    counted = day_wear & (day_bands >= 0) & ~excluded[day]

    wear_minutes = int(day_wear.sum())
    counted_minutes = int(counted.sum())
    counts = float(corrected[day][counted].sum())

    band_minutes = {
        name: int(np.sum(counted & (day_bands == index)))
        for index, name in enumerate(processing_config.names)
    }
    group_minutes = {}
    for group in models.BAND_GROUPS:
        lowest, highest = processing_config.band_range(group)
        group_minutes[group] = int(
            np.sum(counted & (day_bands >= lowest) & (day_bands <= highest))
        )

    return models.SummaryRecord(
        subject_id=subject_id,
        day=segment.day,
        weekday=segment.weekday,
        valid_day=validity.is_valid_day(
            wear_minutes,
            processing_config.weartime_minimum,
            processing_config.weartime_upper_limit,
        ),
        wear_minutes=wear_minutes,
        nonwear_minutes=segment.length - wear_minutes,
        artifact_minutes=int(artifact[day].sum()),
        raw_counts=float(raw[day][day_wear].sum()),
        counts=counts,
        cpm=counts / counted_minutes if counted_minutes else None,
        band_minutes=band_minutes,
        group_minutes=group_minutes,
        bout_minutes={
            target: sum(bout.duration for bout in found)
            for target, found in day_bouts.items()
        },
        bout_counts={target: len(found) for target, found in day_bouts.items()},
    )


def records_to_frame(records: Sequence[models.SummaryRecord]) -> pl.DataFrame:
    """Converts day records into a table with one row per day.

    Args:
        records: The day records.

    Returns:
        A polars DataFrame; empty when there are no records.
    """
    if not records:
        return pl.DataFrame()
    return pl.from_dicts(
        [record.to_row() for record in records], infer_schema_length=None
    )


def rollup(
    records: Sequence[models.SummaryRecord],
    eligibility: models.Eligibility,
    reducers: Optional[Dict[str, models.Reducer]] = None,
) -> models.RollupRecord:
    """Reduce a subject's day records to one record over its valid days.

    Every numeric column of the day table is reduced with its reducer ('mean'
    unless listed in reducers). Invalid days are excluded from all reductions;
    without valid days every value is None. Reducing the per-day table of the
    valid days by mean gives the same values as this function.

    Args:
        records: The subject's day records. Must not be empty.
        eligibility: The subject's eligibility.
        reducers: Reducer per column, 'mean' or 'sum'.

    Returns:
        The subject's RollupRecord.

    Raises:
        ValueError: If there are no records or a reducer names an unknown column.
    """
    if not records:
        raise ValueError("At least one day record is required for a rollup.")
    reducers = reducers or {}

    frame = records_to_frame(records)
    value_columns = [
        column for column in frame.columns if column not in IDENTIFIER_COLUMNS
    ]
    unknown = set(reducers) - set(value_columns)
    if unknown:
        raise ValueError(f"Unknown rollup columns: {sorted(unknown)}")

    valid_frame = frame.filter(pl.col("valid_day"))
    if valid_frame.is_empty():
        values: Dict[str, Optional[float]] = {column: None for column in value_columns}
    else:
        reduced = valid_frame.select(
            [
                getattr(pl.col(column), reducers.get(column, "mean"))()
                for column in value_columns
            ]
        )
        values = reduced.row(0, named=True)

    logger.debug(
        "Rollup of subject %s over %s valid days.",
        records[0].subject_id,
        valid_frame.height,
    )
    return models.RollupRecord(
        subject_id=records[0].subject_id,
        total_days=len(records),
        valid_days=eligibility.valid_days,
        eligible=eligibility.eligible,
        values=values,
    )
