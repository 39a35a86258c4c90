"""Read tables of minute-level activity counts."""

import pathlib
from typing import Dict, List, Optional, Sequence, Tuple, Union

import polars as pl

from wearday.core import config, exceptions, models
from wearday.processing import intensity

logger = config.get_logger()

VALID_FILE_TYPES = (".csv", ".parquet")


def read_counts_table(file_name: Union[pathlib.Path, str]) -> pl.DataFrame:
    """Read a table of activity counts from a .csv or .parquet file.

    Args:
        file_name: The path to the file.

    Returns:
        The table as a polars DataFrame.

    Raises:
        InvalidFileTypeError: If the file is not a .csv or .parquet file.
    """
    path = pathlib.Path(file_name)
    logger.debug("Reading counts table: %s", path)
    if path.suffix == ".csv":
        return pl.read_csv(path)
    if path.suffix == ".parquet":
        return pl.read_parquet(path)
    raise exceptions.InvalidFileTypeError(
        f"The extension: {path.suffix} is not supported. "
        f"Please provide one of {VALID_FILE_TYPES}."
    )


def split_subjects(
    data_frame: pl.DataFrame,
    id_column: str = "seqn",
    weekday_column: str = "paxday",
    index_column: Optional[str] = "paxn",
    count_column: str = "paxinten",
) -> List[models.RawSeries]:
    """Split a multi-subject table into one series per subject.

    Rows keep the order they have in the table, so a series whose minute indices
    are out of order is rejected later instead of being silently re-sorted. The
    default column names are those of the NHANES 2003-2004 physical activity
    monitor files.

    Args:
        data_frame: The table with one row per subject and minute.
        id_column: Column with the subject identifier.
        weekday_column: Column with the weekday code, 1=Sunday ... 7=Saturday.
        index_column: Column with the minute number, or None if there is none.
        count_column: Column with the activity counts.

    Returns:
        One RawSeries per subject, in order of first appearance.

    Raises:
        MissingColumnError: If a required column is not in the table.
    """
    required = [
        column
        for column in (id_column, weekday_column, index_column, count_column)
        if column is not None
    ]
    missing = [column for column in required if column not in data_frame.columns]
    if missing:
        raise exceptions.MissingColumnError(
            f"Columns {missing} not found in table with columns {data_frame.columns}."
        )

    series = [
        models.RawSeries.from_data_frame(
            subject_id=subject_frame[id_column][0],
            data_frame=subject_frame,
            weekday_column=weekday_column,
            index_column=index_column,
            count_column=count_column,
        )
        for subject_frame in data_frame.partition_by(id_column, maintain_order=True)
    ]
    logger.debug("Split table into %s subjects.", len(series))
    return series


def read_subject_cutpoints(
    file_name: Union[pathlib.Path, str],
    cutpoint_columns: Sequence[str],
    id_column: str = "seqn",
) -> Dict[str, Tuple[float, ...]]:
    """Read intensity cutpoints that differ between subjects.

    Every row holds one subject's cutpoints, lowest first, in cutpoint_columns.
    For example, a table with the columns seqn, c1, c2, mvpa and c4 gives every
    subject its own MVPA threshold.

    Args:
        file_name: Path to a .csv or .parquet table.
        cutpoint_columns: The columns holding the cutpoints, in ascending order.
        id_column: Column with the subject identifier.

    Returns:
        A dictionary from subject id to that subject's cutpoints.

    Raises:
        MissingColumnError: If a column is not in the table.
        ValueError: If a subject's cutpoints are missing, negative or not
            strictly ascending.
    """
    data_frame = read_counts_table(file_name)
    missing = [
        column
        for column in (id_column, *cutpoint_columns)
        if column not in data_frame.columns
    ]
    if missing:
        raise exceptions.MissingColumnError(
            f"Columns {missing} not found in cutpoint table {file_name}."
        )

    cutpoints = {}
    for row in data_frame.select(id_column, *cutpoint_columns).iter_rows():
        subject_id, values = str(row[0]), row[1:]
        if any(value is None for value in values):
            raise ValueError(f"Subject {subject_id} has missing cutpoints.")
        try:
            intensity.validate_cutpoints(values)
        except ValueError as e:
            raise ValueError(f"Invalid cutpoints for subject {subject_id}: {e}")
        cutpoints[subject_id] = tuple(float(value) for value in values)

    logger.debug("Read cutpoints of %s subjects from %s", len(cutpoints), file_name)
    return cutpoints
