"""Python based runner."""

import itertools
import logging
import pathlib
from concurrent import futures
from typing import List, Optional, Sequence, Union

import numpy as np
import polars as pl
from rich import progress

from wearday.core import config, exceptions, models
from wearday.io.readers import readers
from wearday.io.writers import writers
from wearday.processing import (
    artifacts,
    bouts,
    days,
    intensity,
    nonwear,
    summary,
    validity,
)

logger = config.get_logger()


def run(
    input: Union[pathlib.Path, str],
    output: Optional[Union[pathlib.Path, str]] = None,
    processing_config: Optional[models.ProcessingConfig] = None,
    covariates: Optional[Union[pathlib.Path, str]] = None,
    id_column: str = "seqn",
    weekday_column: str = "paxday",
    index_column: Optional[str] = "paxn",
    count_column: str = "paxinten",
    subject_cutpoints: Optional[Union[pathlib.Path, str]] = None,
    cutpoint_columns: Optional[Sequence[str]] = None,
    n_jobs: int = 1,
    verbosity: int = logging.WARNING,
) -> writers.BatchResults:
    """Runs the main processing steps of wearday on a file or directory.

    The input is a table with one row per subject and minute, or a directory of
    such tables. Every table is split into per-subject series, every subject is
    processed independently, and the results are collected into one
    BatchResults object. Subjects with malformed data are rejected with a reason;
    they never abort the run.

    Args:
        input: Path to a .csv or .parquet table, or to a directory of them.
        output: Path of the summary table, ending in .csv or .parquet. A status
            table and a JSON file with the processing parameters are saved next to
            it. Nothing is saved when None.
        processing_config: The processing parameters. Defaults to
            ProcessingConfig().
        covariates: Optional path to a table of subject covariates, e.g.
            demographics, joined onto the summary by subject id.
        id_column: Column with the subject identifier, in both the input and the
            covariates table.
        weekday_column: Column with the weekday code.
        index_column: Column with the minute number, None if there is none.
        count_column: Column with the activity counts.
        subject_cutpoints: Optional path to a table of per-subject cutpoints,
            keyed by id_column. Subjects listed there are classified with their
            own cutpoints; all others use the cutpoints of processing_config.
        cutpoint_columns: The columns of subject_cutpoints holding the
            cutpoints, lowest first. Required with subject_cutpoints.
        n_jobs: Number of worker processes. Subjects are processed in this process
            when n_jobs is 1.
        verbosity: The logging level for the logger.

    Returns:
        The results of all subjects, sorted by subject id.

    Raises:
        ValueError: If n_jobs is smaller than 1, or the subject cutpoints are
            invalid for the configuration.
        InvalidFileTypeError: If the output is not a .csv or .parquet file.
        EmptyDirectoryError: If the input directory contains no tables.
    """
    logger.setLevel(verbosity)
    input = pathlib.Path(input)
    output = pathlib.Path(output) if output is not None else None
    processing_config = processing_config or models.ProcessingConfig()

    if n_jobs < 1:
        msg = "n_jobs must be at least 1."
        logger.error(msg)
        raise ValueError(msg)
    if output is not None:
        writers.BatchResults.validate_output(output=output)

    overrides = {}
    if subject_cutpoints is not None:
        if not cutpoint_columns:
            msg = "cutpoint_columns are required with subject_cutpoints."
            logger.error(msg)
            raise ValueError(msg)
        overrides = readers.read_subject_cutpoints(
            subject_cutpoints, cutpoint_columns, id_column=id_column
        )
        for cutpoints in overrides.values():
            processing_config.with_cutpoints(cutpoints)

    if input.is_dir():
        file_names = sorted(
            itertools.chain(input.glob("*.csv"), input.glob("*.parquet"))
        )
        if not file_names:
            raise exceptions.EmptyDirectoryError(
                f"Directory {input} contains no .csv or .parquet files."
            )
    else:
        file_names = [input]

    series: List[models.RawSeries] = []
    for file_name in file_names:
        series.extend(
            readers.split_subjects(
                readers.read_counts_table(file_name),
                id_column=id_column,
                weekday_column=weekday_column,
                index_column=index_column,
                count_column=count_column,
            )
        )

    series = [
        subject.model_copy(update={"cutpoints": overrides[subject.subject_id]})
        if subject.subject_id in overrides
        else subject
        for subject in series
    ]

    results = writers.BatchResults(
        results=process_batch(series, processing_config, n_jobs=n_jobs),
        processing_config=processing_config,
        covariates=(
            readers.read_counts_table(covariates) if covariates is not None else None
        ),
        covariate_id_column=id_column,
    )
    if output is not None:
        results.save_results(output=output)

    logger.info(
        "Processing of %s completed: %s subjects processed, %s rejected.",
        input,
        len(results.successes),
        len(results.rejections),
    )
    return results


def process_batch(
    series: Sequence[models.RawSeries],
    processing_config: models.ProcessingConfig,
    n_jobs: int = 1,
) -> List[models.SubjectResult]:
    """Processes many subjects, sequentially or on a pool of worker processes.

    Subjects share no state, so they may complete in any order. Exactly one
    result is collected per input series, including series that share a subject
    id, and the results are sorted by subject id. Series with the same id keep
    their input order.

    Args:
        series: The subjects' count series.
        processing_config: The processing parameters.
        n_jobs: Number of worker processes.

    Returns:
        One SubjectResult per input series, sorted by subject id.
    """
    results: List[Optional[models.SubjectResult]] = [None] * len(series)
    with progress.Progress(
        progress.SpinnerColumn(),
        progress.TextColumn("[progress.description]{task.description}"),
        progress.BarColumn(),
        progress.TaskProgressColumn(),
        console=None,
    ) as progress_bar:
        task = progress_bar.add_task("[cyan]Processing subjects...", total=len(series))

        if n_jobs == 1:
            for position, subject in enumerate(series):
                try:
                    results[position] = process_subject(subject, processing_config)
                except Exception as e:
                    results[position] = _failed(subject.subject_id, e)
                progress_bar.update(task, advance=1)
        else:
            with futures.ProcessPoolExecutor(max_workers=n_jobs) as executor:
                pending = {
                    executor.submit(process_subject, subject, processing_config): (
                        position
                    )
                    for position, subject in enumerate(series)
                }
                for future in futures.as_completed(pending):
                    position = pending[future]
                    try:
                        results[position] = future.result()
                    except Exception as e:
                        results[position] = _failed(series[position].subject_id, e)
                    progress_bar.update(task, advance=1)

    return sorted(
        (result for result in results if result is not None),
        key=lambda result: result.subject_id,
    )


def _failed(subject_id: str, error: Exception) -> models.SubjectResult:
    """Records a subject whose processing raised an unexpected error."""
    logger.error("Did not process subject: %s, Error: %s", subject_id, error)
    return models.SubjectResult(
        subject_id=subject_id, status="rejected", reason=str(error)
    )


def process_subject(
    series: models.RawSeries, processing_config: models.ProcessingConfig
) -> models.SubjectResult:
    """Computes the day summaries of one subject.

    The steps are: artifact correction, intensity classification, non-wear
    detection, day segmentation, bout detection per day, day validity, and the
    per-day or per-subject summary. The function has no side effects; a
    malformed series results in a rejected SubjectResult instead of an exception.

    Args:
        series: The subject's count series.
        processing_config: The processing parameters.

    Returns:
        The subject's result, with status 'success' or 'rejected'.
    """
    logger.debug("Processing subject %s.", series.subject_id)
    try:
        validate_series(series, processing_config)
        result = _summarize_subject(series, processing_config)
    except exceptions.InvalidSeriesError as e:
        logger.warning("Rejected subject %s: %s", series.subject_id, e)
        return models.SubjectResult(
            subject_id=series.subject_id, status="rejected", reason=str(e)
        )

    logger.info("Processing for subject %s completed.", series.subject_id)
    return result


def validate_series(
    series: models.RawSeries, processing_config: models.ProcessingConfig
) -> None:
    """Checks that a subject's series can be processed.

    Args:
        series: The subject's count series.
        processing_config: The processing parameters.

    Raises:
        InvalidSeriesError: If the series is empty, has missing or negative
            counts, has minute indices that are not strictly increasing in steps of
            one, has an invalid start day, has a different number of cutpoints than
            the configuration, or is shorter than one day while valid days are
            required.
    """
    counts = np.asarray(series.counts, dtype=float)
    if counts.size == 0:
        raise exceptions.InvalidSeriesError("The series contains no counts.")
    if np.isnan(counts).any():
        raise exceptions.InvalidSeriesError("The series contains missing counts.")
    if (counts < 0).any():
        raise exceptions.InvalidSeriesError(
            f"The series contains {int((counts < 0).sum())} negative counts."
        )
    if not 1 <= series.start_day <= 7:
        raise exceptions.InvalidSeriesError(
            f"Start day {series.start_day} is not a weekday code between 1 and 7."
        )
    if series.indices is not None:
        if len(series.indices) != counts.size:
            raise exceptions.InvalidSeriesError(
                "The series has a different number of indices and counts."
            )
        steps = np.diff(series.indices)
        if (steps <= 0).any():
            raise exceptions.InvalidSeriesError(
                "The minute indices are not monotonically increasing."
            )
        if (steps != 1).any():
            raise exceptions.InvalidSeriesError(
                "The minute indices are not contiguous."
            )
    if series.cutpoints is not None and (
        len(series.cutpoints) != len(processing_config.cutpoints)
    ):
        raise exceptions.InvalidSeriesError(
            f"The series has {len(series.cutpoints)} cutpoints, the configuration "
            f"has {len(processing_config.cutpoints)}."
        )
    if processing_config.required_valid_days > 0 and (
        counts.size < processing_config.day_length
    ):
        raise exceptions.InvalidSeriesError(
            f"The series is {counts.size} minutes long, shorter than one day of "
            f"{processing_config.day_length} minutes."
        )


def _summarize_subject(
    series: models.RawSeries, processing_config: models.ProcessingConfig
) -> models.SubjectResult:
    """Runs the processing steps on a validated series.

    The subject's own cutpoints, when present, replace those of the
    configuration for every step.

    Args:
        series: The subject's count series.
        processing_config: The processing parameters.

    Returns:
        The subject's successful result.
    """
    if series.cutpoints is not None:
        processing_config = processing_config.with_cutpoints(series.cutpoints)
    raw = np.asarray(series.counts, dtype=float)
    correction = artifacts.correct_artifacts(
        raw,
        threshold=processing_config.artifact_threshold,
        action=processing_config.artifact_action,
    )
    bands = intensity.classify_intensity(
        correction.corrected, processing_config.cutpoints
    )
    bands[correction.excluded] = intensity.MISSING_BAND
    wear, episodes = nonwear.detect_nonwear(
        correction.corrected,
        window=processing_config.nonwear_window,
        tolerance=processing_config.nonwear_tolerance,
        upper_bound=processing_config.nonwear_tolerance_upper_bound,
    )

    segments = days.segment_days(
        len(raw), series.start_day, processing_config.day_length
    )
    records = []
    subject_bouts = []
    for segment in segments:
        day_bouts = bouts.detect_day_bouts(
            bands, correction.corrected, wear, segment, processing_config
        )
        subject_bouts.extend(
            itertools.chain.from_iterable(day_bouts[t] for t in models.BOUT_TARGETS)
        )
        records.append(
            summary.summarize_day(
                subject_id=series.subject_id,
                segment=segment,
                raw=raw,
                corrected=correction.corrected,
                excluded=correction.excluded,
                artifact=correction.artifact,
                bands=bands,
                wear=wear,
                day_bouts=day_bouts,
                processing_config=processing_config,
            )
        )

    eligibility = validity.evaluate_eligibility(
        records,
        required_valid_days=processing_config.required_valid_days,
        required_valid_weekdays=processing_config.required_valid_weekdays,
        required_valid_weekend_days=processing_config.required_valid_weekend_days,
    )
    subject_rollup = (
        summary.rollup(records, eligibility, processing_config.rollup_reducers)
        if processing_config.output_granularity == "rollup"
        else None
    )

    n_epochs = len(raw)
    epochs = pl.DataFrame(
        {
            "index": (
                series.indices
                if series.indices is not None
                else np.arange(1, n_epochs + 1)
            ),
            "day": np.arange(n_epochs) // processing_config.day_length + 1,
            "weekday": days.weekday_labels(
                n_epochs, series.start_day, processing_config.day_length
            ),
            "raw": raw,
            "corrected": correction.corrected,
            "artifact": correction.artifact,
            "band": bands,
            "wear": wear,
        }
    )

    return models.SubjectResult(
        subject_id=series.subject_id,
        status="success",
        days=records,
        rollup=subject_rollup,
        eligibility=eligibility,
        nonwear_episodes=episodes,
        bouts=subject_bouts,
        epochs=epochs,
    )
