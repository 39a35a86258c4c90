"""Test the processing of subjects and batches."""

import json
import logging
import pathlib

import numpy as np
import polars as pl
import pytest
import pytest_mock

from wearday.core import exceptions, models, orchestrator
from wearday.processing import summary

DAY = 1440


def _day_series(counts: np.ndarray, subject_id: str = "1") -> models.RawSeries:
    """A series starting on a Monday without minute indices."""
    return models.RawSeries(subject_id=subject_id, counts=counts, start_day=2)


def test_process_subject_week(
    week_series: models.RawSeries, nhanes_config: models.ProcessingConfig
) -> None:
    """Test the day records, episodes and bouts of a full week."""
    result = orchestrator.process_subject(week_series, nhanes_config)

    assert result.status == "success"
    assert [record.day for record in result.days] == list(range(1, 8))
    assert [record.weekday for record in result.days] == list(range(1, 8))
    assert [record.wear_minutes for record in result.days] == [
        1440,
        540,
        1440,
        440,
        600,
        1440,
        240,
    ]
    assert [record.valid_day for record in result.days] == [
        True,
        False,
        True,
        False,
        True,
        True,
        False,
    ]
    assert result.eligibility == models.Eligibility(
        valid_days=4, valid_weekdays=3, valid_weekend_days=1, eligible=True
    )
    assert [episode.duration for episode in result.nonwear_episodes] == [
        900,
        1000,
        840,
        1200,
    ]
    assert [bout.target for bout in result.bouts] == ["active"] * 7
    assert [record.bout_minutes["active"] for record in result.days] == [
        record.wear_minutes for record in result.days
    ]
    assert result.rollup is None
    assert result.epochs.height == 7 * DAY
    assert result.epochs["weekday"][-1] == 7


def test_rollup_matches_day_table(
    week_series: models.RawSeries, nhanes_config: models.ProcessingConfig
) -> None:
    """The rollup equals the mean of the valid rows of the day table."""
    processing_config = models.ProcessingConfig(
        **(nhanes_config.model_dump() | {"output_granularity": "rollup"})
    )

    result = orchestrator.process_subject(week_series, processing_config)
    expected = (
        summary.records_to_frame(result.days)
        .filter(pl.col("valid_day"))
        .drop(list(summary.IDENTIFIER_COLUMNS))
        .mean()
        .row(0, named=True)
    )

    assert result.rollup is not None
    assert result.rollup.values == pytest.approx(expected)
    assert result.rollup.total_days == 7
    assert result.rollup.valid_days == 4


def test_flagged_artifacts_excluded_from_totals() -> None:
    """Flagged artifacts count as wear time but not as counts or bouts."""
    counts = np.full(DAY, 300.0)
    counts[100:105] = 30000
    processing_config = models.ProcessingConfig(artifact_action="flag")

    result = orchestrator.process_subject(_day_series(counts), processing_config)
    record = result.days[0]

    assert record.wear_minutes == DAY
    assert record.artifact_minutes == 5
    assert record.counts == 300 * (DAY - 5)
    assert record.raw_counts == 300 * (DAY - 5) + 30000 * 5
    assert record.cpm == 300
    assert sum(record.band_minutes.values()) == DAY - 5
    assert record.bout_counts["active"] == 2


def test_replaced_artifacts() -> None:
    """Replaced artifacts take the value of their neighbors."""
    counts = np.full(DAY, 300.0)
    counts[100:105] = 30000

    result = orchestrator.process_subject(
        _day_series(counts), models.ProcessingConfig()
    )
    record = result.days[0]

    assert record.artifact_minutes == 5
    assert record.counts == 300 * DAY
    assert record.bout_counts["active"] == 1


def test_short_series_without_required_days() -> None:
    """A partial day is summarized when no valid days are required."""
    processing_config = models.ProcessingConfig(required_valid_days=0)

    result = orchestrator.process_subject(
        _day_series(np.full(100, 300.0)), processing_config
    )

    assert result.status == "success"
    assert len(result.days) == 1
    assert result.days[0].wear_minutes == 100
    assert not result.days[0].valid_day
    assert result.eligibility.eligible


def _non_monotonic() -> models.RawSeries:
    indices = np.arange(1, DAY + 1)
    indices[[10, 11]] = indices[[11, 10]]
    return models.RawSeries(
        subject_id="1", counts=np.full(DAY, 300), start_day=1, indices=indices
    )


def _gapped() -> models.RawSeries:
    indices = np.arange(1, DAY + 1)
    indices[700:] += 1
    return models.RawSeries(
        subject_id="1", counts=np.full(DAY, 300), start_day=1, indices=indices
    )


def _with_counts(values: np.ndarray, start_day: int = 1) -> models.RawSeries:
    return models.RawSeries(subject_id="1", counts=values, start_day=start_day)


@pytest.mark.parametrize(
    "series, reason",
    [
        (_with_counts(np.array([], dtype=float)), "no counts"),
        (_with_counts(np.r_[np.full(DAY - 1, 300.0), np.nan]), "missing counts"),
        (_with_counts(np.r_[np.full(DAY - 1, 300), -5]), "1 negative counts"),
        (_with_counts(np.full(DAY, 300), start_day=8), "Start day 8"),
        (_non_monotonic(), "not monotonically increasing"),
        (_gapped(), "not contiguous"),
        (_with_counts(np.full(100, 300)), "shorter than one day"),
        (_with_counts(np.full(DAY, 30000)), "artifact"),
    ],
)
def test_rejected_subjects(series: models.RawSeries, reason: str) -> None:
    """Malformed series are rejected with a reason instead of raising."""
    result = orchestrator.process_subject(series, models.ProcessingConfig())

    assert result.status == "rejected"
    assert reason in result.reason
    assert result.days == []


def test_process_batch_sorted() -> None:
    """Results are sorted by subject id."""
    series = [_day_series(np.full(DAY, 300.0), subject_id) for subject_id in "bac"]

    result = orchestrator.process_batch(series, models.ProcessingConfig())

    assert [subject.subject_id for subject in result] == ["a", "b", "c"]


def test_process_batch_parallel(
    week_series: models.RawSeries, nhanes_config: models.ProcessingConfig
) -> None:
    """Worker processes give the same results as sequential processing."""
    series = [
        week_series,
        _day_series(np.full(DAY, 2500.0), "21006"),
        _with_counts(np.full(100, 300)),
    ]

    sequential = orchestrator.process_batch(series, nhanes_config)
    parallel = orchestrator.process_batch(series, nhanes_config, n_jobs=2)

    assert [subject.subject_id for subject in parallel] == ["1", "21005", "21006"]
    assert [subject.status for subject in parallel] == [
        "rejected",
        "success",
        "success",
    ]
    assert [subject.days for subject in parallel] == [
        subject.days for subject in sequential
    ]


@pytest.mark.parametrize("n_jobs", [1, 2])
def test_process_batch_duplicate_ids(n_jobs: int) -> None:
    """Series sharing a subject id each get a result, in input order."""
    series = [
        _day_series(np.full(DAY, 300.0), "7"),
        _day_series(np.full(2 * DAY, 300.0), "7"),
        _day_series(np.full(DAY, 300.0), "3"),
    ]

    result = orchestrator.process_batch(
        series, models.ProcessingConfig(), n_jobs=n_jobs
    )

    assert [subject.subject_id for subject in result] == ["3", "7", "7"]
    assert [len(subject.days) for subject in result] == [1, 1, 2]


def test_rejection_logged_once(caplog: pytest.LogCaptureFixture) -> None:
    """A rejected subject is logged once, as a warning."""
    orchestrator.process_subject(
        _with_counts(np.full(DAY, -1)), models.ProcessingConfig()
    )

    rejections = [
        record for record in caplog.records if "negative" in record.getMessage()
    ]
    assert [record.levelno for record in rejections] == [logging.WARNING]


def test_subject_cutpoints() -> None:
    """A subject's own MVPA cutpoint changes its MVPA minutes."""
    counts = np.full(DAY, 1800.0)
    own_cutpoints = models.RawSeries(
        subject_id="1", counts=counts, start_day=2, cutpoints=(1, 2, 1500, 16000)
    )

    default_result = orchestrator.process_subject(
        _day_series(counts), models.ProcessingConfig()
    )
    own_result = orchestrator.process_subject(
        own_cutpoints, models.ProcessingConfig()
    )

    assert default_result.days[0].group_minutes["mvpa"] == 0
    assert own_result.days[0].group_minutes["mvpa"] == DAY
    assert own_result.days[0].band_minutes["moderate"] == DAY
    assert own_result.days[0].bout_counts["mvpa"] == 1


def test_subject_cutpoints_wrong_length() -> None:
    """Subject cutpoints must match the number of configured cutpoints."""
    series = models.RawSeries(
        subject_id="1", counts=np.full(DAY, 300), start_day=1, cutpoints=(100, 760)
    )

    result = orchestrator.process_subject(series, models.ProcessingConfig())

    assert result.status == "rejected"
    assert "cutpoints" in result.reason


def test_process_batch_unexpected_error(mocker: pytest_mock.MockerFixture) -> None:
    """An unexpected error rejects only the affected subject."""
    mocker.patch.object(
        orchestrator, "_summarize_subject", side_effect=RuntimeError("boom")
    )

    result = orchestrator.process_batch(
        [_day_series(np.full(DAY, 300.0))], models.ProcessingConfig()
    )

    assert result[0].status == "rejected"
    assert result[0].reason == "boom"


def test_run_file(counts_csv: pathlib.Path, tmp_path: pathlib.Path) -> None:
    """Test running a table and saving the outputs."""
    output = tmp_path / "output" / "summary.csv"

    result = orchestrator.run(counts_csv, output=output)

    assert [subject.subject_id for subject in result.results] == ["21005", "21006"]
    assert output.exists()
    assert pl.read_csv(output).height == 8
    status = pl.read_csv(tmp_path / "output" / "summary_status.csv")
    assert status["status"].to_list() == ["success", "success"]
    with open(tmp_path / "output" / "summary.json") as f:
        saved = json.load(f)
    assert saved["processing_parameters"]["cutpoints"] == [100, 760, 2020, 5999]


def test_run_directory(counts_csv: pathlib.Path) -> None:
    """Every table of a directory is processed."""
    result = orchestrator.run(counts_csv.parent)

    assert len(result.successes) == 2
    assert result.summary_frame().height == 8


def test_run_covariates(
    counts_csv: pathlib.Path, tmp_path: pathlib.Path, demographics: pl.DataFrame
) -> None:
    """Covariates are joined onto the summary by subject id."""
    covariates = tmp_path / "demographics.csv"
    demographics.write_csv(covariates)
    processing_config = models.ProcessingConfig(output_granularity="rollup")

    result = orchestrator.run(
        counts_csv, processing_config=processing_config, covariates=covariates
    )
    frame = result.summary_frame()

    assert frame["subject_id"].to_list() == ["21005", "21006"]
    assert frame["male"].to_list() == [1, 0]


def test_run_empty_directory(tmp_path: pathlib.Path) -> None:
    """Test the error for a directory without tables."""
    with pytest.raises(exceptions.EmptyDirectoryError):
        orchestrator.run(tmp_path)


def test_run_bad_output(counts_csv: pathlib.Path, tmp_path: pathlib.Path) -> None:
    """Test the error for an unsupported output format."""
    with pytest.raises(exceptions.InvalidFileTypeError):
        orchestrator.run(counts_csv, output=tmp_path / "summary.txt")


def test_run_invalid_jobs(counts_csv: pathlib.Path) -> None:
    """Test the error for fewer than one worker."""
    with pytest.raises(ValueError, match="n_jobs"):
        orchestrator.run(counts_csv, n_jobs=0)


def test_run_subject_cutpoints(
    counts_csv: pathlib.Path, tmp_path: pathlib.Path
) -> None:
    """Subjects listed in the cutpoint table use their own cutpoints."""
    cutpoint_table = tmp_path / "cutpoints.csv"
    pl.DataFrame(
        {"seqn": [21006], "c1": [1], "c2": [2], "mvpa": [3000], "c4": [16000]}
    ).write_csv(cutpoint_table)

    default_frame = orchestrator.run(counts_csv).summary_frame()
    result = orchestrator.run(
        counts_csv,
        subject_cutpoints=cutpoint_table,
        cutpoint_columns=("c1", "c2", "mvpa", "c4"),
    ).summary_frame()

    assert default_frame.filter(pl.col("subject_id") == "21006")["mvpa_min"][0] == DAY
    assert result.filter(pl.col("subject_id") == "21006")["mvpa_min"][0] == 0
    assert result.filter(pl.col("subject_id") == "21005").equals(
        default_frame.filter(pl.col("subject_id") == "21005")
    )


def test_run_invalid_subject_cutpoints(
    counts_csv: pathlib.Path, tmp_path: pathlib.Path, mocker: pytest_mock.MockerFixture
) -> None:
    """Invalid subject cutpoints fail before any subject is processed."""
    cutpoint_table = tmp_path / "cutpoints.csv"
    pl.DataFrame({"seqn": [21006], "low": [2500], "high": [100]}).write_csv(
        cutpoint_table
    )
    mock_batch = mocker.patch.object(orchestrator, "process_batch")

    with pytest.raises(ValueError, match="21006"):
        orchestrator.run(
            counts_csv,
            subject_cutpoints=cutpoint_table,
            cutpoint_columns=("low", "high"),
        )
    mock_batch.assert_not_called()


def test_run_subject_cutpoints_without_columns(
    counts_csv: pathlib.Path, tmp_path: pathlib.Path
) -> None:
    """Test the error for a cutpoint table without cutpoint columns."""
    with pytest.raises(ValueError, match="cutpoint_columns"):
        orchestrator.run(counts_csv, subject_cutpoints=tmp_path / "cutpoints.csv")
