"""Module containing the output classes for writing data to files."""

import datetime
import json
import pathlib
from typing import List, Optional

import polars as pl
import pydantic

from wearday.core import config, exceptions, models
from wearday.processing import summary

VALID_FILE_TYPES = (".csv", ".parquet")

logger = config.get_logger()


def merge_covariates(
    summary_frame: pl.DataFrame,
    covariates: pl.DataFrame,
    id_column: str = "subject_id",
) -> pl.DataFrame:
    """Join subject covariates, such as demographics, onto a summary table.

    Subjects without covariates are kept with null covariate values.

    Args:
        summary_frame: The summary table, with a 'subject_id' column.
        covariates: The covariate table, one row per subject.
        id_column: The subject identifier column of the covariate table.

    Returns:
        The summary table with the covariate columns appended.

    Raises:
        MissingColumnError: If the covariate table has no id_column.
    """
    if id_column not in covariates.columns:
        raise exceptions.MissingColumnError(
            f"Column {id_column} not found in covariates."
        )
    if summary_frame.is_empty():
        return summary_frame
    covariates = covariates.with_columns(pl.col(id_column).cast(pl.Utf8)).rename(
        {id_column: "subject_id"}
    )
    return summary_frame.join(covariates, on="subject_id", how="left")


class BatchResults(pydantic.BaseModel):
    """Dataclass containing results of orchestrator.run()."""

    model_config = pydantic.ConfigDict(arbitrary_types_allowed=True)

    results: List[models.SubjectResult]
    processing_config: models.ProcessingConfig
    covariates: Optional[pl.DataFrame] = None
    covariate_id_column: str = "subject_id"

    @property
    def successes(self) -> List[models.SubjectResult]:
        """Results of the subjects that were processed."""
        return [result for result in self.results if result.status == "success"]

    @property
    def rejections(self) -> List[models.SubjectResult]:
        """Results of the subjects that were rejected."""
        return [result for result in self.results if result.status == "rejected"]

    def summary_frame(self) -> pl.DataFrame:
        """Builds the summary table of all processed subjects.

        Returns:
            One row per day in 'per_day' mode, one row per subject in 'rollup'
            mode, with covariates joined when they were provided.
        """
        if self.processing_config.output_granularity == "rollup":
            rows = [
                result.rollup.to_row()
                for result in self.successes
                if result.rollup is not None
            ]
            frame = pl.DataFrame()
            if rows:
                frame = pl.from_dicts(rows, infer_schema_length=None)
        else:
            frames = [
                summary.records_to_frame(result.days)
                for result in self.successes
                if result.days
            ]
            frame = (
                pl.concat(frames, how="diagonal_relaxed") if frames else pl.DataFrame()
            )

        if self.covariates is not None:
            frame = merge_covariates(frame, self.covariates, self.covariate_id_column)
        return frame

    def status_frame(self) -> pl.DataFrame:
        """Builds a table with the processing status of every subject."""
        return pl.DataFrame(
            {
                "subject_id": [result.subject_id for result in self.results],
                "status": [result.status for result in self.results],
                "reason": [result.reason for result in self.results],
                "total_days": [len(result.days) for result in self.results],
                "valid_days": [
                    result.eligibility.valid_days if result.eligibility else None
                    for result in self.results
                ],
                "eligible": [
                    result.eligibility.eligible if result.eligibility else None
                    for result in self.results
                ],
            },
            schema={
                "subject_id": pl.Utf8,
                "status": pl.Utf8,
                "reason": pl.Utf8,
                "total_days": pl.Int64,
                "valid_days": pl.Int64,
                "eligible": pl.Boolean,
            },
        )

    def save_results(self, output: pathlib.Path) -> None:
        """Save the summary and status tables as csv or parquet files.

        The status table is saved next to the summary, with '_status' appended to
        the file name. The processing parameters are saved as JSON.

        Args:
            output: The path and file name of the summary table, either a .csv or
                a .parquet file.
        """
        logger.debug("Saving results.")
        self.validate_output(output=output)
        output.parent.mkdir(parents=True, exist_ok=True)
        status_output = output.with_name(f"{output.stem}_status{output.suffix}")

        for frame, path in (
            (self.summary_frame(), output),
            (self.status_frame(), status_output),
        ):
            if output.suffix == ".csv":
                frame.write_csv(path, separator=",")
            elif output.suffix == ".parquet":
                frame.write_parquet(path)

        logger.info("Results saved in: %s", output)
        self.save_config_as_json(output)

    def save_config_as_json(self, output_path: pathlib.Path) -> None:
        """Save processing parameters as a JSON configuration file.

        Args:
            output_path: Path where the data file was saved. The JSON file will use
                the same name but with .json extension.
        """
        config_data = {
            "processing_time": datetime.datetime.now().isoformat(timespec="seconds"),
            "wearday_version": config.get_version(),
            "processing_parameters": self.processing_config.model_dump(mode="json"),
        }

        config_path = output_path.with_suffix(".json")

        with open(config_path, "w") as f:
            json.dump(config_data, f, indent=4)

        logger.debug("Configuration saved in: %s", config_path)

    @classmethod
    def validate_output(cls, output: pathlib.Path) -> None:
        """Validates that the output path is a valid format.

        Args:
            output: the name of the file to be saved, and the directory it will
                be saved in. Must be a .csv or .parquet file.

        Raises:
            InvalidFileTypeError: If the output file path ends with any extension
                other than csv or parquet.
        """
        if output.suffix not in VALID_FILE_TYPES:
            raise exceptions.InvalidFileTypeError(
                f"The extension: {output.suffix} is not supported."
                "Please save the file as .csv or .parquet",
            )
