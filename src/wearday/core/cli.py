"""CLI for wearday."""

import logging
import pathlib
from enum import Enum
from typing import Any, Dict, Optional

import pydantic
import typer

from wearday.core import config, exceptions, models

logger = config.get_logger()
app = typer.Typer(
    help="Summarize minute-level activity counts into per-day wear time, "
    "intensity and bout statistics.",
)


class OutputGranularity(str, Enum):
    """Valid output granularities of the summary table."""

    per_day = "per_day"
    rollup = "rollup"


class ArtifactAction(str, Enum):
    """Setting an artifact action class for typer.

    This class is used to define the literal types that are allowed for
    artifact handling, and parsing the strings for the orchestrator.
    """

    flag = "flag"
    missing = "missing"
    replace = "replace"
    cap = "cap"


def version_check(version: bool) -> None:
    """Print the current version of wearday and exit."""
    if version:
        typer.echo(f"Wearday version: {config.get_version()}")
        raise typer.Exit()


def _parse_cutpoints(cutpoints: str) -> tuple[float, ...]:
    """Parse the cutpoint string into a tuple of floats.

    Args:
        cutpoints: Space-separated cutpoint values.

    Returns:
        The cutpoints as a tuple of floats.

    Raises:
        typer.BadParameter: If a value cannot be parsed.
    """
    try:
        return tuple(float(part) for part in cutpoints.strip().split())
    except ValueError:
        raise typer.BadParameter(f"Invalid float in cutpoints: {cutpoints}")


def _build_config(
    config_file: Optional[pathlib.Path], overrides: Dict[str, Any]
) -> models.ProcessingConfig:
    """Combine a configuration file with the options given on the command line.

    Args:
        config_file: Optional JSON configuration file.
        overrides: Options given on the command line; None values are ignored.

    Returns:
        The validated configuration.

    Raises:
        typer.BadParameter: If the resulting configuration is invalid.
    """
    base = (
        models.ProcessingConfig.from_json(config_file)
        if config_file is not None
        else models.ProcessingConfig()
    )
    options = base.model_dump(exclude_unset=True) | {
        name: value for name, value in overrides.items() if value is not None
    }
    try:
        return models.ProcessingConfig(**options)
    except pydantic.ValidationError as e:
        raise typer.BadParameter(str(e))


@app.command()
def main(
    input: pathlib.Path = typer.Argument(
        ..., help="Path to the input table or directory of tables.", exists=True
    ),
    output: pathlib.Path = typer.Option(
        None,
        "-o",
        "--output",
        help="Path where the summary will be saved. Supports .csv and .parquet.",
    ),
    config_file: pathlib.Path = typer.Option(
        None,
        "--config",
        help="JSON file with processing parameters. Command line options take "
        "precedence.",
        exists=True,
    ),
    cutpoints: str = typer.Option(
        None,
        "-c",
        "--cutpoints",
        help="Space-separated, ascending intensity cutpoints. "
        "Example: -c '100 760 2020 5999'",
    ),
    output_granularity: OutputGranularity = typer.Option(
        None,
        "-g",
        "--granularity",
        help="One summary row per day ('per_day') or per subject ('rollup').",
        case_sensitive=False,
    ),
    artifact_action: ArtifactAction = typer.Option(
        None,
        "-a",
        "--artifact-action",
        help="How to handle counts above the artifact threshold. "
        "Choose from 'flag', 'missing', 'replace', or 'cap'.",
        case_sensitive=False,
    ),
    nonwear_window: int = typer.Option(
        None,
        "--nonwear-window",
        help="Minimum minutes of zero counts that count as non-wear.",
        min=1,
    ),
    nonwear_tolerance: int = typer.Option(
        None,
        "--nonwear-tolerance",
        help="Non-zero minutes tolerated inside a non-wear episode.",
        min=0,
    ),
    required_valid_days: int = typer.Option(
        None,
        "--valid-days",
        help="Valid days required for a subject to be eligible.",
        min=0,
    ),
    covariates: pathlib.Path = typer.Option(
        None,
        "--covariates",
        help="Table of subject covariates to join onto the summary.",
        exists=True,
    ),
    id_column: str = typer.Option(
        "seqn", "--id-column", help="Column with the subject identifier."
    ),
    subject_cutpoints: pathlib.Path = typer.Option(
        None,
        "--subject-cutpoints",
        help="Table of per-subject cutpoints, keyed by the id column.",
        exists=True,
    ),
    cutpoint_columns: str = typer.Option(
        None,
        "--cutpoint-columns",
        help="Space-separated columns of the subject cutpoint table, lowest "
        "cutpoint first. Example: --cutpoint-columns 'c1 c2 mvpa c4'",
    ),
    n_jobs: int = typer.Option(
        1,
        "-j",
        "--jobs",
        help="Number of worker processes.",
        min=1,
    ),
    verbosity: bool = typer.Option(
        False,
        "-v",
        "--verbosity",
        help="Determines the level of verbosity. Use -v for DEBUG. "
        "Defaults to INFO if not included.",
    ),
    version: bool = typer.Option(
        False,
        "-V",
        "--version",
        help="Print the current version of wearday and exit.",
        is_eager=True,
        callback=version_check,
    ),
) -> None:
    """Run wearday orchestrator with command line arguments."""
    from wearday.core import orchestrator

    log_level = logging.INFO
    if verbosity:
        log_level = logging.DEBUG
    logger.setLevel(log_level)

    processing_config = _build_config(
        config_file,
        {
            "cutpoints": _parse_cutpoints(cutpoints) if cutpoints else None,
            "output_granularity": (
                output_granularity.value if output_granularity else None
            ),
            "artifact_action": artifact_action.value if artifact_action else None,
            "nonwear_window": nonwear_window,
            "nonwear_tolerance": nonwear_tolerance,
            "required_valid_days": required_valid_days,
        },
    )

    logger.debug("Running wearday. arguments given: %s", locals())
    try:
        orchestrator.run(
            input=input,
            output=output,
            processing_config=processing_config,
            covariates=covariates,
            id_column=id_column,
            subject_cutpoints=subject_cutpoints,
            cutpoint_columns=(
                tuple(cutpoint_columns.split()) if cutpoint_columns else None
            ),
            n_jobs=n_jobs,
            verbosity=log_level,
        )
    except (
        exceptions.EmptyDirectoryError,
        exceptions.InvalidFileTypeError,
        exceptions.MissingColumnError,
        ValueError,
    ) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
