"""Internal data model."""

import datetime
import pathlib
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple, Union

import numpy as np
import polars as pl
import pydantic
from pydantic import BaseModel, field_validator, model_validator

from wearday.core import config
from wearday.processing import intensity

logger = config.get_logger()

ArtifactAction = Literal["flag", "missing", "replace", "cap"]
OutputGranularity = Literal["per_day", "rollup"]
Reducer = Literal["mean", "sum"]
BoutTarget = Literal["sedentary", "active", "mvpa", "vigorous"]

BOUT_TARGETS: Tuple[BoutTarget, ...] = ("sedentary", "active", "mvpa", "vigorous")
BAND_GROUPS = ("active", "mvpa")
DEFAULT_BAND_NAMES = ("sedentary", "light", "lifestyle", "moderate", "vigorous")
WEEKEND_DAYS = (1, 7)


class RawSeries(BaseModel):
    """One subject's minute-by-minute activity counts.

    Attributes:
        subject_id: Identifier of the subject.
        counts: Device counts, one per minute.
        start_day: Weekday code of the first minute, 1=Sunday ... 7=Saturday.
        indices: Optional minute numbers as recorded by the device.
        start_time: Optional timestamp of the first minute.
        cutpoints: Optional intensity cutpoints of this subject, replacing the
            cutpoints of the run. Must have as many values as the run's cutpoints.
    """

    model_config = pydantic.ConfigDict(arbitrary_types_allowed=True)

    subject_id: str
    counts: np.ndarray
    start_day: int
    indices: Optional[np.ndarray] = None
    start_time: Optional[datetime.datetime] = None
    cutpoints: Optional[Tuple[float, ...]] = None

    @field_validator("counts", "indices")
    def validate_one_dimensional(
        cls, v: Optional[np.ndarray]
    ) -> Optional[np.ndarray]:
        """Validate that the arrays are one-dimensional.

        Args:
            cls: The class.
            v: The array to validate.

        Returns:
            v: The array, if it is one-dimensional.

        Raises:
            ValueError: If the array has more than one dimension.
        """
        if v is not None and v.ndim != 1:
            raise ValueError("counts and indices must be one-dimensional arrays")
        return v

    @field_validator("cutpoints")
    def validate_cutpoints(
        cls, v: Optional[Tuple[float, ...]]
    ) -> Optional[Tuple[float, ...]]:
        """Validate that subject cutpoints are non-negative and strictly ascending."""
        if v is not None:
            intensity.validate_cutpoints(v)
        return v

    @classmethod
    def from_data_frame(
        cls,
        subject_id: Union[str, int],
        data_frame: pl.DataFrame,
        weekday_column: str = "paxday",
        index_column: Optional[str] = "paxn",
        count_column: str = "paxinten",
    ) -> "RawSeries":
        """Creates a series from one subject's rows of a counts table.

        Args:
            subject_id: The subject identifier.
            data_frame: The subject's rows, in recorded order.
            weekday_column: Column holding the weekday code. Only the first row is
                used.
            index_column: Column holding the minute number, or None if the table
                has no such column.
            count_column: Column holding the counts.

        Returns:
            The RawSeries of the subject.
        """
        indices = (
            data_frame[index_column].to_numpy() if index_column is not None else None
        )
        return RawSeries(
            subject_id=str(subject_id),
            counts=data_frame[count_column].to_numpy(),
            start_day=int(data_frame[weekday_column][0]),
            indices=indices,
        )


class BoutSettings(BaseModel):
    """Detection settings for one bout target.

    Attributes:
        min_length: Shortest run, in minutes, that is counted as a bout.
        tolerance: Number of interrupting minutes allowed inside one bout.
        tolerance_lower_bound: Lowest count an interrupting minute may have.
        tolerance_upper_bound: Highest count an interrupting minute may have, None
            for no limit.
    """

    min_length: int
    tolerance: int = 0
    tolerance_lower_bound: float = 0
    tolerance_upper_bound: Optional[float] = None


class ProcessingConfig(BaseModel):
    """Validated parameters of a processing run.

    The defaults follow the accelerometry package used for the NHANES 2003-2004
    physical activity monitor data.

    Attributes:
        cutpoints: Strictly ascending intensity cutpoints. k cutpoints define k+1
            bands; a count equal to a cutpoint belongs to the band starting there.
        band_names: Names of the k+1 bands. Defaults to sedentary, light,
            lifestyle, moderate, vigorous for four cutpoints and band_<i> otherwise.
        moderate_band: First band counted as moderate-to-vigorous activity.
            Defaults to the second to last band, and to band 1 with a single
            cutpoint.
        vigorous_band: First band counted as vigorous activity. Defaults to the
            last band.
        day_length: Minutes per day segment.
        nonwear_window: Shortest run of zero counts, in minutes, that is non-wear.
        nonwear_tolerance: Non-zero minutes allowed inside one non-wear episode.
        nonwear_tolerance_upper_bound: Highest count a tolerated non-zero minute
            may have.
        weartime_minimum: Fewest wear minutes of a valid day.
        weartime_maximum: Most wear minutes of a valid day. Defaults to day_length.
        active_bout_length: Minimum length of active, MVPA and vigorous bouts.
        sedentary_bout_length: Minimum length of sedentary bouts.
        bout_tolerance: Interrupting minutes allowed per bout, by target.
        bout_tolerance_lower_bound: Lowest count of an interrupting minute, by
            target.
        bout_tolerance_upper_bound: Highest count of an interrupting minute, by
            target. Sedentary bouts default to the second cutpoint minus one, and
            to no limit with a single cutpoint.
        artifact_threshold: Counts above this value are artifacts.
        artifact_action: One of 'flag', 'missing', 'replace', 'cap'.
        required_valid_days: Valid days needed for a subject to be eligible.
        required_valid_weekdays: Valid weekdays needed for eligibility.
        required_valid_weekend_days: Valid weekend days needed for eligibility.
        output_granularity: 'per_day' for one record per day, 'rollup' for one
            record per subject.
        rollup_reducers: Reducer per output column in rollup mode, 'mean' unless
            listed here.
    """

    model_config = pydantic.ConfigDict(frozen=True)

    cutpoints: Tuple[float, ...] = (100, 760, 2020, 5999)
    band_names: Optional[Tuple[str, ...]] = None
    moderate_band: Optional[int] = None
    vigorous_band: Optional[int] = None
    day_length: int = pydantic.Field(1440, gt=0)
    nonwear_window: int = pydantic.Field(60, gt=0)
    nonwear_tolerance: int = pydantic.Field(0, ge=0)
    nonwear_tolerance_upper_bound: float = pydantic.Field(99, ge=0)
    weartime_minimum: int = pydantic.Field(600, ge=0)
    weartime_maximum: Optional[int] = pydantic.Field(None, gt=0)
    active_bout_length: int = pydantic.Field(10, gt=0)
    sedentary_bout_length: int = pydantic.Field(30, gt=0)
    bout_tolerance: Dict[BoutTarget, pydantic.NonNegativeInt] = pydantic.Field(
        default_factory=dict
    )
    bout_tolerance_lower_bound: Dict[BoutTarget, pydantic.NonNegativeFloat] = (
        pydantic.Field(default_factory=dict)
    )
    bout_tolerance_upper_bound: Dict[BoutTarget, pydantic.NonNegativeFloat] = (
        pydantic.Field(default_factory=dict)
    )
    artifact_threshold: float = pydantic.Field(25000, gt=0)
    artifact_action: ArtifactAction = "replace"
    required_valid_days: int = pydantic.Field(1, ge=0)
    required_valid_weekdays: int = pydantic.Field(0, ge=0)
    required_valid_weekend_days: int = pydantic.Field(0, ge=0)
    output_granularity: OutputGranularity = "per_day"
    rollup_reducers: Dict[str, Reducer] = pydantic.Field(default_factory=dict)

    @field_validator("cutpoints")
    def validate_cutpoints(cls, v: Tuple[float, ...]) -> Tuple[float, ...]:
        """Validate that the cutpoints are non-negative and strictly ascending.

        Args:
            cls: The class.
            v: The cutpoints to validate.

        Returns:
            v: The cutpoints, if they are valid.

        Raises:
            ValueError: If no cutpoints are given, or they are negative or not
                strictly ascending.
        """
        intensity.validate_cutpoints(v)
        return v

    @model_validator(mode="after")
    def validate_bands(self) -> "ProcessingConfig":
        """Validate band names, band groups and wear time limits.

        Raises:
            ValueError: If band names do not match the cutpoints, a band group is
                out of range, or the wear time range is empty.
        """
        n_bands = len(self.cutpoints) + 1
        if self.band_names is not None:
            if len(self.band_names) != n_bands:
                raise ValueError(
                    f"{n_bands} band names are required for "
                    f"{len(self.cutpoints)} cutpoints."
                )
            if len(set(self.band_names)) != n_bands:
                raise ValueError("Band names must be unique.")
            if set(self.band_names) & set(BAND_GROUPS):
                raise ValueError(f"Band names may not be one of {BAND_GROUPS}.")
        if not 1 <= self.moderate_start <= self.vigorous_start < n_bands:
            raise ValueError(
                "Band groups must satisfy 1 <= moderate_band <= vigorous_band "
                f"< {n_bands}."
            )
        if self.weartime_minimum > self.weartime_upper_limit:
            raise ValueError("weartime_minimum must not exceed weartime_maximum.")
        unknown = set(self.rollup_reducers) - set(self.value_columns)
        if unknown:
            raise ValueError(f"Unknown rollup columns: {sorted(unknown)}")
        return self

    @property
    def names(self) -> Tuple[str, ...]:
        """The names of the intensity bands, lowest first."""
        if self.band_names is not None:
            return self.band_names
        if len(self.cutpoints) == len(DEFAULT_BAND_NAMES) - 1:
            return DEFAULT_BAND_NAMES
        return tuple(f"band_{index}" for index in range(len(self.cutpoints) + 1))

    @property
    def moderate_start(self) -> int:
        """Index of the first moderate-to-vigorous band."""
        if self.moderate_band is not None:
            return self.moderate_band
        return max(len(self.cutpoints) - 1, 1)

    @property
    def vigorous_start(self) -> int:
        """Index of the first vigorous band."""
        if self.vigorous_band is not None:
            return self.vigorous_band
        return len(self.cutpoints)

    @property
    def weartime_upper_limit(self) -> int:
        """Most wear minutes of a valid day."""
        if self.weartime_maximum is not None:
            return self.weartime_maximum
        return self.day_length

    @property
    def value_columns(self) -> Tuple[str, ...]:
        """Names of the numeric columns of the day summary table."""
        return (
            (
                "wear_minutes",
                "nonwear_minutes",
                "artifact_minutes",
                "raw_counts",
                "counts",
                "cpm",
            )
            + tuple(f"{name}_min" for name in self.names)
            + tuple(f"{group}_min" for group in BAND_GROUPS)
            + tuple(f"{target}_bout_min" for target in BOUT_TARGETS)
            + tuple(f"{target}_bouts" for target in BOUT_TARGETS)
        )

    def band_range(self, target: str) -> Tuple[int, int]:
        """Returns the inclusive range of band indices covered by a target.

        Args:
            target: One of the bout targets or band groups.

        Returns:
            The lowest and highest band index of the target.

        Raises:
            ValueError: If the target is unknown.
        """
        top = len(self.cutpoints)
        ranges = {
            "sedentary": (0, 0),
            "active": (1, top),
            "mvpa": (self.moderate_start, top),
            "vigorous": (self.vigorous_start, top),
        }
        if target not in ranges:
            raise ValueError(f"Unknown bout target: {target}")
        return ranges[target]

    def bout_settings(self, target: BoutTarget) -> BoutSettings:
        """Collects the bout detection settings of one target.

        Args:
            target: The bout target.

        Returns:
            The settings for that target.
        """
        if target == "sedentary":
            min_length = self.sedentary_bout_length
            default_upper: Optional[float] = (
                self.cutpoints[1] - 1 if len(self.cutpoints) > 1 else None
            )
        else:
            min_length = self.active_bout_length
            default_upper = None
        return BoutSettings(
            min_length=min_length,
            tolerance=self.bout_tolerance.get(target, 0),
            tolerance_lower_bound=self.bout_tolerance_lower_bound.get(target, 0),
            tolerance_upper_bound=self.bout_tolerance_upper_bound.get(
                target, default_upper
            ),
        )

    def with_cutpoints(self, cutpoints: Sequence[float]) -> "ProcessingConfig":
        """Returns a copy of the configuration with other cutpoints.

        Band names, band groups and bout settings are derived from the new
        cutpoints the same way as from the original ones.

        Args:
            cutpoints: The replacement cutpoints.

        Returns:
            The validated configuration with the replacement cutpoints.

        Raises:
            ValueError: If the number of cutpoints differs from the current
                configuration, or the cutpoints are invalid.
        """
        if len(cutpoints) != len(self.cutpoints):
            raise ValueError(
                f"Expected {len(self.cutpoints)} cutpoints, got {len(cutpoints)}."
            )
        return ProcessingConfig.model_validate(
            self.model_dump() | {"cutpoints": tuple(cutpoints)}
        )

    @classmethod
    def from_json(cls, path: Union[pathlib.Path, str]) -> "ProcessingConfig":
        """Loads and validates a configuration from a JSON file.

        Args:
            path: Path to the JSON file.

        Returns:
            The validated configuration.
        """
        logger.debug("Loading configuration from %s", path)
        return cls.model_validate_json(pathlib.Path(path).read_text())


class NonwearEpisode(BaseModel):
    """A maximal span of non-wear minutes, as 0-based inclusive positions."""

    start: int
    end: int

    @property
    def duration(self) -> int:
        """Length of the episode in minutes."""
        return self.end - self.start + 1


class Bout(BaseModel):
    """A sustained run of minutes within one bout target, inside one day.

    Attributes:
        target: The bout target, e.g. 'mvpa'.
        day: The 1-based day number the bout belongs to.
        start: 0-based position of the first minute.
        end: 0-based position of the last minute, inclusive.
    """

    target: str
    day: int
    start: int
    end: int

    @property
    def duration(self) -> int:
        """Length of the bout in minutes."""
        return self.end - self.start + 1


class DaySegment(BaseModel):
    """A day-sized slice [start, stop) of a subject's series."""

    day: int
    weekday: int
    start: int
    stop: int

    @property
    def length(self) -> int:
        """Number of minutes in the segment."""
        return self.stop - self.start

    @property
    def is_weekend(self) -> bool:
        """Whether the segment falls on a Saturday or Sunday."""
        return self.weekday in WEEKEND_DAYS


class SummaryRecord(BaseModel):
    """Summary of one day of one subject.

    Attributes:
        subject_id: Identifier of the subject.
        day: 1-based day number.
        weekday: Weekday code, 1=Sunday ... 7=Saturday.
        valid_day: Whether the wear time is within the accepted range.
        wear_minutes: Minutes outside of non-wear episodes.
        nonwear_minutes: Minutes inside non-wear episodes.
        artifact_minutes: Minutes with a count above the artifact threshold.
        raw_counts: Sum of the uncorrected counts over wear minutes.
        counts: Sum of the corrected counts over classified wear minutes.
        cpm: Counts per counted wear minute, None when no minute was counted.
        band_minutes: Wear minutes per intensity band.
        group_minutes: Wear minutes of the active and MVPA band groups.
        bout_minutes: Minutes spent in bouts, by bout target.
        bout_counts: Number of bouts, by bout target.
    """

    subject_id: str
    day: int
    weekday: int
    valid_day: bool
    wear_minutes: int
    nonwear_minutes: int
    artifact_minutes: int
    raw_counts: float
    counts: float
    cpm: Optional[float]
    band_minutes: Dict[str, int]
    group_minutes: Dict[str, int]
    bout_minutes: Dict[str, int]
    bout_counts: Dict[str, int]

    def to_row(self) -> Dict[str, Any]:
        """Flattens the record into a single table row."""
        row: Dict[str, Any] = {
            "subject_id": self.subject_id,
            "day": self.day,
            "weekday": self.weekday,
            "valid_day": self.valid_day,
            "wear_minutes": self.wear_minutes,
            "nonwear_minutes": self.nonwear_minutes,
            "artifact_minutes": self.artifact_minutes,
            "raw_counts": self.raw_counts,
            "counts": self.counts,
            "cpm": self.cpm,
        }
        row.update({f"{name}_min": value for name, value in self.band_minutes.items()})
        row.update(
            {f"{name}_min": value for name, value in self.group_minutes.items()}
        )
        row.update(
            {f"{name}_bout_min": value for name, value in self.bout_minutes.items()}
        )
        row.update({f"{name}_bouts": value for name, value in self.bout_counts.items()})
        return row


class Eligibility(BaseModel):
    """Subject-level valid day counts and the resulting eligibility."""

    valid_days: int
    valid_weekdays: int
    valid_weekend_days: int
    eligible: bool


class RollupRecord(BaseModel):
    """Summary of one subject, reduced over its valid days.

    Attributes:
        subject_id: Identifier of the subject.
        total_days: Number of day segments.
        valid_days: Number of valid day segments.
        eligible: Whether the subject has enough valid days.
        values: Reduced value per summary column, None without valid days.
    """

    subject_id: str
    total_days: int
    valid_days: int
    eligible: bool
    values: Dict[str, Optional[float]]

    def to_row(self) -> Dict[str, Any]:
        """Flattens the record into a single table row."""
        return {
            "subject_id": self.subject_id,
            "total_days": self.total_days,
            "valid_days": self.valid_days,
            "eligible": self.eligible,
        } | self.values


class SubjectResult(BaseModel):
    """Outcome of processing one subject.

    Successful results carry the day records (and the rollup record when
    requested), the detected non-wear episodes and bouts, and the epoch table with
    columns index, day, weekday, raw, corrected, artifact, band and wear.
    Rejected results carry only the reason.
    """

    model_config = pydantic.ConfigDict(arbitrary_types_allowed=True)

    subject_id: str
    status: Literal["success", "rejected"]
    reason: Optional[str] = None
    days: List[SummaryRecord] = []
    rollup: Optional[RollupRecord] = None
    eligibility: Optional[Eligibility] = None
    nonwear_episodes: List[NonwearEpisode] = []
    bouts: List[Bout] = []
    epochs: Optional[pl.DataFrame] = None
