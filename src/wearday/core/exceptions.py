"""Custom exceptions for wearday."""

from wearday.core import config

logger = config.get_logger()


class LoggedException(Exception):
    """Base class that automatically logs messages."""

    def __init__(self, message: str) -> None:
        """Initialize a new instance of the LoggedException class.

        Args:
            message: The message to display.
        """
        logger.error(message)
        super().__init__(message)


class InvalidSeriesError(Exception):
    """A subject's count series cannot be processed.

    Not logged on construction: the orchestrator logs the rejection together with
    the subject id.
    """

    pass


class InvalidFileTypeError(LoggedException):
    """Wearday did not expect this file extension."""

    pass


class EmptyDirectoryError(LoggedException):
    """No .csv or .parquet files were found in the directory."""

    pass


class MissingColumnError(LoggedException):
    """The input table does not contain a required column."""

    pass
