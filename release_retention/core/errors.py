"""
Error types raised by the retention engine.

Record-level data problems never surface here; they are filtered out and
reported as validation issues. Only conditions that abort a whole run
are modelled as exceptions.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Categories of fatal retention failures."""
    INVALID_ARGUMENT = "invalid_argument"
    NO_DATA = "no_data"
    FETCH_FAILURE = "fetch_failure"


class RetentionError(Exception):
    """Base class for failures that abort a retention run."""
    kind: ErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidKeepCountError(RetentionError, ValueError):
    """Raised when keep_count is not a positive integer."""
    kind = ErrorKind.INVALID_ARGUMENT

    def __init__(self, keep_count: object):
        super().__init__(
            "keep_count must be a positive number. The number of releases to "
            f"keep per environment must be at least 1 (got {keep_count!r})."
        )
        self.param_name = "keep_count"
        self.keep_count = keep_count


class NoDataError(RetentionError):
    """Raised when one of the raw record collections is empty."""
    kind = ErrorKind.NO_DATA

    def __init__(self, collection: str):
        super().__init__(f"No {collection} found.")
        self.collection = collection


class DataFetchError(RetentionError):
    """Raised when the data source fails to deliver a record collection.

    The original exception is kept as ``__cause__``.
    """
    kind = ErrorKind.FETCH_FAILURE

    def __init__(self, collection: str, reason: Optional[str] = None):
        message = f"Failed to fetch {collection}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.collection = collection
