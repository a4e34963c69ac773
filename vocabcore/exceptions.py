from typing import Optional


class SchedulerError(Exception):
    """Base exception for faults detected by the scheduler core."""

    pass


class InvalidConfigurationError(SchedulerError):
    """Raised when scheduler options cannot be used, e.g. an empty step
    sequence where the algorithm must index into it."""

    pass


class UnknownCardStateError(SchedulerError):
    """Raised when a progress record carries a state the scheduler does not
    recognise. This is a data-integrity fault in the stored record."""

    pass


class CatalogLoadError(Exception):
    """Raised when a vocabulary catalog file cannot be read or validated."""

    def __init__(
        self, message: str, original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.original_exception = original_exception


class DatabaseError(Exception):
    """Base exception for database-related errors."""

    def __init__(
        self, message: str, original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.original_exception = original_exception


class DatabaseConnectionError(DatabaseError):
    """Raised for errors connecting to the database."""

    pass


class SchemaInitializationError(DatabaseError):
    """Raised for errors during schema setup."""

    pass


class ProgressOperationError(DatabaseError):
    """Raised for errors while reading or writing progress records."""

    pass


class MarshallingError(DatabaseError):
    """Indicates an error during data conversion between application models
    and DB format."""

    pass
