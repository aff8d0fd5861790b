"""Custom exception hierarchy for ffv-gen."""


class FFVGenError(Exception):
    """Base exception for all ffv-gen errors."""


class ConfigurationError(FFVGenError):
    """Raised when configuration is unreadable, unparsable or invalid."""


class SinkError(FFVGenError):
    """Raised when a sink operation fails."""


class StoreConnectionError(SinkError):
    """Raised when the connection to the store cannot be opened."""


class UnreachableError(SinkError):
    """Raised when every liveness probe against the store failed."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"unable to ping ClickHouse DB for {attempts} times")
        self.attempts = attempts


class WriteError(SinkError):
    """Raised when a batch insert fails at any stage."""

    stage = "write"

    def __init__(self, message: str, table: str) -> None:
        super().__init__(message)
        self.table = table


class BeginFailed(WriteError):
    """Raised when a bulk insert transaction cannot be started."""

    stage = "begin"


class PrepareFailed(WriteError):
    """Raised when the insert statement cannot be prepared."""

    stage = "prepare"


class ExecuteFailed(WriteError):
    """Raised when a single row of a bulk insert cannot be executed.

    ``row_index`` is the 1-based position of the row in the batch.
    """

    stage = "execute"

    def __init__(self, message: str, table: str, row_index: int) -> None:
        super().__init__(message, table)
        self.row_index = row_index


class CommitFailed(WriteError):
    """Raised when a bulk insert cannot be committed."""

    stage = "commit"
