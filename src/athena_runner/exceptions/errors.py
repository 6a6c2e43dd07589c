from __future__ import annotations

from typing import Optional


class AthenaRunnerError(Exception):
    """Base exception for athena_runner."""


class ConfigurationError(AthenaRunnerError):
    pass


class TransientServiceError(AthenaRunnerError):
    """Throttling or scale-exhaustion signal from the query service."""


class RemoteCallError(AthenaRunnerError):
    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class SubmissionError(RemoteCallError):
    pass


class CancellationError(RemoteCallError):
    pass


class MetadataFetchError(RemoteCallError):
    pass


class ResultFetchError(RemoteCallError):
    pass


class ExecutionError(AthenaRunnerError):
    """Remote query reached FAILED, CANCELLED or an unrecognized state."""

    def __init__(self, message: str, *, state: str, execution_id: Optional[str] = None):
        super().__init__(message)
        self.reason = message
        self.state = state
        self.execution_id = execution_id
