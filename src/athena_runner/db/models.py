from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from athena_runner.config.settings import Settings
from athena_runner.exceptions.errors import ConfigurationError


DEFAULT_DATABASE = "default"
DEFAULT_WORK_GROUP = "primary"

DEFAULT_BASE_WAIT_MS = 200
DEFAULT_MAX_WAIT_MS = 10000
DEFAULT_MAX_ATTEMPTS = 10


@dataclass(frozen=True)
class EncryptionConfig:
    option: str  # SSE_S3 | SSE_KMS | CSE_KMS
    kms_key_id: Optional[str] = None


@dataclass(frozen=True)
class RetryConfig:
    base_wait_ms: int = DEFAULT_BASE_WAIT_MS
    max_wait_ms: int = DEFAULT_MAX_WAIT_MS
    max_attempts: int = DEFAULT_MAX_ATTEMPTS


@dataclass(frozen=True)
class QueryRequestConfig:
    """Per-call settings for one query lifecycle.

    database / work_group may be left empty; defaults are substituted when the
    request is built and the config itself is never modified.
    """

    output_location: str
    database: Optional[str] = None
    work_group: Optional[str] = None
    encryption: Optional[EncryptionConfig] = None
    retry: RetryConfig = field(default_factory=RetryConfig)

    @property
    def resolved_database(self) -> str:
        return self.database or DEFAULT_DATABASE

    @property
    def resolved_work_group(self) -> str:
        return self.work_group or DEFAULT_WORK_GROUP

    def validate(self) -> None:
        if not (self.output_location or "").strip():
            raise ConfigurationError("output location is required (ATHENA_OUTPUT_LOCATION)")

    @classmethod
    def from_settings(cls, settings: Settings) -> "QueryRequestConfig":
        encryption = None
        if settings.athena_encryption_option:
            encryption = EncryptionConfig(
                option=settings.athena_encryption_option,
                kms_key_id=settings.athena_kms_key or None,
            )
        return cls(
            output_location=settings.athena_output_location,
            database=settings.athena_database,
            work_group=settings.athena_workgroup,
            encryption=encryption,
            retry=RetryConfig(
                base_wait_ms=settings.retry_base_wait_ms,
                max_wait_ms=settings.retry_max_wait_ms,
                max_attempts=settings.retry_max_attempts,
            ),
        )


@dataclass
class RetryState:
    attempt_count: int = 0


class QueryState(str, Enum):
    """Execution states reported by Athena, plus a catch-all."""

    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"


TERMINAL_STATES = frozenset({QueryState.SUCCEEDED, QueryState.FAILED, QueryState.CANCELLED})


@dataclass(frozen=True)
class ExecutionStatus:
    state: QueryState
    raw_state: str
    reason: Optional[str] = None

    @classmethod
    def from_raw(cls, raw_state: Optional[str], reason: Optional[str] = None) -> "ExecutionStatus":
        raw = raw_state or ""
        try:
            state = QueryState(raw)
        except ValueError:
            state = QueryState.UNKNOWN
        return cls(state=state, raw_state=raw, reason=reason or None)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


@dataclass(frozen=True)
class ResultLocator:
    bucket: str
    key: str

    @property
    def uri(self) -> str:
        return f"s3://{self.bucket}/{self.key}"


@dataclass(frozen=True)
class ExecutionRecord:
    execution_id: str
    status: ExecutionStatus
    output_location: Optional[str] = None
    query: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_response(cls, execution_id: str, payload: Dict[str, Any]) -> "ExecutionRecord":
        """Map a GetQueryExecution ``QueryExecution`` payload."""
        status = payload.get("Status") or {}
        return cls(
            execution_id=payload.get("QueryExecutionId") or execution_id,
            status=ExecutionStatus.from_raw(status.get("State"), status.get("StateChangeReason")),
            output_location=(payload.get("ResultConfiguration") or {}).get("OutputLocation") or None,
            query=payload.get("Query"),
            raw=payload,
        )

    def result_uri(self, fallback_output_location: Optional[str] = None) -> str:
        if self.output_location:
            return self.output_location
        if not fallback_output_location:
            raise ConfigurationError(
                f"No output location known for query execution {self.execution_id}"
            )
        # Athena writes <output>/<execution id>.csv for SELECT statements.
        return fallback_output_location.rstrip("/") + f"/{self.execution_id}.csv"
