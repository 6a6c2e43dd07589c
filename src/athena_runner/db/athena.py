from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, Optional, Set, Type, TypeVar, Union

from athena_runner.db.backoff import next_wait_ms, should_retry
from athena_runner.db.gate import AdmissionGate
from athena_runner.db.models import (
    ExecutionRecord,
    ExecutionStatus,
    QueryRequestConfig,
    QueryState,
    ResultLocator,
    RetryConfig,
    RetryState,
)
from athena_runner.db.results import ResultStream, open_result_stream
from athena_runner.exceptions.errors import (
    CancellationError,
    ConfigurationError,
    ExecutionError,
    MetadataFetchError,
    RemoteCallError,
    SubmissionError,
)
from athena_runner.logging.logger import get_logger


log = get_logger("db.athena")

T = TypeVar("T")

DEFAULT_FAILURE_REASON = "FAILED: Execution Error"
CANCELLED_REASON = "FAILED: Query CANCELLED"


def build_start_params(query_text: str, config: QueryRequestConfig) -> Dict[str, Any]:
    result_cfg: Dict[str, Any] = {"OutputLocation": config.output_location}
    if config.encryption and config.encryption.option:
        enc: Dict[str, Any] = {"EncryptionOption": config.encryption.option}
        if config.encryption.kms_key_id:
            enc["KmsKey"] = config.encryption.kms_key_id
        result_cfg["EncryptionConfiguration"] = enc

    return {
        "QueryString": query_text,
        "ResultConfiguration": result_cfg,
        "QueryExecutionContext": {"Database": config.resolved_database},
        "WorkGroup": config.resolved_work_group,
    }


def classify_status(status: ExecutionStatus, execution_id: Optional[str] = None) -> bool:
    """Map an execution status to True (done), False (in flight) or ExecutionError."""
    if status.state in (QueryState.QUEUED, QueryState.RUNNING):
        return False
    if status.state == QueryState.SUCCEEDED:
        return True
    if status.state == QueryState.FAILED:
        raise ExecutionError(status.reason or DEFAULT_FAILURE_REASON, state="FAILED", execution_id=execution_id)
    if status.state == QueryState.CANCELLED:
        raise ExecutionError(CANCELLED_REASON, state="CANCELLED", execution_id=execution_id)
    raise ExecutionError(
        f"FAILED: Unknown State {status.raw_state}",
        state="UNKNOWN",
        execution_id=execution_id,
    )


class AthenaQueryController:
    """Submit / poll / cancel / fetch for Athena query executions.

    The controller keeps no execution state between calls: every check reads
    fresh metadata from Athena and the caller holds the execution id. boto3
    calls run in a worker thread and retry waits use asyncio.sleep, so a
    throttled lifecycle never blocks other work on the loop.

    When an AdmissionGate is attached, submit() takes a slot before calling
    Athena and the slot is given back once the lifecycle ends (success,
    failure or cancel). Callers that walk away from a query early should call
    release().
    """

    def __init__(self, athena: Any, s3: Any = None, gate: Optional[AdmissionGate] = None):
        self.athena = athena
        self.s3 = s3
        self.gate = gate
        self._admitted: Set[str] = set()

    # -----------------------------
    # Retry driver
    # -----------------------------
    async def _with_retry(
        self,
        operation: str,
        call: Callable[[], T],
        retry: RetryConfig,
        wrap: Type[RemoteCallError],
        extra: Optional[Dict[str, Any]] = None,
    ) -> T:
        state = RetryState()
        ctx = {**(extra or {}), "operation": operation}
        while True:
            try:
                return await asyncio.to_thread(call)
            except Exception as e:
                if should_retry(e, state.attempt_count, retry.max_attempts):
                    wait_ms = next_wait_ms(retry.base_wait_ms, state.attempt_count, retry.max_wait_ms)
                    state.attempt_count += 1
                    log.warning(
                        "Athena transient error, retrying",
                        extra={**ctx, "attempt": state.attempt_count, "wait_ms": wait_ms, "error": str(e)},
                    )
                    await asyncio.sleep(wait_ms / 1000.0)
                    continue

                log.error(
                    "Athena call failed",
                    extra={**ctx, "attempt": state.attempt_count, "error": str(e)},
                )
                raise wrap(f"Athena {operation} failed: {e}", cause=e) from e

    # -----------------------------
    # Lifecycle
    # -----------------------------
    async def submit(self, query_text: str, config: QueryRequestConfig) -> str:
        """Start a query execution and return its execution id.

        A retry after a transient error is a fresh StartQueryExecution call;
        if Athena had already accepted the first one the query runs twice.
        """
        config.validate()
        params = build_start_params(query_text, config)

        if self.gate is not None:
            await self.gate.acquire()

        log.info(
            "Athena start_query_execution",
            extra={
                "database": config.resolved_database,
                "workgroup": config.resolved_work_group,
                "output": config.output_location,
                "sql_head": query_text[:300],
            },
        )

        try:
            resp = await self._with_retry(
                "start_query_execution",
                lambda: self.athena.start_query_execution(**params),
                config.retry,
                SubmissionError,
            )
            qid = resp["QueryExecutionId"]
        except BaseException:
            if self.gate is not None:
                self.gate.release()
            raise

        if self.gate is not None:
            self._admitted.add(qid)
        log.info("Athena query submitted", extra={"query_execution_id": qid})
        return qid

    async def fetch_execution_metadata(self, handle: str, config: QueryRequestConfig) -> ExecutionRecord:
        resp = await self._with_retry(
            "get_query_execution",
            lambda: self.athena.get_query_execution(QueryExecutionId=handle),
            config.retry,
            MetadataFetchError,
            extra={"query_execution_id": handle},
        )
        return ExecutionRecord.from_response(handle, resp.get("QueryExecution") or {})

    async def get_status(self, handle: str, config: QueryRequestConfig) -> ExecutionStatus:
        record = await self.fetch_execution_metadata(handle, config)
        return record.status

    async def check_status(self, handle: str, config: QueryRequestConfig) -> bool:
        """Poll once. True when the query succeeded, False while queued/running.

        FAILED, CANCELLED and unrecognised states raise ExecutionError.
        A MetadataFetchError leaves the admission slot held; call release()
        if the lifecycle is abandoned.
        """
        status = await self.get_status(handle, config)
        try:
            done = classify_status(status, execution_id=handle)
        except ExecutionError as e:
            log.error(
                "Athena query did not succeed",
                extra={"query_execution_id": handle, "state": status.raw_state, "reason": e.reason},
            )
            self.release(handle)
            raise
        if done:
            self.release(handle)
        return done

    async def cancel(self, handle: str, config: QueryRequestConfig) -> None:
        """Stop a running query and release its admission slot.

        A CancellationError leaves the slot held; call release() if the
        lifecycle is abandoned.
        """
        # StopQueryExecution on an already finished query is accepted by Athena.
        log.info("Athena stop_query_execution", extra={"query_execution_id": handle})
        await self._with_retry(
            "stop_query_execution",
            lambda: self.athena.stop_query_execution(QueryExecutionId=handle),
            config.retry,
            CancellationError,
            extra={"query_execution_id": handle},
        )
        self.release(handle)

    def release(self, handle: str) -> None:
        """Give back the admission slot held by handle, if any."""
        if self.gate is None or handle not in self._admitted:
            return
        self._admitted.discard(handle)
        self.gate.release()

    async def open_result_stream(self, locator: Union[str, ResultLocator]) -> ResultStream:
        if self.s3 is None:
            raise ConfigurationError("S3 client is required to read query results")
        return await open_result_stream(self.s3, locator)
