"""Athena query lifecycle: submit, poll, cancel and stream results.

Modules:
  - athena  : AthenaQueryController (remote calls + retry driver)
  - backoff : retry eligibility / wait computation
  - gate    : AdmissionGate bounding concurrent lifecycles
  - results : S3 result streaming
  - models  : request config, execution status, locators
"""
from __future__ import annotations

from athena_runner.db.athena import AthenaQueryController
from athena_runner.db.gate import AdmissionGate
from athena_runner.db.models import (
    EncryptionConfig,
    ExecutionRecord,
    ExecutionStatus,
    QueryRequestConfig,
    QueryState,
    ResultLocator,
    RetryConfig,
)
from athena_runner.db.results import ResultStream, open_result_stream, read_results_frame

__all__ = [
    "AdmissionGate",
    "AthenaQueryController",
    "EncryptionConfig",
    "ExecutionRecord",
    "ExecutionStatus",
    "QueryRequestConfig",
    "QueryState",
    "ResultLocator",
    "ResultStream",
    "RetryConfig",
    "open_result_stream",
    "read_results_frame",
]
