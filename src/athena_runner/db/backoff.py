"""Retry eligibility and wait computation for Athena API calls.

Pure functions only; the caller owns the actual sleep.
"""
from __future__ import annotations

from typing import Optional

from botocore.exceptions import ClientError

from athena_runner.db.models import DEFAULT_BASE_WAIT_MS, DEFAULT_MAX_ATTEMPTS, DEFAULT_MAX_WAIT_MS
from athena_runner.exceptions.errors import TransientServiceError


THROTTLING_CODES = frozenset({"TooManyRequestsException", "ThrottlingException"})
SCALE_EXHAUSTED_MESSAGE = "Query exhausted resources at this scale factor"


def _error_code_and_message(error: BaseException) -> tuple[str, str]:
    if isinstance(error, ClientError):
        err = error.response.get("Error", {}) or {}
        return str(err.get("Code", "") or ""), str(err.get("Message", "") or "")
    return "", str(error)


def is_transient_error(error: BaseException) -> bool:
    if isinstance(error, TransientServiceError):
        return True
    code, message = _error_code_and_message(error)
    if code in THROTTLING_CODES:
        return True
    return message.strip() == SCALE_EXHAUSTED_MESSAGE


def should_retry(error: BaseException, attempt_count: int, max_attempts: Optional[int] = None) -> bool:
    limit = DEFAULT_MAX_ATTEMPTS if max_attempts is None else max_attempts
    return attempt_count < limit and is_transient_error(error)


def next_wait_ms(
    base_wait_ms: Optional[int] = None,
    attempt_count: int = 0,
    max_wait_ms: Optional[int] = None,
) -> int:
    """min(base * 2**attempt, max): 200ms, 400ms, 800ms ... capped at 10s by default."""
    base = DEFAULT_BASE_WAIT_MS if base_wait_ms is None else base_wait_ms
    cap = DEFAULT_MAX_WAIT_MS if max_wait_ms is None else max_wait_ms
    return int(min(base * (2 ** attempt_count), cap))
