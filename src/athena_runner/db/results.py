"""Streaming access to Athena result objects in S3.

Results are read straight from the botocore StreamingBody in chunks, so a
large result file is never held in memory at once. Reads are not retried:
an S3 failure is reported as ResultFetchError and retrying is left to the
caller.
"""
from __future__ import annotations

import asyncio
from io import BytesIO
from typing import Any, Union

import pandas as pd
from botocore.exceptions import BotoCoreError, ClientError

from athena_runner.db.models import ResultLocator
from athena_runner.db.utils import parse_result_locator
from athena_runner.exceptions.errors import ResultFetchError
from athena_runner.logging.logger import get_logger


log = get_logger("db.results")

DEFAULT_CHUNK_SIZE = 64 * 1024


class ResultStream:
    """Single-pass async iterator over the bytes of one result object."""

    def __init__(self, body: Any, locator: ResultLocator, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self._body = body
        self._locator = locator
        self._chunk_size = chunk_size
        self._chunks = None
        self._closed = False

    @property
    def locator(self) -> ResultLocator:
        return self._locator

    def __aiter__(self) -> "ResultStream":
        return self

    async def __anext__(self) -> bytes:
        if self._closed:
            raise StopAsyncIteration
        if self._chunks is None:
            self._chunks = self._body.iter_chunks(chunk_size=self._chunk_size)
        try:
            chunk = await asyncio.to_thread(next, self._chunks, None)
        except (BotoCoreError, ClientError, OSError) as e:
            self.close()
            raise ResultFetchError(f"Failed reading result object {self._locator.uri}", cause=e) from e
        if chunk is None:
            self.close()
            raise StopAsyncIteration
        return chunk

    async def read_all(self) -> bytes:
        buf = bytearray()
        async for chunk in self:
            buf.extend(chunk)
        return bytes(buf)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        close = getattr(self._body, "close", None)
        if close:
            close()

    async def __aenter__(self) -> "ResultStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


async def open_result_stream(
    s3: Any,
    locator: Union[str, ResultLocator],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> ResultStream:
    loc = locator if isinstance(locator, ResultLocator) else parse_result_locator(locator)

    log.info("S3 get_object", extra={"bucket": loc.bucket, "key": loc.key})
    try:
        obj = await asyncio.to_thread(s3.get_object, Bucket=loc.bucket, Key=loc.key)
    except (BotoCoreError, ClientError) as e:
        log.error("S3 get_object failed", extra={"bucket": loc.bucket, "key": loc.key, "error": str(e)})
        raise ResultFetchError(f"Failed to fetch result object {loc.uri}", cause=e) from e

    return ResultStream(obj["Body"], loc, chunk_size=chunk_size)


async def read_results_frame(stream: ResultStream, **read_csv_kwargs: Any) -> pd.DataFrame:
    # Athena writes CSV with header row.
    body = await stream.read_all()
    if not body:
        return pd.DataFrame()
    return pd.read_csv(BytesIO(body), **read_csv_kwargs)
