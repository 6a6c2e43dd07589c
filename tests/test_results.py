"""Tests for result locator parsing and S3 result streaming."""

import pandas as pd
import pytest

from athena_runner.db.athena import AthenaQueryController
from athena_runner.db.models import ResultLocator
from athena_runner.db.results import open_result_stream, read_results_frame
from athena_runner.db.utils import parse_result_locator
from athena_runner.exceptions.errors import ConfigurationError, ResultFetchError

from fakes import FakeAthena, FakeS3, client_error


class TestParseResultLocator:
    def test_bucket_and_nested_key(self):
        loc = parse_result_locator("s3://my-bucket/path/to/object.csv")
        assert loc == ResultLocator(bucket="my-bucket", key="path/to/object.csv")

    def test_any_scheme_prefix(self):
        loc = parse_result_locator("scheme://my-bucket/path/to/object.csv")
        assert (loc.bucket, loc.key) == ("my-bucket", "path/to/object.csv")

    def test_key_slashes_preserved_verbatim(self):
        assert parse_result_locator("s3://b/a//b/c.csv").key == "a//b/c.csv"

    def test_no_scheme(self):
        assert parse_result_locator("b/k.csv") == ResultLocator("b", "k.csv")

    @pytest.mark.parametrize("uri", ["", "s3://", "s3://bucket-only", "s3://bucket/", "s3:///key"])
    def test_invalid(self, uri):
        with pytest.raises(ValueError):
            parse_result_locator(uri)


CSV = b'"id","name"\n"1","alpha"\n"2","beta"\n'


class TestOpenResultStream:
    @pytest.mark.asyncio
    async def test_streams_object_in_chunks(self):
        s3 = FakeS3({("results", "athena/qid-1.csv"): CSV})
        stream = await open_result_stream(s3, "s3://results/athena/qid-1.csv", chunk_size=8)

        chunks = [c async for c in stream]

        assert s3.calls == [("results", "athena/qid-1.csv")]
        assert len(chunks) > 1
        assert all(len(c) <= 8 for c in chunks)
        assert b"".join(chunks) == CSV

    @pytest.mark.asyncio
    async def test_single_pass(self):
        s3 = FakeS3({("b", "k"): b"abc"})
        stream = await open_result_stream(s3, ResultLocator("b", "k"))
        assert await stream.read_all() == b"abc"
        assert await stream.read_all() == b""

    @pytest.mark.asyncio
    async def test_get_object_failure_not_retried(self):
        cause = client_error("SlowDown", "Please reduce your request rate.", "GetObject")
        s3 = FakeS3(error=cause)
        with pytest.raises(ResultFetchError) as exc:
            await open_result_stream(s3, "s3://b/k.csv")
        assert exc.value.cause is cause
        assert len(s3.calls) == 1

    @pytest.mark.asyncio
    async def test_missing_object(self):
        with pytest.raises(ResultFetchError):
            await open_result_stream(FakeS3(), "s3://b/missing.csv")

    @pytest.mark.asyncio
    async def test_read_results_frame(self):
        s3 = FakeS3({("b", "k.csv"): CSV})
        async with await open_result_stream(s3, "s3://b/k.csv") as stream:
            df = await read_results_frame(stream)
        assert list(df.columns) == ["id", "name"]
        assert df["name"].tolist() == ["alpha", "beta"]

    @pytest.mark.asyncio
    async def test_read_results_frame_empty_body(self):
        s3 = FakeS3({("b", "k.csv"): b""})
        stream = await open_result_stream(s3, "s3://b/k.csv")
        df = await read_results_frame(stream)
        assert isinstance(df, pd.DataFrame)
        assert df.empty


class TestControllerResultStream:
    @pytest.mark.asyncio
    async def test_controller_delegates_to_s3(self):
        ctl = AthenaQueryController(FakeAthena(), FakeS3({("b", "x/y.csv"): b"1"}))
        stream = await ctl.open_result_stream("s3://b/x/y.csv")
        assert await stream.read_all() == b"1"

    @pytest.mark.asyncio
    async def test_controller_without_s3(self):
        ctl = AthenaQueryController(FakeAthena())
        with pytest.raises(ConfigurationError):
            await ctl.open_result_stream("s3://b/k")
