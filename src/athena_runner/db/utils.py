from __future__ import annotations

import re

from athena_runner.db.models import ResultLocator


_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


def parse_result_locator(uri: str) -> ResultLocator:
    """Parse s3://bucket/key -> ResultLocator(bucket, key).

    Only the first "/" separates bucket from key; the rest of the key is kept
    verbatim, including further slashes.
    """
    path = _SCHEME_RE.sub("", (uri or "").strip(), count=1)
    bucket, sep, key = path.partition("/")
    if not bucket or not sep or not key:
        raise ValueError(f"Invalid S3 URI: {uri}")
    return ResultLocator(bucket=bucket, key=key)
