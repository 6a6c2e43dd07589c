import pytest

from athena_runner.db.models import QueryRequestConfig, RetryConfig


@pytest.fixture
def fast_config() -> QueryRequestConfig:
    return QueryRequestConfig(
        output_location="s3://results-bucket/athena/",
        retry=RetryConfig(base_wait_ms=1, max_wait_ms=5, max_attempts=3),
    )
