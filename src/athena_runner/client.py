from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

import boto3
import pandas as pd

from athena_runner.config.settings import Settings
from athena_runner.db.athena import AthenaQueryController
from athena_runner.db.gate import AdmissionGate
from athena_runner.db.models import QueryRequestConfig
from athena_runner.db.results import ResultStream, read_results_frame
from athena_runner.exceptions.errors import ConfigurationError
from athena_runner.logging.logger import get_logger


log = get_logger("client")

DEFAULT_POLL_INTERVAL_MS = 1000


@dataclass(frozen=True)
class AwsConfig:
    region: str
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None


class AthenaClient:
    """Runs whole query lifecycles on top of AthenaQueryController.

    query() is one caller of the controller: it submits, polls at a fixed
    interval until a terminal state, then opens the result stream. The
    admission slot taken by submit() is released on every way out.
    """

    def __init__(
        self,
        controller: AthenaQueryController,
        config: QueryRequestConfig,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
    ):
        self.controller = controller
        self.config = config
        self.poll_interval_ms = poll_interval_ms

    @classmethod
    def from_settings(cls, settings: Settings, gate: Optional[AdmissionGate] = None) -> "AthenaClient":
        if gate is None:
            gate = AdmissionGate(settings.max_concurrent_queries)
        return create_client(
            QueryRequestConfig.from_settings(settings),
            AwsConfig(region=settings.aws_region),
            gate=gate,
            poll_interval_ms=settings.poll_interval_ms,
        )

    async def wait_for(self, handle: str) -> None:
        while not await self.controller.check_status(handle, self.config):
            await asyncio.sleep(self.poll_interval_ms / 1000.0)

    async def query(self, sql: str) -> ResultStream:
        ctl = self.controller
        handle = await ctl.submit(sql, self.config)
        try:
            await self.wait_for(handle)
            record = await ctl.fetch_execution_metadata(handle, self.config)
            return await ctl.open_result_stream(record.result_uri(self.config.output_location))
        finally:
            ctl.release(handle)

    async def query_frame(self, sql: str) -> pd.DataFrame:
        stream = await self.query(sql)
        async with stream:
            return await read_results_frame(stream)

    async def cancel(self, handle: str) -> None:
        await self.controller.cancel(handle, self.config)


def create_client(
    client_config: QueryRequestConfig,
    aws_config: AwsConfig,
    *,
    gate: Optional[AdmissionGate] = None,
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
) -> AthenaClient:
    if client_config is None or not (client_config.output_location or "").strip():
        raise ConfigurationError("output location (bucket uri) required")
    if aws_config is None or not (aws_config.region or "").strip():
        raise ConfigurationError("region required")

    session_args = {"region_name": aws_config.region}
    if aws_config.access_key_id and aws_config.secret_access_key:
        session_args["aws_access_key_id"] = aws_config.access_key_id
        session_args["aws_secret_access_key"] = aws_config.secret_access_key
    session = boto3.Session(**session_args)

    athena = session.client("athena")
    s3 = session.client("s3")
    log.info(
        "Athena client created",
        extra={
            "region": aws_config.region,
            "output": client_config.output_location,
            "max_concurrent": gate.capacity if gate else None,
        },
    )
    return AthenaClient(
        AthenaQueryController(athena, s3, gate=gate),
        client_config,
        poll_interval_ms=poll_interval_ms,
    )
