from __future__ import annotations

"""
query_cli
---------

Run one Athena query end to end and write the raw CSV result.

Usage (from repo root):
    python -m athena_runner.tools.query_cli --sql "SELECT 1"
    python -m athena_runner.tools.query_cli --file query.sql --out result.csv

Settings come from config/<APP_ENV>.yaml and can be overridden through the
environment (AWS_REGION, ATHENA_OUTPUT_LOCATION, ATHENA_DATABASE,
ATHENA_WORKGROUP, ...) or the flags below.
"""

import argparse
import asyncio
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from athena_runner.client import AthenaClient
from athena_runner.config.settings import Settings, load_settings
from athena_runner.exceptions.errors import AthenaRunnerError, ConfigurationError, ExecutionError
from athena_runner.logging.logger import get_logger, init_logging

log = get_logger("tools.query_cli")


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    overrides = {
        "aws_region": args.aws_region,
        "athena_output_location": args.output_location,
        "athena_database": args.database,
        "athena_workgroup": args.workgroup,
        "poll_interval_ms": args.poll_interval_ms,
    }
    return replace(settings, **{k: v for k, v in overrides.items() if v is not None})


def _read_sql(args: argparse.Namespace) -> str:
    if args.sql:
        return args.sql
    return Path(args.file).read_text(encoding="utf-8")


async def _run(client: AthenaClient, sql: str, out: Optional[str]) -> int:
    stream = await client.query(sql)
    written = 0
    async with stream:
        if out:
            with open(out, "wb") as fh:
                async for chunk in stream:
                    fh.write(chunk)
                    written += len(chunk)
        else:
            async for chunk in stream:
                sys.stdout.buffer.write(chunk)
                written += len(chunk)
            sys.stdout.buffer.flush()
    log.info("Result written", extra={"bytes": written, "path": out or "<stdout>"})
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run an Athena query and stream its CSV result.")
    src = parser.add_mutually_exclusive_group(required=True)
    src.add_argument("--sql", default=None, help="SQL text to execute.")
    src.add_argument("--file", default=None, help="Path to a file containing the SQL to execute.")
    parser.add_argument("--config", default=None, help="Path to a settings yaml (defaults to config/<APP_ENV>.yaml).")
    parser.add_argument("--aws-region", dest="aws_region", default=None, help="AWS region (defaults from config/AWS_REGION).")
    parser.add_argument("--output-location", dest="output_location", default=None, help="s3:// location for query results.")
    parser.add_argument("--database", default=None, help="Athena database (default: 'default').")
    parser.add_argument("--workgroup", default=None, help="Athena workgroup (default: 'primary').")
    parser.add_argument("--poll-interval-ms", dest="poll_interval_ms", type=int, default=None, help="Delay between status checks.")
    parser.add_argument("--out", default=None, help="Write the result to this file instead of stdout.")
    args = parser.parse_args(argv)

    try:
        settings = _apply_overrides(load_settings(args.config), args)
        init_logging(settings.log_level, settings.log_file or None)
        client = AthenaClient.from_settings(settings)
        sql = _read_sql(args)
    except (ConfigurationError, OSError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    try:
        return asyncio.run(_run(client, sql, args.out))
    except ExecutionError as e:
        print(f"Query {e.execution_id} {e.state}: {e.reason}", file=sys.stderr)
        return 2
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    except AthenaRunnerError as e:
        print(f"Query failed: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
