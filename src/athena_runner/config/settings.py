from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union
import yaml
from dotenv import load_dotenv

from athena_runner.exceptions.errors import ConfigurationError

load_dotenv()

def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)

def _env_int(key: str, default: int) -> int:
    val = os.environ.get(key)
    if val is None or not val.strip():
        return int(default)
    try:
        return int(val)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be an integer, got {val!r}") from e

def _section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    return cfg.get(name) or {}

@dataclass(frozen=True)
class Settings:
    env: str
    log_level: str
    log_file: str

    aws_region: str

    # Athena (query results land under the output location)
    athena_output_location: str
    athena_database: str
    athena_workgroup: str
    athena_encryption_option: str
    athena_kms_key: str

    # Retry tuning for StartQueryExecution / GetQueryExecution / StopQueryExecution
    retry_base_wait_ms: int
    retry_max_wait_ms: int
    retry_max_attempts: int

    # Admission gate + caller-side polling cadence
    max_concurrent_queries: int
    poll_interval_ms: int

def load_settings(path: Union[str, Path, None] = None) -> Settings:
    app_env = _env("APP_ENV", "dev")
    cfg_path = Path(path) if path else Path("config") / f"{app_env}.yaml"
    if not cfg_path.exists():
        raise ConfigurationError(f"Config not found: {cfg_path}")

    cfg = yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}

    app_cfg = _section(cfg, "app")
    aws_cfg = _section(cfg, "aws")
    ath_cfg = _section(cfg, "athena")
    enc_cfg = ath_cfg.get("encryption") or {}
    retry_cfg = _section(cfg, "retry")
    conc_cfg = _section(cfg, "concurrency")

    return Settings(
        env=app_env,
        log_level=_env("LOG_LEVEL", str(app_cfg.get("log_level", "INFO"))),
        log_file=_env("LOG_FILE", str(app_cfg.get("log_file", "") or "")) or "",
        aws_region=_env("AWS_REGION", str(aws_cfg.get("region", "") or "")) or "",
        athena_output_location=_env("ATHENA_OUTPUT_LOCATION", str(ath_cfg.get("output_location", "") or "")) or "",
        athena_database=_env("ATHENA_DATABASE", str(ath_cfg.get("database", "default"))) or "default",
        athena_workgroup=_env("ATHENA_WORKGROUP", str(ath_cfg.get("workgroup", "primary"))) or "primary",
        athena_encryption_option=_env("ATHENA_ENCRYPTION_OPTION", str(enc_cfg.get("option", "") or "")) or "",
        athena_kms_key=_env("ATHENA_KMS_KEY", str(enc_cfg.get("kms_key", "") or "")) or "",
        retry_base_wait_ms=_env_int("ATHENA_RETRY_BASE_WAIT_MS", retry_cfg.get("base_wait_ms", 200)),
        retry_max_wait_ms=_env_int("ATHENA_RETRY_MAX_WAIT_MS", retry_cfg.get("max_wait_ms", 10000)),
        retry_max_attempts=_env_int("ATHENA_RETRY_MAX_ATTEMPTS", retry_cfg.get("max_attempts", 10)),
        max_concurrent_queries=_env_int("ATHENA_MAX_CONCURRENT_QUERIES", conc_cfg.get("max_concurrent_queries", 10)),
        poll_interval_ms=_env_int("ATHENA_POLL_INTERVAL_MS", conc_cfg.get("poll_interval_ms", 1000)),
    )
