import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

_INITIALIZED = False

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def init_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    max_bytes: int = 5 * 1024 * 1024,  # 5 MB
    backup_count: int = 3,
) -> None:
    """Configure root logging once per process.

    Always logs to stderr. When log_file is set, a size-rotating file handler
    is added next to it.
    """
    global _INITIALIZED
    if _INITIALIZED:
        return

    level = getattr(logging, (log_level or "INFO").upper(), logging.INFO)
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
        )

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers)

    # botocore is chatty at DEBUG; keep it one notch below ours.
    if level <= logging.DEBUG:
        logging.getLogger("botocore").setLevel(logging.INFO)

    _INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"athena_runner.{name}")
