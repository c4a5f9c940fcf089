"""Logging configuration for billing runs and maintenance commands.

Dual output (stdout + file) with the level taken from the LOG_LEVEL env var.
Default: INFO. DEBUG also shows ledger clamps and per-unit figures.
"""

import logging
import os
import sys
from pathlib import Path

LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def get_log_level(default: str = "INFO") -> int:
    """Get logging level from LOG_LEVEL environment variable.

    Returns:
        Logging level constant (INFO when unset or unknown)
    """
    level_str = os.getenv("LOG_LEVEL", default).upper()
    return LOG_LEVEL_MAP.get(level_str, logging.INFO)


def setup_logging(log_file: str | None = "logs/billing.log", level: int | None = None) -> None:
    """
    Configure the root logger.

    Args:
        log_file: Log file path; None logs to stdout only
        level: Explicit level; defaults to get_log_level()
    """
    formatter = logging.Formatter(
        fmt="[%(asctime)s] %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    log_level = get_log_level() if level is None else level

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(log_level)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # SQL echo is controlled by database_echo, not the root level
    logging.getLogger("sqlalchemy.engine").setLevel(max(log_level, logging.WARNING))


__all__ = ["LOG_LEVEL_MAP", "get_log_level", "setup_logging"]
