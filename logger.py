"""Logging for the ledger.

CLI output goes through the ``ledger`` logger, so the console handler prints
bare messages while a daily file keeps timestamps and levels.
"""

import logging
from datetime import date
from pathlib import Path
from config import Config

LOGGER_NAME = "ledger"

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_FORMAT = "%(message)s"


def log_file_for(log_dir: Path, day: date | None = None) -> Path:
    """Return the log file for a given day, e.g. ``ledger-2024-03-01.log``."""
    day = day or date.today()
    return log_dir / f"{LOGGER_NAME}-{day.isoformat()}.log"


def _handler(handler: logging.Handler, level: str, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(config: Config) -> logging.Logger:
    """Attach file and console handlers to the ledger logger.

    Safe to call more than once; earlier handlers are replaced.

    Args:
        config: Supplies ``log_dir`` and ``log_level``.

    Returns:
        The configured logger.
    """
    config.log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(config.log_level)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()

    logger.addHandler(
        _handler(
            logging.FileHandler(log_file_for(config.log_dir), encoding="utf-8"),
            config.log_level,
            FILE_FORMAT,
        )
    )
    logger.addHandler(
        _handler(logging.StreamHandler(), config.log_level, CONSOLE_FORMAT)
    )
    return logger


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)
