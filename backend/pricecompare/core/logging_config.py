"""Logging configuration for the pricecompare service.

All ``pricecompare.*`` loggers route through the handlers attached here.
Console output always; when ``LOG_DIR`` is set, each process launch also
writes a dedicated file named with the launch timestamp
(e.g. ``logs/run_20261018_153045.log``).
"""
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from pricecompare.core.config import settings

_DETAILED_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(module)s:%(funcName)s:%(lineno)d | "
    "%(message)s"
)

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ROOT_LOGGER_NAME = "pricecompare"


def setup_logging(level: Optional[str] = None, log_dir: Optional[str] = None) -> Optional[Path]:
    """Initialise the ``pricecompare`` logger.

    Returns:
        The path of the per-run log file, or ``None`` when logging to console only.
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel((level or settings.LOG_LEVEL).upper())

    # Prevent duplicate handlers on repeated calls (e.g. tests, reloads)
    if root_logger.handlers:
        return None

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT))
    root_logger.addHandler(console_handler)

    log_file = None
    log_dir = log_dir or settings.LOG_DIR
    if log_dir:
        logs_path = Path(log_dir)
        logs_path.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = logs_path / f"run_{timestamp}.log"

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(_DETAILED_FORMAT, datefmt=_DATE_FORMAT))
        root_logger.addHandler(file_handler)

    root_logger.info("Logging initialised (level=%s, file=%s)", root_logger.level, log_file)
    return log_file
