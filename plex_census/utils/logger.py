"""Logging setup: console output plus a daily debug log file."""
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

import structlog

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def daily_log_path(log_dir: Union[str, Path], when: Optional[datetime] = None) -> Path:
    """Return the log file for the given day, e.g. logs/20251025_debug.log."""
    when = when or datetime.now()
    return Path(log_dir) / f"{when:%Y%m%d}_debug.log"


class DailyFileHandler(logging.FileHandler):
    """FileHandler that moves to the next day's YYYYMMDD_debug.log at midnight."""

    def __init__(self, log_dir: Union[str, Path]):
        self.log_dir = Path(log_dir)
        self.day = datetime.now().date()
        super().__init__(daily_log_path(self.log_dir), encoding="utf-8", delay=True)

    def emit(self, record: logging.LogRecord) -> None:
        today = datetime.now().date()
        if today != self.day:
            self.day = today
            if self.stream:
                self.stream.close()
                self.stream = None
            self.baseFilename = os.path.abspath(daily_log_path(self.log_dir))
        super().emit(record)


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[Union[str, Path]] = "logs",
    debug: bool = False,
) -> None:
    """Configure stdlib logging and route structlog through it.

    The log file always receives warnings and errors; with ``debug`` on it
    also gets the full per-request and per-item trace.
    """
    console_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug else min(console_level, logging.WARNING))
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        file_handler = DailyFileHandler(log_dir)
        file_handler.setLevel(logging.DEBUG if debug else logging.WARNING)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.KeyValueRenderer(key_order=["event"]),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    # Silence noisy third-party loggers
    for name in ("httpx", "httpcore", "urllib3", "apscheduler"):
        logging.getLogger(name).setLevel(logging.WARNING)
