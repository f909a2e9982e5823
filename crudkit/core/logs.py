from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path

from crudkit.core.config import Settings, settings

LOG_FORMAT = "%(asctime)s %(levelname)s (%(filename)s:%(lineno)d)- %(message)s"
ROOT_LOGGER = "crudkit"

# file name -> inclusive level range routed to it
LEVEL_FILES = (
    ("debug", logging.DEBUG, logging.DEBUG),
    ("info", logging.INFO, logging.INFO),
    ("error", logging.WARNING, logging.CRITICAL),
)


class LevelRangeFilter(logging.Filter):
    def __init__(self, low: int, high: int):
        super().__init__()
        self.low = low
        self.high = high

    def filter(self, record: logging.LogRecord) -> bool:
        return self.low <= record.levelno <= self.high


def _file_handler(log_dir: Path, name: str, retention_days: int) -> logging.Handler:
    return logging.handlers.TimedRotatingFileHandler(
        log_dir / f"{name}.log",
        when="midnight",
        backupCount=max(retention_days, 1),
        encoding="utf-8",
        delay=True,
    )


def setup_logging(config: Settings | None = None) -> logging.Logger:
    config = config or settings
    logger = logging.getLogger(ROOT_LOGGER)
    if logger.handlers:
        return logger

    logger.setLevel(config.LOG_LEVEL.upper())
    logger.propagate = False
    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if config.LOG_TO_FILES:
        log_dir = Path(config.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)
        for name, low, high in LEVEL_FILES:
            handler = _file_handler(log_dir, name, config.LOG_RETENTION_DAYS)
            handler.addFilter(LevelRangeFilter(low, high))
            handler.setFormatter(formatter)
            logger.addHandler(handler)

    return logger


def reset_logging_for_tests() -> None:
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
