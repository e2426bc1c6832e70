"""
Logging for the TPE adapter.

One package logger writing to a coloured console, a size-rotated file and,
when TPE_LOKI_URL is set, a Loki push endpoint.
"""

import logging
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, Optional

import colorlog
import httpx

from .configs import LoggingSettings, get_settings


LOG_FORMAT: Final[str] = "%(name)s | %(asctime)s | %(levelname)s | %(funcName)s:%(lineno)d | %(message)s"
DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"


class LokiHandler(logging.Handler):
    """
    Pushes each record to Loki as a single-entry stream.

    Attributes:
        url: Loki push endpoint.
        labels: Stream labels added to every entry.
    """

    def __init__(self, url: str, app: str, timeout: float = 2.0) -> None:
        super().__init__()
        self.url = url
        self.labels = {"app": app}
        self.timeout = timeout

    def build_entry(self, record: logging.LogRecord) -> dict:
        """Build the Loki push body for one record."""
        return {
            "streams": [
                {
                    "stream": {**self.labels, "level": record.levelname},
                    "values": [[str(time.time_ns()), self.format(record)]],
                }
            ]
        }

    def emit(self, record: logging.LogRecord) -> None:
        try:
            httpx.post(self.url, json=self.build_entry(record), timeout=self.timeout)
        except Exception:
            self.handleError(record)


def get_logger(name: str, config: Optional[LoggingSettings] = None) -> logging.Logger:
    """
    Create the named logger once and return it on later calls.

    Args:
        name: Logger name.
        config: Logging settings, defaults to get_settings().logging.

    Returns:
        Configured logger instance.
    """
    instance = logging.getLogger(name)
    if instance.handlers:
        return instance

    config = config or get_settings().logging
    instance.setLevel(config.level)
    plain = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s" + LOG_FORMAT,
            datefmt=DATE_FORMAT,
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "bold_red",
            },
        )
    )
    instance.addHandler(console)

    Path(config.log_file).parent.mkdir(parents=True, exist_ok=True)
    rotating = RotatingFileHandler(
        config.log_file,
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    rotating.setFormatter(plain)
    instance.addHandler(rotating)

    if config.loki_url:
        loki = LokiHandler(config.loki_url, config.app)
        loki.setFormatter(plain)
        instance.addHandler(loki)

    return instance


logger = get_logger("TPE_INGENICO")
