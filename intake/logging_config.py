"""Process-wide logging setup."""
from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone

from .config import LoggingSettings

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class JsonLineFormatter(logging.Formatter):
    """One JSON object per line; keeps the handler output greppable."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(config: LoggingSettings | None = None) -> None:
    """Configure root logging from settings.

    Safe to call more than once; the last call wins.
    """
    config = config or LoggingSettings()
    formatter = "json" if config.format == "json" else "text"

    handlers: dict[str, dict] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": formatter,
        },
    }
    if config.file:
        handlers["file"] = {
            "class": "logging.FileHandler",
            "filename": config.file,
            "encoding": "utf-8",
            "formatter": formatter,
        }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "text": {"format": TEXT_FORMAT},
                "json": {"()": JsonLineFormatter},
            },
            "handlers": handlers,
            "root": {
                "level": config.level.upper(),
                "handlers": list(handlers),
            },
        }
    )
