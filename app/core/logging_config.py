"""Logging setup: console output always, plus daily JSON-lines files when LOG_DIR is set."""

import json
import logging
import logging.handlers
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.core.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%SZ"

# Attributes every LogRecord has; anything else arrived through `extra=`.
_RESERVED = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime"}


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, message and extra fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED and not key.startswith("_"):
                entry[key] = value
        if record.exc_info:
            entry["stack"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(settings: "Settings") -> None:
    """Install root handlers once; safe to call again (existing handlers are replaced)."""
    root = logging.getLogger()
    root.setLevel(settings.LOG_LEVEL)
    for handler in list(root.handlers):
        if getattr(handler, "_stockroom", False):
            root.removeHandler(handler)
            handler.close()

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    console._stockroom = True  # type: ignore[attr-defined]
    root.addHandler(console)

    if settings.LOG_DIR:
        log_dir = Path(settings.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.TimedRotatingFileHandler(
            log_dir / "stockroom.log",
            when="midnight",
            utc=True,
            encoding="utf-8",
        )
        file_handler.setFormatter(JsonLineFormatter())
        file_handler._stockroom = True  # type: ignore[attr-defined]
        root.addHandler(file_handler)
