from __future__ import annotations

import json
import logging
import sys
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path

from lingualive.app.config import app_paths

# Attributes every LogRecord carries; anything else came in through `extra=`.
_RESERVED_FIELDS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
}


def _jsonable(value: object) -> object:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED_FIELDS or key.startswith("_"):
                continue
            payload[key] = _jsonable(value)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


class _ConsoleFormatter(logging.Formatter):
    """One short line per event; structured fields appended as key=value."""

    def format(self, record: logging.LogRecord) -> str:
        fields = " ".join(
            f"{k}={_jsonable(v)}"
            for k, v in record.__dict__.items()
            if k not in _RESERVED_FIELDS and not k.startswith("_")
        )
        head = f"[{record.levelname.lower()}] {record.getMessage()}"
        return f"{head} {fields}" if fields else head


def setup_app_logger(
    name: str = "lingualive",
    debug: bool = False,
    console_level: int | None = logging.WARNING,
) -> tuple[logging.Logger, Path, Path]:
    """
    Configure the package logger. Module loggers (lingualive.*) propagate into
    it, so one rotating JSON-lines file collects the whole pipeline.
    """
    paths = app_paths()
    log_dir = paths.config_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "lingualive.log"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.propagate = False
    for h in list(logger.handlers):
        h.close()
    logger.handlers.clear()

    handler = RotatingFileHandler(
        filename=log_path,
        maxBytes=1_000_000,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setFormatter(JsonLineFormatter(datefmt="%Y-%m-%dT%H:%M:%S"))
    logger.addHandler(handler)

    if console_level is not None:
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(logging.DEBUG if debug else console_level)
        console.setFormatter(_ConsoleFormatter())
        logger.addHandler(console)
    return logger, log_dir, log_path
