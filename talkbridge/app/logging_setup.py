from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from talkbridge.app.config import app_paths

_RESERVED_FIELDS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
}


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
            payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def log_event(logger: logging.Logger | None, level: int, event: str, **fields: Any) -> None:
    if logger is None:
        return
    logger.log(level, event, extra=fields)


def setup_app_logger(
    name: str = "talkbridge.app",
    *,
    debug: bool = False,
) -> tuple[logging.Logger, Path, Path]:
    paths = app_paths()
    log_dir = paths.config_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "talkbridge.log"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.propagate = False
    logger.handlers.clear()

    handler = RotatingFileHandler(
        filename=log_path,
        maxBytes=1_000_000,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setFormatter(JsonLineFormatter(datefmt="%Y-%m-%dT%H:%M:%S"))
    logger.addHandler(handler)

    if debug:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(JsonLineFormatter(datefmt="%H:%M:%S"))
        logger.addHandler(console)
    return logger, log_dir, log_path
