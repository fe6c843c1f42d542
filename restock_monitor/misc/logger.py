from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class _JsonFormatter(logging.Formatter):
    """Formats logs as single-line JSON objects for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


class CallbackHandler(logging.Handler):
    """Forwards each formatted record to a callable (used for the dashboard log tail)."""

    def __init__(self, sink: Callable[[str], None], level: int = logging.INFO) -> None:
        super().__init__(level=level)
        self.sink = sink
        self.setFormatter(logging.Formatter(fmt="[%(asctime)s] [%(name)s] %(message)s", datefmt=DATE_FORMAT))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.sink(self.format(record))
        except Exception:  # noqa: BLE001
            self.handleError(record)


def setup_logging(
    level: str = "INFO",
    json_logs: bool = False,
    log_file: str | None = None,
    retention_days: int = 7,
    sink: Callable[[str], None] | None = None,
) -> None:
    root = logging.getLogger()
    root.setLevel(level.upper())
    root.handlers.clear()

    formatter: logging.Formatter
    if json_logs:
        formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT)

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    root.addHandler(handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            path,
            when="midnight",
            backupCount=max(1, int(retention_days)),
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    if sink is not None:
        root.addHandler(CallbackHandler(sink))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
