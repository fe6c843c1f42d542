"""Read-only status view shared between the poll loop and the dashboard."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import Any

from restock_monitor.misc.stock_state import InventoryItem

STATUS_INIT = "INIT"
STATUS_RESTOCK = "RESTOCK"
STATUS_SOLDOUT = "SOLDOUT"
STATUS_ERROR = "ERROR"


@dataclass(frozen=True, slots=True)
class StatusView:
    items: tuple[InventoryItem, ...] = ()
    logs: tuple[str, ...] = ()
    last_check: str = "-"
    interval: int = 60000
    status: str = STATUS_INIT

    def to_json(self) -> dict[str, Any]:
        return {
            "items": [item.to_public() for item in self.items],
            "logs": list(self.logs),
            "lastCheck": self.last_check,
            "interval": self.interval,
            "status": self.status,
        }


class StatusPublisher:
    """Holds the current StatusView and replaces it wholesale on every update.

    Readers call ``view()`` without locking; writers serialize on a lock so
    a log append never races a cycle publish.
    """

    def __init__(self, interval_ms: int, max_log_lines: int = 100) -> None:
        self.max_log_lines = max(1, max_log_lines)
        self._lock = threading.Lock()
        self._view = StatusView(interval=interval_ms)

    def view(self) -> StatusView:
        return self._view

    def publish_snapshot(self, in_stock: Iterable[InventoryItem], last_check: str) -> None:
        items = tuple(in_stock)
        status = STATUS_RESTOCK if items else STATUS_SOLDOUT
        with self._lock:
            self._view = replace(self._view, items=items, last_check=last_check, status=status)

    def publish_error(self, last_check: str) -> None:
        with self._lock:
            self._view = replace(self._view, last_check=last_check, status=STATUS_ERROR)

    def append_log(self, line: str) -> None:
        """Prepend a log line, keeping the newest ``max_log_lines``."""
        with self._lock:
            logs = (line, *self._view.logs)[: self.max_log_lines]
            self._view = replace(self._view, logs=logs)
