"""Persists the monitor's notification state across restarts."""

from __future__ import annotations

import json
import math
import os
from pathlib import Path
from typing import Any

from restock_monitor.misc.errors import StateIOError
from restock_monitor.misc.logger import get_logger
from restock_monitor.others.transition_engine import PersistedState

LEGACY_KEY_MAP = {
    "lastNotify": "lastNotifyTime",
    "lastDailyDate": "lastDailyReportDate",
}


def _coerce_state(payload: Any) -> PersistedState:
    """Build a PersistedState from decoded JSON, raising ValueError on bad shapes."""
    if not isinstance(payload, dict):
        raise ValueError(f"state root must be an object, got {type(payload).__name__}")

    data = dict(payload)
    for legacy, canonical in LEGACY_KEY_MAP.items():
        if legacy in data and canonical not in data:
            data[canonical] = data.pop(legacy)

    last_notify = data.get("lastNotifyTime", 0)
    if isinstance(last_notify, bool) or not isinstance(last_notify, (int, float)):
        raise ValueError(f"lastNotifyTime must be a number, got {last_notify!r}")
    if not math.isfinite(last_notify):
        raise ValueError(f"lastNotifyTime must be finite, got {last_notify!r}")
    was_in_stock = data.get("wasInStock", False)
    if not isinstance(was_in_stock, bool):
        raise ValueError(f"wasInStock must be a boolean, got {was_in_stock!r}")
    report_date = data.get("lastDailyReportDate", "") or ""
    if not isinstance(report_date, str):
        raise ValueError(f"lastDailyReportDate must be a string, got {report_date!r}")

    return PersistedState(
        last_notify_time=max(0, int(last_notify)),
        was_in_stock=was_in_stock,
        last_daily_report_date=report_date,
    )


class StateStore:
    """JSON file holding a single PersistedState object."""

    def __init__(self, path: Path = Path("data/monitor_state.json")) -> None:
        self.path = Path(path)
        self.logger = get_logger("state_store")

    def load(self) -> PersistedState:
        """Return the stored state, or zero-value defaults when missing or corrupt."""
        if not self.path.exists():
            return PersistedState()
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8-sig"))
            return _coerce_state(payload)
        except (OSError, ValueError) as exc:
            self.logger.warning("state file unusable, starting fresh path=%s error=%s", self.path, exc)
            return PersistedState()

    def save(self, state: PersistedState) -> None:
        """Write the state atomically (temp file, then replace)."""
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(state.to_json(), indent=2) + "\n", encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as exc:
            raise StateIOError(f"failed to write state path={self.path}: {exc}") from exc
