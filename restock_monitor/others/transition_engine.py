"""Decides which stock notifications a poll cycle must send.

The engine is a pure function over (snapshot, persisted state, now, strategy).
It never performs I/O and never raises for well-formed input, so the poll
cycle can call it, dispatch whatever it returns, and persist the new state.

Restock alerts are edge-triggered on the persisted ``was_in_stock`` flag.
The cooldown only throttles repeated restock alerts while that flag is
already set; a sold-out transition clears ``last_notify_time`` so the next
restock always fires immediately.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any
from zoneinfo import ZoneInfo

from restock_monitor.misc.stock_state import InventoryItem, Snapshot, has_stock, in_stock_items


class DecisionKind(str, Enum):
    RESTOCK = "RESTOCK"
    SOLDOUT = "SOLDOUT"
    DAILY_REPORT = "DAILY_REPORT"
    # Sent once at boot by the entrypoint; evaluate() never produces it.
    STARTUP = "STARTUP"


@dataclass(frozen=True, slots=True)
class StrategyConfig:
    """Notification policy knobs."""

    notify_cooldown_ms: int = 600_000
    daily_report_hour: int | None = 12
    restock_notify_enabled: bool = True
    timezone: str = "Asia/Shanghai"


@dataclass(frozen=True, slots=True)
class PersistedState:
    """The only durable record: last restock alert time, hysteresis flag, last report date."""

    last_notify_time: int = 0
    was_in_stock: bool = False
    last_daily_report_date: str = ""

    def to_json(self) -> dict[str, Any]:
        return {
            "lastNotifyTime": self.last_notify_time,
            "wasInStock": self.was_in_stock,
            "lastDailyReportDate": self.last_daily_report_date,
        }


@dataclass(frozen=True, slots=True)
class NotificationDecision:
    """One notification the cycle must dispatch."""

    kind: DecisionKind
    items: tuple[InventoryItem, ...] = ()
    has_stock: bool = False
    item_count: int = 0


@dataclass(frozen=True, slots=True)
class EvaluationResult:
    decisions: tuple[NotificationDecision, ...] = field(default_factory=tuple)
    state: PersistedState = field(default_factory=PersistedState)

    @property
    def kinds(self) -> tuple[DecisionKind, ...]:
        return tuple(decision.kind for decision in self.decisions)


def local_datetime(now_ms: int, tz_name: str) -> datetime:
    """Convert epoch millis to an aware datetime in the site-local zone."""
    return datetime.fromtimestamp(now_ms / 1000, tz=ZoneInfo(tz_name))


def _stock_transition(
    snapshot: Snapshot,
    state: PersistedState,
    now_ms: int,
    cfg: StrategyConfig,
) -> tuple[NotificationDecision | None, PersistedState]:
    stocked = in_stock_items(snapshot)

    if stocked:
        cooldown_elapsed = (now_ms - state.last_notify_time) > cfg.notify_cooldown_ms
        if state.was_in_stock and not cooldown_elapsed:
            return None, state
        if not cfg.restock_notify_enabled:
            # Track the edge without alerting or touching the cooldown clock.
            return None, replace(state, was_in_stock=True)
        decision = NotificationDecision(
            kind=DecisionKind.RESTOCK,
            items=stocked,
            has_stock=True,
            item_count=len(snapshot),
        )
        return decision, replace(state, last_notify_time=now_ms, was_in_stock=True)

    if not state.was_in_stock:
        return None, state

    # Sold out re-arms the cooldown so the next restock is never suppressed.
    next_state = replace(state, was_in_stock=False, last_notify_time=0)
    if not cfg.restock_notify_enabled:
        return None, next_state
    decision = NotificationDecision(kind=DecisionKind.SOLDOUT, has_stock=False, item_count=len(snapshot))
    return decision, next_state


def _daily_report(
    snapshot: Snapshot,
    state: PersistedState,
    now_ms: int,
    cfg: StrategyConfig,
) -> tuple[NotificationDecision | None, PersistedState]:
    if cfg.daily_report_hour is None:
        return None, state

    local_now = local_datetime(now_ms, cfg.timezone)
    today = local_now.date().isoformat()
    if local_now.hour != cfg.daily_report_hour or state.last_daily_report_date == today:
        return None, state

    decision = NotificationDecision(
        kind=DecisionKind.DAILY_REPORT,
        items=in_stock_items(snapshot),
        has_stock=has_stock(snapshot),
        item_count=len(snapshot),
    )
    return decision, replace(state, last_daily_report_date=today)


def evaluate(
    snapshot: Snapshot,
    state: PersistedState,
    now_ms: int,
    cfg: StrategyConfig,
) -> EvaluationResult:
    """Return the decisions for this cycle plus the state to persist.

    At most one of RESTOCK/SOLDOUT is produced; a DAILY_REPORT may be added
    independently. An empty snapshot carries no information (it looks the
    same as a broken session or selector), so it yields nothing and leaves
    the state untouched.
    """
    if not snapshot:
        return EvaluationResult(decisions=(), state=state)

    decisions: list[NotificationDecision] = []

    transition, next_state = _stock_transition(snapshot, state, now_ms, cfg)
    if transition is not None:
        decisions.append(transition)

    report, next_state = _daily_report(snapshot, next_state, now_ms, cfg)
    if report is not None:
        decisions.append(report)

    return EvaluationResult(decisions=tuple(decisions), state=next_state)
