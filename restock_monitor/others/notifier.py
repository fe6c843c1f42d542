"""Dispatches notification decisions to every enabled channel concurrently."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Protocol

from restock_monitor.misc.errors import NotifyChannelError
from restock_monitor.misc.logger import get_logger
from restock_monitor.others.transition_engine import DecisionKind, NotificationDecision


@dataclass(frozen=True, slots=True)
class MessageContext:
    """Site details and the local timestamp rendered into every message."""

    site_name: str
    site_url: str
    local_time: str
    timezone: str = ""


class Channel(Protocol):
    name: str

    def notify(self, decision: NotificationDecision, context: MessageContext) -> bool: ...


@dataclass(slots=True)
class DispatchReport:
    """Per-channel outcome of one dispatch; failures never short-circuit others."""

    delivered: list[tuple[DecisionKind, str]] = field(default_factory=list)
    failed: list[tuple[DecisionKind, str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def decision_title(decision: NotificationDecision, site_name: str) -> str:
    if decision.kind is DecisionKind.RESTOCK:
        return f"🟢 {site_name} restock"
    if decision.kind is DecisionKind.SOLDOUT:
        return f"🔴 {site_name} sold out"
    if decision.kind is DecisionKind.DAILY_REPORT:
        return f"📅 {site_name} daily report"
    return f"🔵 {site_name} monitor started"


class Notifier:
    def __init__(self, channels: list[Channel], max_workers: int = 4) -> None:
        self.channels = list(channels)
        self.max_workers = max(1, max_workers)
        self.logger = get_logger("notifier")

    @property
    def enabled(self) -> bool:
        return bool(self.channels)

    def _deliver(self, channel: Channel, decision: NotificationDecision, context: MessageContext) -> None:
        if not channel.notify(decision, context):
            raise NotifyChannelError(channel.name, f"{decision.kind.value} not delivered")

    def dispatch(self, decisions: list[NotificationDecision] | tuple[NotificationDecision, ...], context: MessageContext) -> DispatchReport:
        """Send every decision on every channel and wait for all of them."""
        report = DispatchReport()
        if not decisions:
            return report
        if not self.channels:
            self.logger.info("no notification channel enabled, dropping decisions=%s", [d.kind.value for d in decisions])
            return report

        for decision in decisions:
            self.logger.info("sending notification kind=%s title=%s", decision.kind.value, decision_title(decision, context.site_name))

        jobs = [(decision, channel) for decision in decisions for channel in self.channels]
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(jobs))) as pool:
            future_map = {pool.submit(self._deliver, channel, decision, context): (decision, channel) for decision, channel in jobs}
            for future in as_completed(future_map):
                decision, channel = future_map[future]
                try:
                    future.result()
                except Exception as exc:  # noqa: BLE001
                    self.logger.warning("channel failed channel=%s kind=%s error=%s", channel.name, decision.kind.value, exc)
                    report.failed.append((decision.kind, channel.name, str(exc)))
                else:
                    report.delivered.append((decision.kind, channel.name))
        return report
