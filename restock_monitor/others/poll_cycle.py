"""One poll cycle: session, fetch, extract, evaluate, notify, persist, publish."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from restock_monitor.misc.errors import AuthError, ExtractionEmpty, FetchError, StateIOError
from restock_monitor.misc.http_client import HttpClient
from restock_monitor.misc.logger import get_logger
from restock_monitor.misc.status_publisher import StatusPublisher
from restock_monitor.misc.stock_state import InventoryItem, count_stock_states, describe_snapshot, in_stock_items
from restock_monitor.others.notifier import DispatchReport, MessageContext, Notifier
from restock_monitor.others.session_provider import Credential, SessionProvider, epoch_ms
from restock_monitor.others.state_store import StateStore
from restock_monitor.others.transition_engine import (
    NotificationDecision,
    StrategyConfig,
    evaluate,
    local_datetime,
)
from restock_monitor.parsers.card_parser import SelectorRules, extract_inventory

LOCAL_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(slots=True)
class CycleOutcome:
    """What one cycle did; ``evaluated`` is False when it aborted before the engine."""

    evaluated: bool
    items: list[InventoryItem] = field(default_factory=list)
    decisions: tuple[NotificationDecision, ...] = ()
    dispatch: DispatchReport | None = None
    saved: bool = False
    error: str | None = None


class PollCycle:
    """Runs cycles against one site; keeps the session credential between cycles."""

    def __init__(
        self,
        site_name: str,
        site_url: str,
        rules: SelectorRules,
        strategy: StrategyConfig,
        http_client: HttpClient,
        session: SessionProvider,
        store: StateStore,
        notifier: Notifier,
        publisher: StatusPublisher | None = None,
        clock: Callable[[], int] = epoch_ms,
        extractor: Callable[[str, SelectorRules], list[InventoryItem]] = extract_inventory,
    ) -> None:
        self.site_name = site_name
        self.site_url = site_url
        self.rules = rules
        self.strategy = strategy
        self.http_client = http_client
        self.session = session
        self.store = store
        self.notifier = notifier
        self.publisher = publisher
        self.clock = clock
        self.extractor = extractor
        self.credential: Credential | None = None
        self.logger = get_logger("poll_cycle")

    def local_time(self, now_ms: int) -> str:
        return local_datetime(now_ms, self.strategy.timezone).strftime(LOCAL_TIME_FORMAT)

    def message_context(self, now_ms: int) -> MessageContext:
        return MessageContext(
            site_name=self.site_name,
            site_url=self.site_url,
            local_time=self.local_time(now_ms),
            timezone=self.strategy.timezone,
        )

    def _ensure_credential(self, force: bool = False) -> Credential:
        credential = self.credential
        if force or credential is None or self.session.is_expired(credential, self.clock()):
            self.credential = None
            credential = self.session.authenticate()
            self.credential = credential
        return credential

    def _fetch_items(self, force_login: bool) -> list[InventoryItem]:
        credential = self._ensure_credential(force=force_login)
        cookie_header = None if credential.anonymous else credential.cookie_header
        result = self.http_client.get(self.site_url, cookie_header=cookie_header)
        if not result.ok:
            raise FetchError(f"fetch failed url={self.site_url} error={result.error}")
        items = self.extractor(result.text, self.rules)
        if not items:
            raise ExtractionEmpty(f"no inventory cards matched selector={self.rules.card!r}")
        return items

    def fetch_snapshot(self) -> list[InventoryItem]:
        """Fetch and extract, re-authenticating and retrying exactly once on failure."""
        try:
            return self._fetch_items(force_login=False)
        except (AuthError, FetchError, ExtractionEmpty) as exc:
            self.logger.warning("fetch attempt failed, re-authenticating and retrying once: %s", exc)
        return self._fetch_items(force_login=True)

    def run(self) -> CycleOutcome:
        try:
            items = self.fetch_snapshot()
        except (AuthError, FetchError, ExtractionEmpty) as exc:
            self.logger.error("poll cycle aborted, state untouched: %s", exc)
            if self.publisher is not None:
                self.publisher.publish_error(self.local_time(self.clock()))
            return CycleOutcome(evaluated=False, error=str(exc))

        state = self.store.load()
        now = self.clock()
        result = evaluate(items, state, now, self.strategy)

        counts = count_stock_states(items)
        self.logger.info(
            "scan items=%s in_stock=%s decisions=%s [%s]",
            counts["total"],
            counts["in_stock"],
            [kind.value for kind in result.kinds],
            describe_snapshot(items),
        )

        context = self.message_context(now)
        dispatch = self.notifier.dispatch(result.decisions, context) if result.decisions else None

        saved = False
        try:
            self.store.save(result.state)
            saved = True
        except StateIOError as exc:
            self.logger.error("state not saved: %s", exc)

        if self.publisher is not None:
            self.publisher.publish_snapshot(in_stock_items(items), context.local_time)

        return CycleOutcome(
            evaluated=True,
            items=items,
            decisions=result.decisions,
            dispatch=dispatch,
            saved=saved,
        )
