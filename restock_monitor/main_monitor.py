"""Long-running restock monitor: polls the stock page and sends alerts on transitions."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from dataclasses import dataclass

from restock_monitor.misc.coerce import coerce_bool
from restock_monitor.misc.config_loader import MonitorConfig, build_monitor_config, load_config, section
from restock_monitor.misc.dashboard_server import create_app, start_dashboard_background, stop_dashboard_background
from restock_monitor.misc.email_sender import EmailSender
from restock_monitor.misc.errors import AuthError, ConfigError, ExtractionEmpty, FetchError
from restock_monitor.misc.http_client import HttpClient
from restock_monitor.misc.logger import get_logger, setup_logging
from restock_monitor.misc.status_publisher import StatusPublisher
from restock_monitor.misc.telegram_sender import TelegramSender
from restock_monitor.others.notifier import Channel, Notifier
from restock_monitor.others.poll_cycle import PollCycle
from restock_monitor.others.scheduler import Scheduler
from restock_monitor.others.session_provider import SessionProvider
from restock_monitor.others.state_store import StateStore
from restock_monitor.others.transition_engine import DecisionKind, NotificationDecision


@dataclass(slots=True)
class Monitor:
    config: MonitorConfig
    publisher: StatusPublisher
    notifier: Notifier
    cycle: PollCycle
    email: EmailSender | None = None


def build_monitor(config: MonitorConfig, publisher: StatusPublisher | None = None) -> Monitor:
    """Wire every collaborator from one validated config value."""
    publisher = publisher or StatusPublisher(config.interval_ms, config.dashboard.log_lines)
    http_client = HttpClient(config=config.raw)
    session = SessionProvider(
        http_client=http_client,
        login_required=config.site.login_required,
        login_url=config.site.login_url,
        username=config.site.username,
        password=config.site.password,
        username_field=config.site.username_field,
        password_field=config.site.password_field,
        max_age_seconds=config.site.cookie_max_age_seconds,
    )

    channels: list[Channel] = []
    if config.telegram.enabled:
        channels.append(TelegramSender(config.telegram))
    email: EmailSender | None = None
    if config.email.enabled:
        email = EmailSender(config.email)
        channels.append(email)
    notifier = Notifier(channels)

    cycle = PollCycle(
        site_name=config.site.name,
        site_url=config.site.url,
        rules=config.selectors,
        strategy=config.strategy,
        http_client=http_client,
        session=session,
        store=StateStore(config.state_path),
        notifier=notifier,
        publisher=publisher,
    )
    return Monitor(config=config, publisher=publisher, notifier=notifier, cycle=cycle, email=email)


def self_check(monitor: Monitor) -> int | None:
    """Log in and fetch once; return the number of monitored items, or None on failure."""
    logger = get_logger("main")
    try:
        items = monitor.cycle.fetch_snapshot()
    except (AuthError, FetchError, ExtractionEmpty) as exc:
        logger.error("startup self-check failed: %s", exc)
        return None
    logger.info("startup self-check ok items=%s", len(items))
    return len(items)


def announce_startup(monitor: Monitor) -> None:
    count = self_check(monitor)
    if count is None or not monitor.config.send_startup_notice:
        return
    now = monitor.cycle.clock()
    decision = NotificationDecision(kind=DecisionKind.STARTUP, item_count=count)
    monitor.notifier.dispatch([decision], monitor.cycle.message_context(now))


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Stock page restock monitor")
    parser.add_argument("--config", default="config/config.json", help="path to the JSON config file")
    parser.add_argument("--once", action="store_true", help="run a single poll cycle and exit")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Executes main logic."""
    args = parse_args(argv)
    try:
        raw = load_config(args.config)
        config = build_monitor_config(raw)
    except ConfigError as exc:
        print(f"configuration error: {exc}", file=sys.stderr)
        return 2

    publisher = StatusPublisher(config.interval_ms, config.dashboard.log_lines)
    logging_cfg = section(raw, "logging")
    setup_logging(
        level=str(logging_cfg.get("level", "INFO")),
        json_logs=coerce_bool(logging_cfg.get("json_logs"), default=False),
        log_file=logging_cfg.get("file") or None,
        retention_days=int(logging_cfg.get("retention_days", 7)),
        sink=publisher.append_log,
    )
    logger = get_logger("main")
    logger.info(
        "starting monitor site=%s url=%s interval=%ss login=%s",
        config.site.name,
        config.site.url,
        config.check_interval_seconds,
        config.site.login_required,
    )

    monitor = build_monitor(config, publisher)
    if monitor.email is not None:
        monitor.email.verify()
    if not monitor.notifier.enabled:
        logger.warning("no notification channel enabled; transitions will only be logged")

    if args.once:
        outcome = monitor.cycle.run()
        return 0 if outcome.evaluated else 1

    announce_startup(monitor)

    server = thread = None
    if config.dashboard.enabled:
        app = create_app(publisher, site_name=config.site.name, timezone=config.strategy.timezone)
        server, thread = start_dashboard_background(app, config.dashboard.host, config.dashboard.port)

    scheduler = Scheduler(monitor.cycle.run, config.check_interval_seconds)
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        logger.info("interrupted, shutting down")
    finally:
        scheduler.stop()
        stop_dashboard_background(server, thread)
    return 0


if __name__ == "__main__":
    sys.exit(main())
