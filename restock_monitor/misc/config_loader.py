"""Handles loading and validating the monitor's JSON configuration."""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import soupsieve

from restock_monitor.misc.coerce import coerce_bool, coerce_positive_int
from restock_monitor.misc.email_sender import EmailConfig, build_email_config
from restock_monitor.misc.errors import ConfigError
from restock_monitor.misc.telegram_sender import TelegramConfig, build_telegram_config
from restock_monitor.others.transition_engine import StrategyConfig
from restock_monitor.parsers.card_parser import DEFAULT_QUANTITY_PATTERN, SelectorRules

DISABLED_VALUES = {"", "disabled", "off", "none", "-1"}


@dataclass(frozen=True, slots=True)
class SiteConfig:
    """Represents the monitored site and its optional login."""

    name: str
    url: str
    login_required: bool = False
    login_url: str = ""
    username: str = ""
    password: str = ""
    username_field: str = "username"
    password_field: str = "password"
    cookie_max_age_seconds: int = 86400


@dataclass(frozen=True, slots=True)
class DashboardConfig:
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 3000
    log_lines: int = 100


@dataclass(frozen=True, slots=True)
class MonitorConfig:
    """Immutable configuration value built once at startup."""

    site: SiteConfig
    selectors: SelectorRules
    strategy: StrategyConfig
    check_interval_seconds: int
    send_startup_notice: bool
    telegram: TelegramConfig
    email: EmailConfig
    dashboard: DashboardConfig
    state_path: Path
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def interval_ms(self) -> int:
        return self.check_interval_seconds * 1000


def load_json(path: str | Path) -> dict[str, Any]:
    """Read a JSON document, tolerating a UTF-8 BOM."""
    with Path(path).open("r", encoding="utf-8-sig") as f:
        return json.load(f)


def load_config(config_path: str = "config/config.json") -> dict[str, Any]:
    """Load the raw config file; a missing or malformed file is a ConfigError."""
    try:
        payload = load_json(config_path)
    except FileNotFoundError as exc:
        raise ConfigError(f"config file not found: {config_path}") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"config file unreadable: {config_path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigError(f"config root must be an object: {config_path}")
    return payload


def section(config: dict[str, Any], name: str) -> dict[str, Any]:
    value = config.get(name)
    return dict(value) if isinstance(value, dict) else {}


def env_or_value(cfg: dict[str, Any], key: str, env_key: str, default_env: str) -> str:
    """Prefer a non-empty environment variable over the file value."""
    env_name = str(cfg.get(env_key, default_env))
    env_value = os.getenv(env_name, "").strip() if env_name else ""
    return env_value or str(cfg.get(key, "") or "").strip()


def parse_report_hour(value: Any) -> int | None:
    """Return the daily report hour, or None when the report is disabled."""
    if value is None or isinstance(value, bool):
        return None
    if str(value).strip().lower() in DISABLED_VALUES:
        return None
    try:
        hour = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"strategy.daily_report_hour must be 0-23 or 'disabled', got {value!r}") from exc
    if hour < 0:
        return None
    if hour > 23:
        raise ConfigError(f"strategy.daily_report_hour must be 0-23 or 'disabled', got {value!r}")
    return hour


def _build_site(config: dict[str, Any]) -> SiteConfig:
    site_cfg = section(config, "site")
    url = str(site_cfg.get("url", "") or "").strip()
    if not url:
        raise ConfigError("site.url is required")
    if urlparse(url).scheme not in {"http", "https"}:
        raise ConfigError(f"site.url must be an http(s) URL, got {url!r}")

    login_required = coerce_bool(site_cfg.get("login_required"), default=False)
    login_url = str(site_cfg.get("login_url", "") or "").strip()
    if login_required and not login_url:
        raise ConfigError("site.login_url is required when site.login_required is true")

    return SiteConfig(
        name=str(site_cfg.get("name", "") or "Monitor").strip() or "Monitor",
        url=url,
        login_required=login_required,
        login_url=login_url,
        username=env_or_value(site_cfg, "username", "username_env", "SITE_USERNAME"),
        password=env_or_value(site_cfg, "password", "password_env", "SITE_PASSWORD"),
        username_field=str(site_cfg.get("username_field", "username")),
        password_field=str(site_cfg.get("password_field", "password")),
        cookie_max_age_seconds=coerce_positive_int(site_cfg.get("cookie_max_age_seconds"), 86400),
    )


def _build_selectors(config: dict[str, Any]) -> SelectorRules:
    sel_cfg = section(config, "selectors")
    pattern = str(sel_cfg.get("quantity_pattern", DEFAULT_QUANTITY_PATTERN))
    try:
        groups = re.compile(pattern).groups
    except re.error as exc:
        raise ConfigError(f"selectors.quantity_pattern is not a valid regex: {exc}") from exc
    if groups < 1:
        raise ConfigError("selectors.quantity_pattern needs one capture group for the count")

    css = {
        "card": str(sel_cfg.get("card", ".card.cartitem")),
        "name": str(sel_cfg.get("name", "h4")),
        "quantity": str(sel_cfg.get("quantity", "p.card-text")),
    }
    for key, selector in css.items():
        try:
            soupsieve.compile(selector)
        except soupsieve.SelectorSyntaxError as exc:
            raise ConfigError(f"selectors.{key} is not a valid CSS selector: {selector!r}: {exc}") from exc

    return SelectorRules(
        card=css["card"],
        name=css["name"],
        quantity=css["quantity"],
        quantity_pattern=pattern,
        quantity_keyword=str(sel_cfg.get("quantity_keyword", "") or ""),
    )


def _build_strategy(config: dict[str, Any]) -> StrategyConfig:
    strategy_cfg = section(config, "strategy")
    tz_name = str(strategy_cfg.get("timezone", "Asia/Shanghai"))
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"strategy.timezone is not a known IANA zone: {tz_name!r}") from exc

    cooldown_seconds = coerce_positive_int(strategy_cfg.get("notify_cooldown_seconds"), 600, minimum=1)
    return StrategyConfig(
        notify_cooldown_ms=cooldown_seconds * 1000,
        daily_report_hour=parse_report_hour(strategy_cfg.get("daily_report_hour", 12)),
        restock_notify_enabled=coerce_bool(strategy_cfg.get("restock_notify_enabled"), default=True),
        timezone=tz_name,
    )


def build_monitor_config(config: dict[str, Any]) -> MonitorConfig:
    """Validate a raw config payload and build the immutable MonitorConfig."""
    strategy_cfg = section(config, "strategy")
    dashboard_cfg = section(config, "dashboard")
    state_cfg = section(config, "state")

    return MonitorConfig(
        site=_build_site(config),
        selectors=_build_selectors(config),
        strategy=_build_strategy(config),
        check_interval_seconds=coerce_positive_int(strategy_cfg.get("check_interval_seconds"), 60),
        send_startup_notice=coerce_bool(strategy_cfg.get("send_startup_notice"), default=False),
        telegram=build_telegram_config(section(config, "telegram")),
        email=build_email_config(section(config, "email")),
        dashboard=DashboardConfig(
            enabled=coerce_bool(dashboard_cfg.get("enabled"), default=True),
            host=str(dashboard_cfg.get("host", "0.0.0.0")),
            port=coerce_positive_int(dashboard_cfg.get("port"), 3000, maximum=65535),
            log_lines=coerce_positive_int(dashboard_cfg.get("log_lines"), 100, maximum=1000),
        ),
        state_path=Path(str(state_cfg.get("path", "data/monitor_state.json"))),
        raw=dict(config),
    )
