from __future__ import annotations

import json
from pathlib import Path

import pytest

from restock_monitor.misc.coerce import coerce_bool, coerce_positive_int
from restock_monitor.misc.config_loader import build_monitor_config, load_config, parse_report_hour
from restock_monitor.misc.errors import ConfigError


def _minimal(**overrides) -> dict:
    config = {"site": {"name": "Shop", "url": "https://shop.example.com/cart"}}
    config.update(overrides)
    return config


def test_coerce_positive_int() -> None:
    assert coerce_positive_int("5", default=1) == 5
    assert coerce_positive_int(0, default=3) == 1
    assert coerce_positive_int("not-a-number", default=3) == 3
    assert coerce_positive_int(99999, default=3000, maximum=65535) == 65535


def test_parse_report_hour() -> None:
    assert parse_report_hour(12) == 12
    assert parse_report_hour("0") == 0
    assert parse_report_hour("disabled") is None
    assert parse_report_hour(-1) is None
    assert parse_report_hour(None) is None
    with pytest.raises(ConfigError):
        parse_report_hour(24)
    with pytest.raises(ConfigError):
        parse_report_hour("noon")


def test_defaults_for_minimal_config(monkeypatch) -> None:
    for name in ("TELEGRAM_BOT_TOKEN", "TELEGRAM_CHAT_ID", "SMTP_PASSWORD", "SMTP_USERNAME"):
        monkeypatch.delenv(name, raising=False)

    config = build_monitor_config(_minimal())

    assert config.site.login_required is False
    assert config.selectors.card == ".card.cartitem"
    assert config.selectors.name == "h4"
    assert config.selectors.quantity == "p.card-text"
    assert config.strategy.notify_cooldown_ms == 600_000
    assert config.strategy.daily_report_hour == 12
    assert config.strategy.timezone == "Asia/Shanghai"
    assert config.interval_ms == 60_000
    assert config.dashboard.port == 3000
    assert config.telegram.enabled is False
    assert config.email.enabled is False


def test_site_credentials_come_from_env(monkeypatch) -> None:
    monkeypatch.setenv("SHOP_USER", "alice")
    monkeypatch.setenv("SITE_PASSWORD", "from-env")
    config = build_monitor_config(
        _minimal(
            site={
                "url": "https://shop.example.com/cart",
                "login_required": True,
                "login_url": "https://shop.example.com/login",
                "username_env": "SHOP_USER",
                "password": "from-file",
            }
        )
    )
    assert config.site.username == "alice"
    assert config.site.password == "from-env"


@pytest.mark.parametrize(
    "overrides",
    [
        {"site": {}},
        {"site": {"url": "ftp://shop.example.com"}},
        {"site": {"url": "https://shop.example.com", "login_required": True}},
        {"selectors": {"quantity_pattern": "inventory (\\d+"}},
        {"selectors": {"quantity_pattern": "inventory \\d+"}},
        {"selectors": {"card": "div["}},
        {"selectors": {"name": "h4:not("}},
        {"selectors": {"quantity": "p.card-text[data-q="}},
        {"strategy": {"timezone": "Mars/Olympus"}},
        {"strategy": {"daily_report_hour": 30}},
    ],
)
def test_invalid_config_raises(overrides: dict) -> None:
    with pytest.raises(ConfigError):
        build_monitor_config(_minimal(**overrides))


def test_load_config_errors(tmp_path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_config(str(tmp_path / "missing.json"))

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(str(broken))

    listed = tmp_path / "list.json"
    listed.write_text(json.dumps([1, 2]), encoding="utf-8")
    with pytest.raises(ConfigError, match="object"):
        load_config(str(listed))


def test_example_config_is_valid(monkeypatch) -> None:
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
    config = build_monitor_config(load_config(str(Path(__file__).resolve().parents[1] / "config" / "config.example.json")))
    assert config.site.login_required is True
    assert config.selectors.quantity_keyword == "inventory"


def test_coerce_bool_reads_string_flags() -> None:
    assert coerce_bool("false", default=True) is False
    assert coerce_bool("Off", default=True) is False
    assert coerce_bool("yes") is True
    assert coerce_bool(None, default=True) is True


def test_string_false_keeps_channels_off(monkeypatch) -> None:
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "token")
    monkeypatch.setenv("TELEGRAM_CHAT_ID", "42")
    config = build_monitor_config(
        _minimal(
            telegram={"enabled": "false"},
            email={
                "enabled": "false",
                "host": "smtp.example.com",
                "receiver": "me@example.com",
                "secure": "false",
                "starttls": "false",
            },
        )
    )
    assert config.telegram.enabled is False
    assert config.email.enabled is False
    assert config.email.secure is False
    assert config.email.starttls is False
