from __future__ import annotations

import json
from types import SimpleNamespace

from restock_monitor import main_monitor
from restock_monitor.others.poll_cycle import CycleOutcome


def _write_config(tmp_path) -> str:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "site": {"name": "Shop", "url": "https://shop.example.com/cart"},
                "state": {"path": str(tmp_path / "state.json")},
            }
        ),
        encoding="utf-8",
    )
    return str(path)


def _fake_monitor(outcome: CycleOutcome):
    return SimpleNamespace(
        email=None,
        notifier=SimpleNamespace(enabled=False),
        cycle=SimpleNamespace(run=lambda: outcome),
    )


def test_config_error_exits_with_code_2(tmp_path, capsys) -> None:
    code = main_monitor.main(["--config", str(tmp_path / "missing.json")])
    assert code == 2
    assert "configuration error" in capsys.readouterr().err


def test_once_runs_single_cycle(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(main_monitor, "setup_logging", lambda **kwargs: None)
    monkeypatch.setattr(main_monitor, "build_monitor", lambda config, publisher: _fake_monitor(CycleOutcome(evaluated=True)))

    assert main_monitor.main(["--config", _write_config(tmp_path), "--once"]) == 0


def test_once_reports_failed_cycle(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(main_monitor, "setup_logging", lambda **kwargs: None)
    monkeypatch.setattr(
        main_monitor,
        "build_monitor",
        lambda config, publisher: _fake_monitor(CycleOutcome(evaluated=False, error="fetch failed")),
    )

    assert main_monitor.main(["--config", _write_config(tmp_path), "--once"]) == 1


def test_build_monitor_skips_disabled_channels(tmp_path, monkeypatch) -> None:
    for name in ("TELEGRAM_BOT_TOKEN", "TELEGRAM_CHAT_ID"):
        monkeypatch.delenv(name, raising=False)
    raw = main_monitor.load_config(_write_config(tmp_path))
    monitor = main_monitor.build_monitor(main_monitor.build_monitor_config(raw))

    assert monitor.notifier.enabled is False
    assert monitor.email is None
    assert monitor.cycle.site_url == "https://shop.example.com/cart"
