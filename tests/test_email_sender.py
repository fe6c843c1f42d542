from __future__ import annotations

import smtplib

from restock_monitor.misc import email_sender
from restock_monitor.misc.email_sender import EmailConfig, EmailSender, build_email_config
from restock_monitor.misc.stock_state import InventoryItem
from restock_monitor.others.notifier import MessageContext
from restock_monitor.others.transition_engine import DecisionKind, NotificationDecision

CONTEXT = MessageContext(site_name="Shop", site_url="https://shop.example.com/cart", local_time="2026-03-01 12:00:00")
RESTOCK = NotificationDecision(
    kind=DecisionKind.RESTOCK,
    items=(InventoryItem("JP <Pro>", 2),),
    has_stock=True,
    item_count=3,
)


class FakeSMTP:
    instances: list["FakeSMTP"] = []

    def __init__(self, host: str, port: int, timeout: float | None = None) -> None:
        self.host = host
        self.port = port
        self.started_tls = False
        self.logged_in: tuple[str, str] | None = None
        self.sent: list = []
        FakeSMTP.instances.append(self)

    def __enter__(self) -> "FakeSMTP":
        return self

    def __exit__(self, *exc_info) -> None:
        return None

    def starttls(self, context=None) -> None:
        self.started_tls = True

    def login(self, username: str, password: str) -> None:
        self.logged_in = (username, password)

    def send_message(self, message) -> None:
        self.sent.append(message)


def _config(**kwargs) -> EmailConfig:
    values = {
        "enabled": True,
        "host": "smtp.example.com",
        "username": "bot@example.com",
        "password": "pw",
        "sender": "bot@example.com",
        "receivers": ("ops@example.com", "me@example.com"),
    }
    values.update(kwargs)
    return EmailConfig(**values)


def test_build_config_splits_receivers_and_reads_env(monkeypatch) -> None:
    monkeypatch.setenv("SMTP_PASSWORD", "env-pw")
    monkeypatch.delenv("SMTP_USERNAME", raising=False)

    cfg = build_email_config(
        {"enabled": True, "host": "smtp.example.com", "username": "bot@example.com", "receiver": "a@x.com, b@x.com"}
    )

    assert cfg.enabled is True
    assert cfg.password == "env-pw"
    assert cfg.sender == "bot@example.com"
    assert cfg.receivers == ("a@x.com", "b@x.com")


def test_build_config_without_receivers_is_disabled(monkeypatch) -> None:
    monkeypatch.delenv("SMTP_PASSWORD", raising=False)
    assert build_email_config({"enabled": True, "host": "smtp.example.com"}).enabled is False


def test_message_has_text_and_html_parts() -> None:
    message = EmailSender(_config()).build_message(RESTOCK, CONTEXT)

    assert message["Subject"] == "🟢 Shop restock"
    assert message["To"] == "ops@example.com, me@example.com"
    text = message.get_body(preferencelist=("plain",)).get_content()
    html = message.get_body(preferencelist=("html",)).get_content()
    assert "- JP <Pro>: 2" in text
    assert "JP &lt;Pro&gt;" in html
    assert "https://shop.example.com/cart" in html


def test_notify_sends_over_starttls(monkeypatch) -> None:
    FakeSMTP.instances.clear()
    monkeypatch.setattr(email_sender.smtplib, "SMTP", FakeSMTP)

    assert EmailSender(_config()).notify(RESTOCK, CONTEXT) is True

    server = FakeSMTP.instances[-1]
    assert server.started_tls is True
    assert server.logged_in == ("bot@example.com", "pw")
    assert len(server.sent) == 1


def test_notify_returns_false_on_smtp_error(monkeypatch) -> None:
    def refuse(*args, **kwargs):
        raise smtplib.SMTPConnectError(421, b"busy")

    monkeypatch.setattr(email_sender.smtplib, "SMTP", refuse)

    sender = EmailSender(_config())
    assert sender.notify(RESTOCK, CONTEXT) is False
    assert sender.verify() is False
