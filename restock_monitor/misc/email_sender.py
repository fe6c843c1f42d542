"""Sends notification e-mails over SMTP."""

from __future__ import annotations

import os
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from html import escape
from typing import Any

from restock_monitor.misc.coerce import coerce_bool
from restock_monitor.misc.logger import get_logger
from restock_monitor.others.notifier import MessageContext, decision_title
from restock_monitor.others.transition_engine import DecisionKind, NotificationDecision

RESTOCK_COLOR = "#28a745"
ALERT_COLOR = "#dc3545"


@dataclass(frozen=True, slots=True)
class EmailConfig:
    enabled: bool = False
    host: str = ""
    port: int = 587
    secure: bool = False
    starttls: bool = True
    username: str = ""
    password: str = ""
    sender: str = ""
    receivers: tuple[str, ...] = ()
    timeout_seconds: float = 30.0


def build_email_config(cfg: dict[str, Any]) -> EmailConfig:
    """Resolve the email section; the password may come from the environment."""
    password_env = str(cfg.get("password_env", "SMTP_PASSWORD"))
    username_env = str(cfg.get("username_env", "SMTP_USERNAME"))
    password = os.getenv(password_env, "").strip() or str(cfg.get("password", "")).strip()
    username = os.getenv(username_env, "").strip() or str(cfg.get("username", "")).strip()

    raw_receivers = cfg.get("receiver", cfg.get("receivers", ""))
    if isinstance(raw_receivers, (list, tuple)):
        receivers = tuple(str(r).strip() for r in raw_receivers if str(r).strip())
    else:
        receivers = tuple(r.strip() for r in str(raw_receivers or "").split(",") if r.strip())

    host = str(cfg.get("host", "")).strip()
    configured_enabled = coerce_bool(cfg.get("enabled"), default=False)
    enabled = configured_enabled and bool(host and receivers)
    if configured_enabled and not enabled:
        get_logger("email").warning("Email is enabled in config but host or receiver is missing.")

    return EmailConfig(
        enabled=enabled,
        host=host,
        port=int(cfg.get("port", 587)),
        secure=coerce_bool(cfg.get("secure"), default=False),
        starttls=coerce_bool(cfg.get("starttls"), default=True),
        username=username,
        password=password,
        sender=str(cfg.get("sender", "") or username).strip(),
        receivers=receivers,
        timeout_seconds=float(cfg.get("timeout_seconds", 30)),
    )


class EmailSender:
    """SMTP channel rendering an HTML body with a plain-text alternative."""

    name = "email"

    def __init__(self, config: EmailConfig) -> None:
        self.config = config
        self.logger = get_logger("email")

    def _connect(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self.config.secure:
            server: smtplib.SMTP = smtplib.SMTP_SSL(
                self.config.host, self.config.port, timeout=self.config.timeout_seconds, context=context
            )
        else:
            server = smtplib.SMTP(self.config.host, self.config.port, timeout=self.config.timeout_seconds)
            if self.config.starttls:
                server.starttls(context=context)
        if self.config.username and self.config.password:
            server.login(self.config.username, self.config.password)
        return server

    def verify(self) -> bool:
        """Connect and authenticate once; used as a startup check."""
        if not self.config.enabled:
            return False
        try:
            with self._connect():
                pass
        except (OSError, smtplib.SMTPException) as exc:
            self.logger.error("SMTP verification failed host=%s error=%s", self.config.host, exc)
            return False
        self.logger.info("SMTP connection verified host=%s", self.config.host)
        return True

    def _summary_lines(self, decision: NotificationDecision, context: MessageContext) -> list[str]:
        if decision.kind is DecisionKind.DAILY_REPORT:
            return [
                "Status: running",
                f"Monitored: {decision.item_count}",
                f"In stock: {'yes' if decision.has_stock else 'no'}",
            ]
        return [f"Monitored: {decision.item_count}", f"Timezone: {context.timezone or '-'}"]

    def render_text(self, decision: NotificationDecision, context: MessageContext) -> str:
        lines = [decision_title(decision, context.site_name), context.local_time, ""]
        if decision.kind is DecisionKind.RESTOCK:
            lines.extend(f"- {item.name}: {item.quantity}" for item in decision.items)
            lines.extend(["", f"Go: {context.site_url}"])
        elif decision.kind is DecisionKind.SOLDOUT:
            lines.extend(["Sold out.", "", context.site_url])
        else:
            lines.extend(self._summary_lines(decision, context))
        return "\n".join(lines)

    def render_html(self, decision: NotificationDecision, context: MessageContext) -> str:
        color = RESTOCK_COLOR if decision.kind is DecisionKind.RESTOCK else ALERT_COLOR
        title = escape(decision_title(decision, context.site_name))
        url = escape(context.site_url, quote=True)
        parts = [
            '<div style="border:1px solid #eee;padding:20px;border-radius:8px">',
            f'<h2 style="color:{color}">{title}</h2><p>{escape(context.local_time)}</p><hr>',
        ]
        if decision.kind is DecisionKind.RESTOCK:
            parts.append("<ul>")
            for item in decision.items:
                parts.append(
                    f'<li><b>{escape(item.name)}</b>: '
                    f'<span style="color:green;font-weight:bold">{item.quantity}</span></li>'
                )
            parts.append(
                f'</ul><br><a href="{url}" style="background:{color};color:#fff;'
                'padding:10px 20px;text-decoration:none">Go</a>'
            )
        elif decision.kind is DecisionKind.SOLDOUT:
            parts.append(f'<p style="color:red">Sold Out</p><p><a href="{url}">{url}</a></p>')
        else:
            parts.append("<pre>" + escape("\n".join(self._summary_lines(decision, context))) + "</pre>")
        parts.append("</div>")
        return "".join(parts)

    def build_message(self, decision: NotificationDecision, context: MessageContext) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = decision_title(decision, context.site_name)
        msg["From"] = f'"{context.site_name} Monitor" <{self.config.sender}>'
        msg["To"] = ", ".join(self.config.receivers)
        msg.set_content(self.render_text(decision, context))
        msg.add_alternative(self.render_html(decision, context), subtype="html")
        return msg

    def notify(self, decision: NotificationDecision, context: MessageContext) -> bool:
        if not self.config.enabled:
            self.logger.info("Email disabled, skipping kind=%s", decision.kind.value)
            return False
        message = self.build_message(decision, context)
        try:
            with self._connect() as server:
                server.send_message(message)
        except (OSError, smtplib.SMTPException) as exc:
            self.logger.warning("Email send failed kind=%s error=%s", decision.kind.value, exc)
            return False
        return True
