"""Telegram Bot API channel: MarkdownV2 rendering and delivery with retries."""

from __future__ import annotations

import os
import re
import time
from dataclasses import dataclass
from typing import Any

import httpx

from restock_monitor.misc.coerce import coerce_bool
from restock_monitor.misc.logger import get_logger
from restock_monitor.others.notifier import MessageContext, decision_title
from restock_monitor.others.transition_engine import DecisionKind, NotificationDecision

TRUNCATION_MARKER = "\n\n_\\(truncated\\)_"
DEFAULT_LINK_LABEL = "Open stock page"

_MD2_SPECIAL = re.compile(r"([_*\[\]()~`>#+\-=|{}.!\\])")
_MD2_CODE_SPECIAL = re.compile(r"([`\\])")
_MD2_LINK_SPECIAL = re.compile(r"([()\\])")


def _escape_md2(text: str) -> str:
    return _MD2_SPECIAL.sub(r"\\\1", str(text))


def _escape_md2_code(text: str) -> str:
    """Inside `code` spans only backtick and backslash need escaping."""
    return _MD2_CODE_SPECIAL.sub(r"\\\1", str(text))


def _escape_md2_link_target(url: str) -> str:
    return _MD2_LINK_SPECIAL.sub(r"\\\1", str(url or "").strip())


def _truncate_lines(text: str, limit: int) -> str:
    """Drop whole lines from the end so no escape or entity is cut in half."""
    if len(text) <= limit:
        return text
    cut = text.rfind("\n", 0, max(0, limit - len(TRUNCATION_MARKER)) + 1)
    return (text[:cut] if cut > 0 else "") + TRUNCATION_MARKER


@dataclass(frozen=True, slots=True)
class TelegramConfig:
    enabled: bool = False
    bot_token: str = ""
    chat_id: str = ""
    topic_id: int | None = None
    max_message_length: int = 4096
    max_retries: int = 3
    base_retry_delay: float = 1.0
    timeout_seconds: float = 20.0


def _normalize_topic_id(value: str) -> int | None:
    """Forum topic ids are positive integers; anything else means no topic."""
    text = (value or "").strip()
    return int(text) if text.isdigit() and int(text) > 0 else None


def _setting(cfg: dict[str, Any], key: str, default_env: str) -> str:
    """A non-empty ``<key>_env`` variable wins over the literal ``<key>``."""
    env_name = str(cfg.get(f"{key}_env", default_env))
    return os.getenv(env_name, "").strip() or str(cfg.get(key, "") or "").strip()


def build_telegram_config(cfg: dict[str, Any]) -> TelegramConfig:
    bot_token = _setting(cfg, "bot_token", "TELEGRAM_BOT_TOKEN")
    chat_id = _setting(cfg, "chat_id", "TELEGRAM_CHAT_ID")
    wanted = coerce_bool(cfg.get("enabled"), default=False)
    if wanted and not (bot_token and chat_id):
        get_logger("telegram").warning("telegram channel disabled: bot token or chat id missing")

    return TelegramConfig(
        enabled=wanted and bool(bot_token and chat_id),
        bot_token=bot_token,
        chat_id=chat_id,
        topic_id=_normalize_topic_id(_setting(cfg, "topic_id", "TELEGRAM_TOPIC_ID")),
        max_message_length=int(cfg.get("max_message_length", 4096)),
        max_retries=max(1, int(cfg.get("max_retries", 3))),
        base_retry_delay=float(cfg.get("base_retry_delay", 1.0)),
        timeout_seconds=float(cfg.get("timeout_seconds", 20)),
    )


class TelegramSender:
    """Telegram Bot API channel with retry on rate limits and server errors."""

    name = "telegram"

    def __init__(self, config: TelegramConfig, transport: httpx.BaseTransport | None = None) -> None:
        self.config = config
        self.transport = transport
        self.logger = get_logger("telegram")

    @property
    def _api_url(self) -> str:
        return f"https://api.telegram.org/bot{self.config.bot_token}/sendMessage"

    def _post(self, payload: dict[str, Any]) -> httpx.Response:
        client_kwargs: dict[str, Any] = {"timeout": self.config.timeout_seconds}
        if self.transport is not None:
            client_kwargs["transport"] = self.transport
        with httpx.Client(**client_kwargs) as client:
            return client.post(self._api_url, json=payload)

    def _payload(self, text: str) -> dict[str, Any]:
        text = _truncate_lines(text, self.config.max_message_length)
        payload: dict[str, Any] = {
            "chat_id": self.config.chat_id,
            "text": text,
            "parse_mode": "MarkdownV2",
            "disable_web_page_preview": True,
        }
        if self.config.topic_id:
            payload["message_thread_id"] = self.config.topic_id
        return payload

    @staticmethod
    def _retry_after(response: httpx.Response, fallback: float) -> float:
        try:
            body = response.json()
        except ValueError:
            return fallback
        hint = body.get("parameters", {}).get("retry_after") if isinstance(body, dict) else None
        return max(fallback, float(hint)) if isinstance(hint, (int, float)) else fallback

    def _send(self, text: str) -> bool:
        """Post one message; True once Telegram accepts it."""
        if not self.config.enabled:
            self.logger.info("Telegram disabled, dropping message:\n%s", text)
            return False

        payload = self._payload(text)
        retries = self.config.max_retries
        for attempt in range(1, retries + 1):
            wait = self.config.base_retry_delay * 2 ** (attempt - 1)
            try:
                response = self._post(payload)
            except httpx.HTTPError as exc:
                self.logger.warning("Telegram request error attempt=%s/%s: %s", attempt, retries, exc)
            else:
                status = response.status_code
                if status < 400:
                    return True
                if status == 429:
                    wait = self._retry_after(response, wait)
                    self.logger.warning("Telegram throttled attempt=%s/%s wait=%.1fs", attempt, retries, wait)
                elif status < 500:
                    self.logger.error("Telegram rejected message status=%s body=%s", status, response.text[:200])
                    return False
                else:
                    self.logger.warning("Telegram server error status=%s attempt=%s/%s", status, attempt, retries)
            if attempt < retries:
                time.sleep(wait)

        self.logger.error("Telegram gave up after %s attempts", retries)
        return False

    def render(self, decision: NotificationDecision, context: MessageContext) -> str:
        """Render a decision as a MarkdownV2 message."""
        e = _escape_md2
        lines = [f"*{e(decision_title(decision, context.site_name))}*", ""]
        link = f"[{e(DEFAULT_LINK_LABEL)}]({_escape_md2_link_target(context.site_url)})"

        if decision.kind is DecisionKind.RESTOCK:
            for item in decision.items:
                lines.append(f"📦 `{_escape_md2_code(item.name)}`: *{item.quantity}*")
            lines.extend(["", f"⚡️ {link}"])
        elif decision.kind is DecisionKind.SOLDOUT:
            lines.extend([e("❌ All items are sold out."), "", f"🔗 {link}"])
        elif decision.kind is DecisionKind.DAILY_REPORT:
            lines.extend(
                [
                    f"✅ *Status:* {e('running')}",
                    f"📦 *Monitored:* {decision.item_count}",
                    f"🟢 *In stock:* {e('yes' if decision.has_stock else 'no')}",
                ]
            )
        else:
            lines.extend(
                [
                    f"📦 *Monitored:* {decision.item_count}",
                    f"🌐 *Timezone:* {e(context.timezone or '-')}",
                ]
            )
        lines.append(f"🕒 {e(context.local_time)}")
        return "\n".join(lines)

    def notify(self, decision: NotificationDecision, context: MessageContext) -> bool:
        return self._send(self.render(decision, context))
