from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from restock_monitor.misc.coerce import coerce_bool
from restock_monitor.misc.logger import get_logger

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
RETRIABLE_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Exponential backoff for page and login requests."""

    max_attempts: int = 2
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 15.0
    jitter_seconds: float = 0.4

    def is_transient(self, status_code: int | None) -> bool:
        return status_code is None or status_code in RETRIABLE_STATUS_CODES

    def delay(self, attempt: int) -> float:
        base = min(self.max_delay_seconds, self.base_delay_seconds * 2 ** (attempt - 1))
        if self.jitter_seconds <= 0:
            return base
        return base + random.uniform(0, self.jitter_seconds)


@dataclass(slots=True)
class FetchResult:
    ok: bool
    requested_url: str
    final_url: str
    status_code: int | None
    text: str
    elapsed_ms: int
    cookies: dict[str, str] = field(default_factory=dict)
    error: str | None = None


class HttpClient:
    """Direct HTTP fetcher with bounded retries on transient failures."""

    def __init__(self, config: dict[str, Any], transport: httpx.BaseTransport | None = None) -> None:
        self.config = config
        self.logger = get_logger("http_client")
        self.transport = transport

        http_cfg = config.get("http", {})
        retry_cfg = config.get("retry", {})

        self.timeout = float(http_cfg.get("timeout_seconds", 30))
        self.follow_redirects = coerce_bool(http_cfg.get("follow_redirects"), default=True)
        self.verify_ssl = coerce_bool(http_cfg.get("verify_ssl"), default=True)
        self.user_agent = str(http_cfg.get("user_agent", DEFAULT_USER_AGENT))
        self.accept_language = str(http_cfg.get("accept_language", "zh-CN,zh;q=0.9,en;q=0.8"))

        self.retry = RetryPolicy(
            max_attempts=max(1, int(retry_cfg.get("max_attempts", 2))),
            base_delay_seconds=float(retry_cfg.get("base_delay_seconds", 1.0)),
            max_delay_seconds=float(retry_cfg.get("max_delay_seconds", 15)),
            jitter_seconds=float(retry_cfg.get("jitter_seconds", 0.4)),
        )

    def _client(self) -> httpx.Client:
        client_kwargs: dict[str, Any] = {
            "timeout": self.timeout,
            "follow_redirects": self.follow_redirects,
            "verify": self.verify_ssl,
            "headers": {"User-Agent": self.user_agent, "Accept-Language": self.accept_language},
        }
        if self.transport is not None:
            client_kwargs["transport"] = self.transport
        return httpx.Client(**client_kwargs)

    def _request_once(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        data: dict[str, str] | None = None,
    ) -> FetchResult:
        start = time.perf_counter()
        try:
            with self._client() as client:
                response = client.request(method, url, headers=headers, data=data)
                cookies = {cookie.name: cookie.value for cookie in client.cookies.jar if cookie.value is not None}
            elapsed = int((time.perf_counter() - start) * 1000)
            ok = 200 <= response.status_code < 300
            return FetchResult(
                ok=ok,
                requested_url=url,
                final_url=str(response.url),
                status_code=response.status_code,
                text=response.text,
                elapsed_ms=elapsed,
                cookies=cookies,
                error=None if ok else f"status={response.status_code}",
            )
        except httpx.HTTPError as exc:
            elapsed = int((time.perf_counter() - start) * 1000)
            return FetchResult(
                ok=False,
                requested_url=url,
                final_url=url,
                status_code=None,
                text="",
                elapsed_ms=elapsed,
                error=str(exc) or type(exc).__name__,
            )

    def request(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        data: dict[str, str] | None = None,
    ) -> FetchResult:
        result: FetchResult | None = None
        for attempt in range(1, self.retry.max_attempts + 1):
            result = self._request_once(method, url, headers=headers, data=data)
            self.logger.debug(
                "fetch %s attempt=%s url=%s status=%s elapsed_ms=%s",
                method,
                attempt,
                url,
                result.status_code,
                result.elapsed_ms,
            )
            if result.ok:
                return result
            if not self.retry.is_transient(result.status_code) or attempt == self.retry.max_attempts:
                break
            time.sleep(self.retry.delay(attempt))

        assert result is not None
        return result

    def get(self, url: str, cookie_header: str | None = None) -> FetchResult:
        headers = {"Cookie": cookie_header} if cookie_header else None
        return self.request("GET", url, headers=headers)

    def post_form(self, url: str, data: dict[str, str]) -> FetchResult:
        return self.request("POST", url, data=data)
