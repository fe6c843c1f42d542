"""Obtains and refreshes the cookie session used to fetch the stock page."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from restock_monitor.misc.errors import AuthError
from restock_monitor.misc.http_client import HttpClient
from restock_monitor.misc.logger import get_logger


def epoch_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class Credential:
    """A cookie header plus the time it was issued."""

    cookie_header: str
    issued_at_ms: int

    @property
    def anonymous(self) -> bool:
        return not self.cookie_header


class SessionProvider:
    """Logs in with a form POST and hands out cookie credentials."""

    def __init__(
        self,
        http_client: HttpClient,
        login_required: bool,
        login_url: str = "",
        username: str = "",
        password: str = "",
        username_field: str = "username",
        password_field: str = "password",
        max_age_seconds: int = 86400,
        clock: Callable[[], int] = epoch_ms,
    ) -> None:
        self.http_client = http_client
        self.login_required = login_required
        self.login_url = login_url
        self.username = username
        self.password = password
        self.username_field = username_field
        self.password_field = password_field
        self.max_age_ms = int(max_age_seconds) * 1000
        self.clock = clock
        self.logger = get_logger("session")

    def authenticate(self) -> Credential:
        """Return a fresh credential or raise AuthError."""
        now = self.clock()
        if not self.login_required:
            return Credential(cookie_header="", issued_at_ms=now)
        if not self.username or not self.password:
            raise AuthError("missing site credentials; set site.username/site.password or their env vars")

        result = self.http_client.post_form(
            self.login_url,
            {self.username_field: self.username, self.password_field: self.password},
        )
        if not result.ok:
            raise AuthError(f"login failed url={self.login_url} error={result.error}")
        if not result.cookies:
            raise AuthError(f"login response set no cookies url={self.login_url}")

        cookie_header = "; ".join(f"{name}={value}" for name, value in result.cookies.items())
        self.logger.info("session refreshed cookies=%s", len(result.cookies))
        return Credential(cookie_header=cookie_header, issued_at_ms=now)

    def is_expired(self, credential: Credential | None, now_ms: int) -> bool:
        if credential is None:
            return True
        if not self.login_required:
            return False
        return (now_ms - credential.issued_at_ms) > self.max_age_ms
