from __future__ import annotations

import httpx
import pytest

from restock_monitor.misc.errors import AuthError
from restock_monitor.misc.http_client import HttpClient
from restock_monitor.others.session_provider import Credential, SessionProvider

RETRY_OFF = {"retry": {"max_attempts": 1, "base_delay_seconds": 0, "jitter_seconds": 0}}


def _provider(handler, **kwargs) -> SessionProvider:
    client = HttpClient(RETRY_OFF, transport=httpx.MockTransport(handler))
    defaults = {
        "login_required": True,
        "login_url": "https://shop.example.com/login",
        "username": "alice",
        "password": "secret",
        "clock": lambda: 1_000,
    }
    defaults.update(kwargs)
    return SessionProvider(http_client=client, **defaults)


def _unused(request: httpx.Request) -> httpx.Response:
    raise AssertionError("no request expected")


def test_anonymous_credential_when_login_not_required() -> None:
    provider = _provider(_unused, login_required=False)
    credential = provider.authenticate()
    assert credential.anonymous is True
    assert provider.is_expired(credential, 10**12) is False


def test_login_posts_form_and_builds_cookie_header() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = request.content.decode()
        assert "email=alice" in body
        assert "passwd=secret" in body
        return httpx.Response(
            200,
            headers=[("Set-Cookie", "sid=abc; Path=/"), ("Set-Cookie", "lang=en; Path=/")],
            text="ok",
        )

    provider = _provider(handler, username_field="email", password_field="passwd")
    credential = provider.authenticate()

    assert credential.issued_at_ms == 1_000
    assert sorted(credential.cookie_header.split("; ")) == ["lang=en", "sid=abc"]


def test_missing_credentials_raise_auth_error() -> None:
    provider = _provider(_unused, password="")
    with pytest.raises(AuthError):
        provider.authenticate()


def test_rejected_login_raises_auth_error() -> None:
    provider = _provider(lambda request: httpx.Response(401, text="denied"))
    with pytest.raises(AuthError, match="login failed"):
        provider.authenticate()


def test_login_without_cookies_raises_auth_error() -> None:
    provider = _provider(lambda request: httpx.Response(200, text="ok"))
    with pytest.raises(AuthError, match="no cookies"):
        provider.authenticate()


def test_credential_expires_after_max_age() -> None:
    provider = _provider(_unused, max_age_seconds=60)
    credential = Credential(cookie_header="sid=abc", issued_at_ms=0)
    assert provider.is_expired(None, 0) is True
    assert provider.is_expired(credential, 60_000) is False
    assert provider.is_expired(credential, 60_001) is True
