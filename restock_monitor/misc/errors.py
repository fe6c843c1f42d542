"""Error taxonomy shared by the monitor components."""

from __future__ import annotations


class MonitorError(Exception):
    """Base class for every error raised by the monitor."""


class ConfigError(MonitorError):
    """Configuration is missing or invalid; fatal at startup."""


class AuthError(MonitorError):
    """Login failed: missing credentials, non-2xx response or no session cookie."""


class FetchError(MonitorError):
    """The stock page could not be fetched (network, timeout or non-2xx)."""


class ExtractionEmpty(MonitorError):
    """The selectors matched zero inventory items on the fetched page."""


class StateIOError(MonitorError):
    """Reading or writing the persisted state file failed."""


class NotifyChannelError(MonitorError):
    """One notification channel failed to deliver a message."""

    def __init__(self, channel: str, message: str) -> None:
        super().__init__(f"{channel}: {message}")
        self.channel = channel
