"""Exception hierarchy for device-locator."""
from __future__ import annotations


class LocatorError(Exception):
    """Base class for every error raised by device-locator."""


class AuthError(LocatorError):
    """The remote service rejected the credentials or the session token."""

    def __init__(self, status: int, message: str | None = None) -> None:
        self.status = status
        super().__init__(message or f"access denied: {status}")


class TransportError(LocatorError):
    """The request could not be completed (network, timeout, unexpected status)."""


class DecodeError(LocatorError):
    """The response body could not be parsed into a session response."""


class SessionStateError(LocatorError):
    """A refresh was requested without an established session."""


class BrokerConnectionError(LocatorError):
    """The MQTT broker could not be reached at start-up."""


class ConfigError(LocatorError):
    """The configuration file is missing or invalid."""


class AccountFailure(LocatorError):
    """Error reported by an account worker to the supervisor."""

    def __init__(self, account: str, error: BaseException) -> None:
        self.account = account
        self.error = error
        super().__init__(f"{account}: {error}")
        self.__cause__ = error
