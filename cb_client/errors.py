from __future__ import annotations


class CoinbaseError(Exception):
    """Base class for errors raised by this client."""


class ValidationError(CoinbaseError, ValueError):
    """A request descriptor failed validation before any network call."""


class CredentialsError(CoinbaseError):
    """Credentials are missing or incomplete."""


class DecodeError(CoinbaseError, ValueError):
    """A response payload did not have the expected shape."""


class APIError(CoinbaseError):
    """The server answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"HTTP {status_code}: {message}")
