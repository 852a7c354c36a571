"""Exception types raised across chat2me."""

from typing import Optional


class Chat2MeError(Exception):
    """Base class for chat2me errors."""


class ProviderError(Chat2MeError):
    """A completion request did not produce a reply."""

    def describe(self) -> str:
        """Human-readable description shown in the transcript."""
        return f"Error: {self}"


class ProviderHTTPError(ProviderError):
    """The provider answered with a non-200 status."""

    def __init__(self, status: int, reason: Optional[str] = None, body: Optional[str] = None):
        self.status = status
        self.reason = reason or ""
        self.body = body
        super().__init__(f"{status}: {self.reason}")

    def describe(self) -> str:
        return f"Error: {self.status}: {self.reason}"


class TransportError(ProviderError):
    """Network or serialization failure around the HTTP exchange."""


class ProviderTimeoutError(TransportError):
    """The request did not complete within the configured timeout."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"request timed out after {timeout_seconds:g} seconds")


class RequestCancelledError(TransportError):
    """The in-flight request was cancelled by the user."""

    def __init__(self):
        super().__init__("request cancelled")


class InvalidInputError(Chat2MeError, ValueError):
    """Caller supplied input the session does not accept."""


class InvalidLanguageError(InvalidInputError):
    """Language code outside the supported set."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Unsupported language code: {code!r}")


class RequestInProgressError(Chat2MeError):
    """A send was attempted while another request is still pending."""
