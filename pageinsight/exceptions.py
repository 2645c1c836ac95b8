"""Custom exceptions for PageInsight services."""
from enum import Enum
from typing import Optional

import requests


class ErrorKind(str, Enum):
    """Category of an analysis failure; mapped to an HTTP status by the API layer."""

    UNKNOWN = "unknown"
    INVALID_INPUT = "invalid_input"
    UNREACHABLE = "unreachable"
    TIMEOUT = "timeout"
    PARSING_FAILED = "parsing_failed"


class AppError(Exception):
    """The single error type that leaves the analysis pipeline.

    `message` is safe to show to end users; `cause` is kept for logs only.
    `upstream_status` is the HTTP status returned by the analysed site, when
    the failure came from one.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        upstream_status: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ):
        self.kind = kind
        self.message = message
        self.upstream_status = upstream_status
        self.cause = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message

    def __repr__(self) -> str:
        return f"<AppError kind={self.kind.value} upstream_status={self.upstream_status} message={self.message!r}>"


class HttpFetchError(Exception):
    """Raised when an HTTP fetch fails due to network/transport errors."""

    def __init__(self, url: str, original: Exception):
        self.url = url
        self.original = original
        super().__init__(f"HTTP fetch failed for {url}: {original}")


class BlockedAddressError(OSError):
    """Raised at dial time when the resolved address is not publicly routable."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"request to private/reserved network address is not allowed: {address}")


class BlockedRedirectError(requests.exceptions.RequestException):
    """Raised when a redirect points at a scheme other than http or https."""

    def __init__(self, url: str, scheme: str):
        self.url = url
        self.scheme = scheme
        super().__init__(f"redirect to non-http(s) scheme blocked: {scheme or '<none>'} ({url})")


class HtmlStreamError(Exception):
    """Raised when reading the response body fails before a clean end of stream."""

    def __init__(self, original: Exception):
        self.original = original
        super().__init__(f"HTML stream read failed: {original}")


class ContextDoneError(Exception):
    """Raised when work is attempted after the request deadline is done."""


class DeadlineExceeded(ContextDoneError):
    def __init__(self):
        super().__init__("deadline exceeded")


class RequestCancelled(ContextDoneError):
    def __init__(self):
        super().__init__("request cancelled")


class ConfigError(ValueError):
    """Raised when a configuration value is outside its accepted range."""

    def __init__(self, name: str, value, reason: str):
        self.name = name
        self.value = value
        self.reason = reason
        super().__init__(f"config: {name} {reason} (got {value!r})")
