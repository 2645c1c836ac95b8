from urllib.parse import SplitResult, urlsplit

from pageinsight.exceptions import AppError, ErrorKind

ALLOWED_SCHEMES = ("http", "https")

INVALID_FORMAT_MESSAGE = "Invalid URL format. Please ensure you entered a valid URL (e.g., https://example.com)."
UNSUPPORTED_SCHEME_MESSAGE = "Only http and https URLs are supported."

# RFC 3986 reg-name: unreserved, sub-delims and percent-encoding.
_HOST_PUNCTUATION = frozenset("-._~!$&'()*+,;=%")


def _valid_host(netloc: str) -> bool:
    host = netloc.rpartition("@")[2]
    if host.startswith("["):
        # IP literal; urlsplit has already checked the brackets.
        return True
    host = host.rpartition(":")[0] if ":" in host else host
    return bool(host) and all(ch.isalnum() or ch in _HOST_PUNCTUATION for ch in host)


def validate_url(raw: str) -> SplitResult:
    """Parse `raw` as an absolute http(s) URL or raise an InvalidInput AppError.

    Runs before any network I/O, so non-network schemes (file:, gopher:, ...)
    never reach the transport.
    """
    if not isinstance(raw, str):
        raise AppError(ErrorKind.INVALID_INPUT, INVALID_FORMAT_MESSAGE)
    try:
        parts = urlsplit(raw.strip())
        # Accessing .port validates it.
        parts.port
    except ValueError as e:
        raise AppError(ErrorKind.INVALID_INPUT, INVALID_FORMAT_MESSAGE, cause=e) from e

    if not parts.scheme or not parts.hostname or not _valid_host(parts.netloc):
        raise AppError(ErrorKind.INVALID_INPUT, INVALID_FORMAT_MESSAGE)
    if parts.scheme not in ALLOWED_SCHEMES:
        raise AppError(ErrorKind.INVALID_INPUT, UNSUPPORTED_SCHEME_MESSAGE)
    return parts
