from typing import Iterable, NamedTuple, Optional


class HttpResponse(NamedTuple):
    """Response from HTTP fetch operation.

    `body` is a closable iterable of byte chunks; callers must close it.
    """
    status_code: int
    body: Iterable[bytes]
    content_type: Optional[str] = None
    encoding: Optional[str] = None
