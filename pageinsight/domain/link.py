from typing import NamedTuple


class Link(NamedTuple):
    """An outbound anchor target, resolved to an absolute http(s) URL."""
    url: str
    is_internal: bool
