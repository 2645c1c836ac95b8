from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Tuple

from pageinsight.domain.link import Link

HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")


def empty_heading_counts() -> dict:
    return {tag: 0 for tag in HEADING_TAGS}


@dataclass(frozen=True)
class ParsedPage:
    """Everything extracted from a single pass over a page's HTML."""
    html_version: str = "Unknown"
    title: str = ""
    headings: Mapping[str, int] = field(default_factory=lambda: MappingProxyType(empty_heading_counts()))
    links: Tuple[Link, ...] = ()
    has_login_form: bool = False

    def __eq__(self, other) -> bool:
        if not isinstance(other, ParsedPage):
            return NotImplemented
        return (
            self.html_version == other.html_version
            and self.title == other.title
            and dict(self.headings) == dict(other.headings)
            and self.links == other.links
            and self.has_login_form == other.has_login_form
        )

    def unique_link_urls(self) -> list[str]:
        """Link URLs deduplicated by exact string, first occurrence order kept."""
        return list(dict.fromkeys(link.url for link in self.links))
