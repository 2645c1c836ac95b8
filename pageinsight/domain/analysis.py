from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class LinkStats:
    internal_count: int = 0
    external_count: int = 0
    inaccessible_count: int = 0


@dataclass(frozen=True)
class AnalysisResult:
    """Final result of analysing one page."""
    url: str
    html_version: str
    title: str
    headings: Dict[str, int]
    links: LinkStats
    has_login_form: bool

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "html_version": self.html_version,
            "title": self.title,
            "headings": dict(self.headings),
            "links": {
                "internal_count": self.links.internal_count,
                "external_count": self.links.external_count,
                "inaccessible_count": self.links.inaccessible_count,
            },
            "has_login_form": self.has_login_form,
        }

    def summary(self) -> dict:
        """Flat fields for the 'analysis complete' log record."""
        return {
            "title": self.title,
            "html_version": self.html_version,
            "has_login_form": self.has_login_form,
            "internal_links": self.links.internal_count,
            "external_links": self.links.external_count,
            "inaccessible_links": self.links.inaccessible_count,
        }
