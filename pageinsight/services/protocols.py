"""Protocol (interface) definitions for services.

The engine only depends on these, so tests can build it against fakes and
the requests-backed implementations stay swappable.
"""
from typing import Iterable, Protocol

from pageinsight.domain.analysis import AnalysisResult
from pageinsight.domain.deadline import Deadline
from pageinsight.domain.http_response import HttpResponse


class Fetcher(Protocol):
    """Fetch a URL and return its status code and a closable body stream.

    Transport failures raise `HttpFetchError`; an HTTP error status is not an
    exception at this level.
    """

    def fetch(self, url: str, deadline: Deadline) -> HttpResponse: ...


class Prober(Protocol):
    """Count how many of `urls` are inaccessible."""

    def probe(self, urls: Iterable[str], deadline: Deadline) -> int: ...


class PageAnalyzer(Protocol):
    def analyze(self, target_url: str, deadline: Deadline) -> AnalysisResult: ...
