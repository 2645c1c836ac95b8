import logging
from typing import Optional

from pageinsight.domain.analysis import AnalysisResult, LinkStats
from pageinsight.domain.deadline import Deadline
from pageinsight.domain.http_response import HttpResponse
from pageinsight.exceptions import AppError, ContextDoneError, ErrorKind, HtmlStreamError, HttpFetchError
from pageinsight.services.html_extractor import HtmlExtractor
from pageinsight.services.protocols import Fetcher, Prober
from pageinsight.services.url_validator import validate_url

logger = logging.getLogger(__name__)

UNREACHABLE_MESSAGE = "The provided URL could not be reached. Check the address."
UPSTREAM_STATUS_MESSAGE = "The provided URL returned an error status."
PARSING_FAILED_MESSAGE = "Failed to parse the HTML content."
TIMEOUT_MESSAGE = "Analysis timed out. The target URL may be slow to respond."
UNKNOWN_MESSAGE = "An unexpected error occurred."


class Engine:
    """Runs one analysis: validate, fetch, parse, probe.

    Every failure leaves as an `AppError`. Once the deadline has expired, any
    failure is reported as a Timeout whatever stage raised it. Probing never
    fails the analysis; unreachable links only raise the inaccessible count.

    This class owns the control flow only. Collaborators are injected (see
    `pageinsight.container`).
    """

    def __init__(self, fetcher: Fetcher, prober: Prober, extractor: Optional[HtmlExtractor] = None):
        self.fetcher = fetcher
        self.prober = prober
        self.extractor = extractor if extractor is not None else HtmlExtractor()

    def analyze(self, target_url: str, deadline: Optional[Deadline] = None) -> AnalysisResult:
        deadline = deadline if deadline is not None else Deadline.never()
        try:
            return self._run(target_url, deadline)
        except AppError as e:
            if deadline.expired():
                raise AppError(ErrorKind.TIMEOUT, TIMEOUT_MESSAGE, cause=e) from e
            raise
        except Exception as e:
            if deadline.expired():
                raise AppError(ErrorKind.TIMEOUT, TIMEOUT_MESSAGE, cause=e) from e
            logger.exception("Unexpected error analysing %s", target_url)
            raise AppError(ErrorKind.UNKNOWN, UNKNOWN_MESSAGE, cause=e) from e

    def _run(self, target_url: str, deadline: Deadline) -> AnalysisResult:
        validate_url(target_url)
        target_url = target_url.strip()

        try:
            response: HttpResponse = self.fetcher.fetch(target_url, deadline)
        except (HttpFetchError, ContextDoneError) as e:
            raise AppError(ErrorKind.UNREACHABLE, UNREACHABLE_MESSAGE, cause=e) from e

        try:
            if response.status_code >= 400:
                raise AppError(
                    ErrorKind.UNREACHABLE,
                    UPSTREAM_STATUS_MESSAGE,
                    upstream_status=response.status_code,
                )
            try:
                page = self.extractor.extract(
                    response.body,
                    base_url=target_url,
                    encoding=response.encoding,
                    deadline=deadline,
                )
            except (HtmlStreamError, ContextDoneError) as e:
                raise AppError(ErrorKind.PARSING_FAILED, PARSING_FAILED_MESSAGE, cause=e) from e
        finally:
            close = getattr(response.body, "close", None)
            if close is not None:
                close()

        internal = sum(1 for link in page.links if link.is_internal)
        inaccessible = self.prober.probe(page.unique_link_urls(), deadline)

        return AnalysisResult(
            url=target_url,
            html_version=page.html_version,
            title=page.title,
            headings=dict(page.headings),
            links=LinkStats(
                internal_count=internal,
                external_count=len(page.links) - internal,
                inaccessible_count=inaccessible,
            ),
            has_login_form=page.has_login_form,
        )
