import logging
from typing import Optional

from pageinsight.domain.analysis import AnalysisResult
from pageinsight.domain.deadline import Deadline
from pageinsight.exceptions import AppError
from pageinsight.services.protocols import PageAnalyzer

logger = logging.getLogger(__name__)


class AnalysisService:
    """Runs an analyzer and logs the outcome of each request."""

    def __init__(self, analyzer: PageAnalyzer):
        self.analyzer = analyzer

    def analyze(self, target_url: str, deadline: Deadline, request_id: Optional[str] = None) -> AnalysisResult:
        try:
            result = self.analyzer.analyze(target_url, deadline)
        except AppError as e:
            logger.error(
                "analysis failed url=%s request_id=%s kind=%s target_status=%s error=%s",
                target_url,
                request_id,
                e.kind.value,
                e.upstream_status,
                e,
                extra={"url": target_url, "request_id": request_id, "kind": e.kind.value},
            )
            raise

        summary = result.summary()
        logger.info(
            "analysis complete url=%s request_id=%s title=%r html_version=%s has_login_form=%s "
            "internal_links=%d external_links=%d inaccessible_links=%d",
            target_url,
            request_id,
            summary["title"],
            summary["html_version"],
            summary["has_login_form"],
            summary["internal_links"],
            summary["external_links"],
            summary["inaccessible_links"],
            extra={"url": target_url, "request_id": request_id, "summary": summary},
        )
        return result
