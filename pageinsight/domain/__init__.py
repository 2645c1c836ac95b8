"""Domain objects for PageInsight - explicit re-exports to satisfy linters."""
from .analysis import AnalysisResult as AnalysisResult
from .analysis import LinkStats as LinkStats
from .deadline import Deadline as Deadline
from .http_response import HttpResponse as HttpResponse
from .link import Link as Link
from .parsed_page import ParsedPage as ParsedPage

__all__ = ["AnalysisResult", "LinkStats", "Deadline", "HttpResponse", "Link", "ParsedPage"]
