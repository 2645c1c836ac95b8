from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

from pageinsight.api.errors import URL_REQUIRED_MESSAGE, app_error_response, error_response
from pageinsight.domain.deadline import Deadline
from pageinsight.exceptions import AppError
from pageinsight.services.analysis_service import AnalysisService


class AnalyzeRequest(BaseModel):
    url: Optional[str] = None


def create_analyze_router(analysis_service: AnalysisService, analyze_timeout: float) -> APIRouter:
    router = APIRouter(tags=["Analyze"])

    @router.post("/analyze")
    def analyze(request: Request, payload: AnalyzeRequest):
        # Sync endpoint: FastAPI runs it in the threadpool, so the blocking
        # fetch and probe do not stall the event loop.
        if not payload.url:
            return error_response(400, URL_REQUIRED_MESSAGE)

        request_id = getattr(request.state, "request_id", None)
        deadline = Deadline(analyze_timeout)
        try:
            result = analysis_service.analyze(payload.url, deadline, request_id=request_id)
        except AppError as e:
            return app_error_response(e)
        return result.to_dict()

    return router
