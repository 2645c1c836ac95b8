import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from pageinsight.api.errors import INVALID_BODY_MESSAGE, error_response
from pageinsight.api.middleware import access_log_middleware, request_id_middleware
from pageinsight.api.routers import create_analyze_router, create_systems_router
from pageinsight.container import Container

logger = logging.getLogger(__name__)


def create_app(container: Container) -> FastAPI:
    """Build the API app from the container's configured services."""
    settings = container.config()
    app = FastAPI(title="PageInsight", version="1.0.0")

    app.include_router(
        create_analyze_router(
            analysis_service=container.analysis_service(),
            analyze_timeout=float(settings["ANALYZE_TIMEOUT_SECONDS"]),
        )
    )
    app.include_router(create_systems_router(settings))

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError):
        logger.debug("Rejected request body on %s: %s", request.url.path, exc.errors())
        return error_response(400, INVALID_BODY_MESSAGE)

    # Last added runs first: request id -> access log -> CORS -> routes.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings["CORS_ALLOWED_ORIGINS"]),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
        expose_headers=["X-Request-ID"],
    )
    app.middleware("http")(access_log_middleware)
    app.middleware("http")(request_id_middleware)
    return app
