import logging
import time
import uuid

from fastapi import Request

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


async def request_id_middleware(request: Request, call_next):
    """Reuse the caller's X-Request-ID or mint a UUID4, and echo it back."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


async def access_log_middleware(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    client = request.client.host if request.client else None
    logger.info(
        "http request method=%s path=%s status=%s duration=%.1fms remote_addr=%s user_agent=%s request_id=%s",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
        client,
        request.headers.get("user-agent"),
        getattr(request.state, "request_id", None),
    )
    return response
