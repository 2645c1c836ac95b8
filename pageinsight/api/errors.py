from http import HTTPStatus

from fastapi.responses import JSONResponse

from pageinsight.exceptions import AppError, ErrorKind

STATUS_BY_KIND = {
    ErrorKind.INVALID_INPUT: HTTPStatus.BAD_REQUEST,
    ErrorKind.UNREACHABLE: HTTPStatus.BAD_GATEWAY,
    ErrorKind.TIMEOUT: HTTPStatus.GATEWAY_TIMEOUT,
    ErrorKind.PARSING_FAILED: HTTPStatus.INTERNAL_SERVER_ERROR,
    ErrorKind.UNKNOWN: HTTPStatus.INTERNAL_SERVER_ERROR,
}

INVALID_BODY_MESSAGE = 'Invalid request body. Please send a JSON object with a "url" field.'
URL_REQUIRED_MESSAGE = 'the "url" field is required'


def status_for(error: AppError) -> int:
    return int(STATUS_BY_KIND.get(error.kind, HTTPStatus.INTERNAL_SERVER_ERROR))


def error_response(status: int, message: str) -> JSONResponse:
    """JSON error shape shared by every endpoint: {error, status_code, message}."""
    return JSONResponse(
        status_code=status,
        content={
            "error": HTTPStatus(status).phrase,
            "status_code": status,
            "message": message,
        },
    )


def app_error_response(error: AppError) -> JSONResponse:
    # The cause stays in the logs; users only see the kind's message.
    return error_response(status_for(error), error.message)
