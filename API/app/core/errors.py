import logging
import uuid

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.json_parser import InvalidResultFormatError
from app.core.llm_provider import EmptyResponseError, MissingAPIKeyError, UpstreamError
from app.core.logging import request_id_var

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "Server is missing its API key. Check the GEMINI_API_KEY environment variable."


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def error_response(
    request: Request,
    *,
    code: str,
    message: str,
    status_code: int,
    details=None,
) -> JSONResponse:
    payload = {
        "success": False,
        "error": {
            "code": code,
            "message": message,
            "request_id": get_request_id(request),
            "details": details,
        },
    }
    return JSONResponse(status_code=status_code, content=payload)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(request, code="http_error", message=str(exc.detail), status_code=exc.status_code)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = []
    for item in exc.errors():
        entry = {key: value for key, value in item.items() if key != "input"}
        # pydantic keeps the raised ValueError object under ctx.
        if "ctx" in entry:
            entry["ctx"] = {key: str(value) for key, value in entry["ctx"].items()}
        details.append(entry)
    return error_response(
        request,
        code="validation_error",
        message="Request validation failed",
        status_code=422,
        details=details,
    )


async def missing_api_key_handler(request: Request, exc: MissingAPIKeyError):
    logger.error("Provider call refused: no API key configured")
    return error_response(request, code="missing_api_key", message=MISSING_KEY_MESSAGE, status_code=500)


async def upstream_error_handler(request: Request, exc: UpstreamError):
    return error_response(
        request,
        code="upstream_error",
        message="Error from the AI provider",
        status_code=exc.status_code,
        details=exc.body,
    )


async def empty_response_handler(request: Request, exc: EmptyResponseError):
    return error_response(request, code="empty_response", message=str(exc), status_code=500)


async def invalid_format_handler(request: Request, exc: InvalidResultFormatError):
    return error_response(request, code="invalid_ai_format", message=str(exc), status_code=502)


async def provider_transport_handler(request: Request, exc: httpx.HTTPError):
    logger.warning("Provider transport failure | %s: %s", type(exc).__name__, exc)
    return error_response(
        request,
        code="internal_error",
        message="Internal server error",
        status_code=500,
        details=str(exc),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception | request_id=%s", get_request_id(request), exc_info=exc)
    return error_response(
        request,
        code="internal_error",
        message="Internal server error",
        status_code=500,
    )


async def request_id_middleware(request: Request, call_next):
    incoming = request.headers.get("x-request-id")
    request.state.request_id = incoming or str(uuid.uuid4())
    token = request_id_var.set(request.state.request_id)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    response.headers["x-request-id"] = request.state.request_id
    return response


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(MissingAPIKeyError, missing_api_key_handler)
    app.add_exception_handler(UpstreamError, upstream_error_handler)
    app.add_exception_handler(EmptyResponseError, empty_response_handler)
    app.add_exception_handler(InvalidResultFormatError, invalid_format_handler)
    app.add_exception_handler(httpx.HTTPError, provider_transport_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
