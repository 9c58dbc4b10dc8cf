# recess_poc/core/errors.py
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from recess_poc.api.v1.schemas import create_error_response, extract_error_message
from recess_poc.core.llm import LLMNotConfigured, upstream_status
from recess_poc.core.logging import get_logger

log = get_logger("errors")


class ApiError(HTTPException):
    """HTTPException that renders as the `{success: false, ...}` envelope."""

    def __init__(self, status_code: int, error: str, details: Any = None):
        super().__init__(status_code=status_code, detail=error)
        self.error = error
        self.details = details


class ServiceUnavailable(ApiError):
    def __init__(self, error: str, details: Any = None):
        super().__init__(503, error, details)


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def _envelope(request: Request, status: int, message: str, details: Any = None) -> JSONResponse:
    body = create_error_response(message, details, _request_id(request))
    return JSONResponse(
        status_code=status,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


def validation_details(errors) -> list:
    return [
        {
            "field": ".".join(str(p) for p in e.get("loc", ()) if p != "body"),
            "message": e.get("msg", ""),
        }
        for e in errors
    ]


async def _on_validation_error(request: Request, exc: RequestValidationError):
    log.warning("request_validation_failed", extra={"path": request.url.path})
    return _envelope(request, 400, "Invalid request parameters", validation_details(exc.errors()))


async def _on_http_error(request: Request, exc: HTTPException):
    if isinstance(exc, ApiError):
        return _envelope(request, exc.status_code, exc.error, exc.details)
    return _envelope(request, exc.status_code, extract_error_message(str(exc.detail)))


async def _on_unhandled(request: Request, exc: Exception):
    log.exception("unhandled_error", extra={"path": request.url.path})
    return _envelope(request, 500, "Internal server error", extract_error_message(exc))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, _on_validation_error)
    app.add_exception_handler(HTTPException, _on_http_error)
    app.add_exception_handler(Exception, _on_unhandled)


def map_upstream_error(exc: BaseException) -> Optional[ApiError]:
    """Translate LLM provider failures into client-facing envelopes."""
    status = upstream_status(exc)
    if status == 429:
        return ApiError(429, "AI service is currently rate limited. Please try again in a few moments.")
    if status in (401, 403) or isinstance(exc, LLMNotConfigured):
        log.error("ai_auth_error", extra={"status": status})
        return ApiError(500, "AI service configuration error. Please contact support.")
    return None
