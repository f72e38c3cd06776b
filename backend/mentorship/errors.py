# backend/mentorship/errors.py
"""
Problem-details style error bodies.

Every error response has the same shape::

    {"type", "title", "status", "detail", "instance", "code"?, "errors"?}

``code`` is the machine-readable reason (``BOOKING_CONFLICT``,
``validation_error``...); ``errors`` carries field-level or domain details.
"""

from http import HTTPStatus
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import DomainException, ServiceException

# Stable titles regardless of the interpreter's HTTPStatus phrases
_TITLES = {422: "Unprocessable Entity"}


def problem_response(
    request: Request,
    status_code: int,
    *,
    detail: str = "",
    code: Optional[str] = None,
    errors: Any = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    try:
        title = _TITLES.get(status_code) or HTTPStatus(status_code).phrase
    except ValueError:
        title = "Error"
    body: Dict[str, Any] = {
        "type": "about:blank",
        "title": title,
        "status": status_code,
        "detail": detail,
        "instance": request.url.path,
    }
    if code:
        body["code"] = code
    if errors:
        body["errors"] = jsonable_encoder(errors)
    return JSONResponse(body, status_code=status_code, headers=headers)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        detail = exc.message
        if isinstance(exc, ServiceException) and not detail:
            detail = "An error occurred processing your request"
        return problem_response(request, exc.status_code, detail=detail, code=exc.code, errors=exc.details)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail = exc.detail if isinstance(exc.detail, str) else ""
        return problem_response(request, exc.status_code, detail=detail, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return problem_response(
            request,
            422,
            detail="Request validation failed",
            code="validation_error",
            errors=exc.errors(),
        )
