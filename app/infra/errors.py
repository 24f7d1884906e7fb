"""API error type and the exception handlers that render ``{"error": code}`` bodies."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger("jukebox.errors")

_LOCATIONS = {"body", "query", "path", "header", "cookie"}


class ApiError(Exception):
    """An error with an HTTP status and a machine-readable code for the client."""

    def __init__(
        self, status_code: int, code: str, headers: dict[str, str] | None = None
    ) -> None:
        super().__init__(code)
        self.status_code = status_code
        self.code = code
        self.headers = headers


def validation_error_code(errors: list[dict]) -> str:
    """Collapse Pydantic errors into one code: ``<field>_too_long``, ``<field>_required``
    or ``<field>_invalid``, from the first error reported."""
    if not errors:
        return "invalid_request"
    first = errors[0]
    loc = [part for part in first.get("loc", ()) if isinstance(part, str)]
    if loc and loc[0] in _LOCATIONS:
        loc = loc[1:]
    if not loc:
        return "invalid_request"
    field = loc[0]
    error_type = first.get("type", "")
    if error_type in ("string_too_long", "too_long"):
        return f"{field}_too_long"
    if error_type == "missing":
        return f"{field}_required"
    return f"{field}_invalid"


def _response_headers(request: Request, extra: dict[str, str] | None = None) -> dict[str, str]:
    """Headers every error response carries: rate-limit counters set earlier in the request."""
    headers = dict(getattr(request.state, "rate_limit_headers", None) or {})
    headers.update(extra or {})
    return headers


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code},
        headers=_response_headers(request, exc.headers),
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": validation_error_code(exc.errors())},
        headers=_response_headers(request),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error"},
        headers=_response_headers(request),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_error_handler)
