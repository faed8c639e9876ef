"""Exception handlers that render every error in one JSON envelope.

``{"timestamp", "status", "error", "message", "path"}`` plus ``details`` for
field-level validation errors. Unexpected errors are logged with their
traceback and answered with a generic 500.
"""

from datetime import UTC, datetime

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shared.exceptions import CatalogError, ValidationError

logger = structlog.get_logger(__name__)


def error_response(
    request: Request,
    status: int,
    error: str,
    message: str,
    details: dict[str, list[str]] | None = None,
) -> JSONResponse:
    content = {
        "timestamp": datetime.now(UTC).isoformat(),
        "status": status,
        "error": error,
        "message": message,
        "path": request.url.path,
    }
    if details:
        content["details"] = details
    return JSONResponse(status_code=status, content=content)


async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed", error=exc.message, status=exc.status_code)
    else:
        logger.info("Request rejected", error=exc.message, status=exc.status_code)

    details = exc.messages if isinstance(exc, ValidationError) else None
    message = "Validation failed" if details else exc.message
    return error_response(request, exc.status_code, exc.error, message, details)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details: dict[str, list[str]] = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "header", "path")]
        details.setdefault(".".join(location) or "_request", []).append(error.get("msg", "Invalid value"))
    return error_response(request, 400, "Bad Request", "Validation failed", details)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", path=request.url.path)
    return error_response(request, 500, "Internal Server Error", "An unexpected error occurred")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CatalogError, catalog_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
