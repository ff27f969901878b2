"""
Grid Combat Engine - Error Handlers
Formats exceptions into the structured JSON error envelope.
"""
from datetime import datetime, timezone
import logging
import traceback
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gridcombat.core.errors import ErrorCode, GameError

logger = logging.getLogger("gridcombat.errors")

HTTP_STATUS_CODES = {
    400: ErrorCode.VALIDATION_ERROR,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.CONFLICT,
    422: ErrorCode.VALIDATION_ERROR,
    500: ErrorCode.UNKNOWN,
}


def _error_id() -> str:
    """Short id for correlating a response with its log line."""
    return str(uuid.uuid4())[:8]


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _envelope(
    code: ErrorCode,
    message: str,
    error_id: str,
    details=None,
    recoverable: bool = True,
    recovery_hint=None,
) -> dict:
    return {
        "error": {
            "code": code.value,
            "message": message,
            "details": details or {},
            "recoverable": recoverable,
            "recovery_hint": recovery_hint,
            "error_id": error_id,
            "timestamp": _timestamp(),
        }
    }


def setup_error_handlers(app: FastAPI, debug: bool = False) -> FastAPI:
    """
    Register exception handlers on the application.

    Call this after creating the FastAPI app.
    """

    @app.exception_handler(GameError)
    async def game_error_handler(request: Request, exc: GameError):
        """Handle GameError exceptions."""
        error_id = _error_id()
        logger.warning(
            "[%s] GameError: %s - %s", error_id, exc.code.value, exc.message,
            extra={"error_id": error_id, "error_code": exc.code.value, "path": str(request.url.path)},
        )

        response_data = exc.to_dict()
        response_data["error"]["error_id"] = error_id
        response_data["error"]["timestamp"] = _timestamp()
        return JSONResponse(status_code=exc.http_status, content=response_data)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Handle pydantic validation errors from request parsing."""
        errors = []
        for error in exc.errors():
            errors.append({
                "field": " -> ".join(str(loc) for loc in error.get("loc", [])),
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type", "validation_error"),
            })

        return JSONResponse(
            status_code=422,
            content=_envelope(
                ErrorCode.VALIDATION_ERROR,
                "Request validation failed",
                _error_id(),
                details={"errors": errors},
                recovery_hint="Check the request data and correct any invalid fields",
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle standard HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content=_envelope(
                HTTP_STATUS_CODES.get(exc.status_code, ErrorCode.UNKNOWN),
                str(exc.detail) if exc.detail else "An error occurred",
                _error_id(),
                recoverable=exc.status_code < 500,
            ),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Handle all unhandled exceptions."""
        error_id = _error_id()
        logger.error(
            "[%s] Unhandled exception on %s %s: %s: %s",
            error_id, request.method, request.url.path, type(exc).__name__, exc,
            exc_info=True,
        )

        content = _envelope(
            ErrorCode.UNKNOWN,
            "An unexpected error occurred",
            error_id,
            recoverable=False,
            recovery_hint="Please try again",
        )
        if debug:
            content["error"]["debug"] = {
                "exception_type": type(exc).__name__,
                "exception_message": str(exc),
                "traceback": traceback.format_exc().split("\n"),
            }
        return JSONResponse(status_code=500, content=content)

    return app
