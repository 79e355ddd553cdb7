"""Error bodies for the HTTP surface.

The gateway's HTTP routes are the system endpoints and the static page, so
the errors clients can see are unknown paths (404), wrong methods (405)
and unexpected failures (500). All of them use one body shape:

    {"error": {"code": "not_found", "message": "Not Found"}}
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = structlog.get_logger()

_ERROR_CODES = {
    404: "not_found",
    405: "method_not_allowed",
    500: "internal_error",
}


def error_response(
    status_code: int, message: str, headers: dict[str, str] | None = None
) -> JSONResponse:
    code = _ERROR_CODES.get(status_code, "error")
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
        headers=headers,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Install the HTTP and catch-all handlers on ``app``."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Route-supplied headers such as Allow are passed through
        return error_response(
            exc.status_code, exc.detail, getattr(exc, "headers", None)
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "unhandled_exception", error=str(exc), path=str(request.url.path)
        )
        return error_response(500, "An internal error occurred")
