"""Exception handlers mapping domain and validation errors to JSON responses.

- RequestValidationError -> 400 {"message": "Validation error", "errors": [...]}
- ProviderError          -> 502 with a generic message (details are logged)
- Exception              -> 500 {"message": "Internal server error"}

HTTPException keeps FastAPI's default {"detail": ...} handling.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.app.live_sessions.providers import ProviderError

logger = structlog.get_logger(__name__)


def _error_entries(exc: RequestValidationError) -> list[dict]:
    return [
        {
            "loc": list(err.get("loc", ())),
            "msg": err.get("msg", ""),
            "type": err.get("type", ""),
        }
        for err in exc.errors()
    ]


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Validation error", "errors": _error_entries(exc)},
    )


async def provider_error_handler(request: Request, exc: ProviderError) -> JSONResponse:
    logger.warning(
        "video_provider.request_failed",
        provider=exc.provider.value,
        status_code=exc.status_code,
        error=exc.message,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"message": "Video provider request failed"},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        method=request.method,
        path=request.url.path,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ProviderError, provider_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
