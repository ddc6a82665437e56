"""Render ticketing errors as JSON responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.errors import TicketingError

logger = logging.getLogger(__name__)


async def ticketing_error_handler(request: Request, exc: TicketingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.debug("%s %s rejected with %s: %s", request.method, request.url.path, exc.code, exc)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "code": exc.code, "retryable": exc.retryable},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TicketingError, ticketing_error_handler)
