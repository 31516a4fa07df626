"""
api/error_handlers.py

Maps dispatcher exceptions to HTTP responses.

Every AvaError subclass carries its own status code. The body is the error
message as plain text; a failed request never carries a reply.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from shared.errors import AvaError

logger = logging.getLogger(__name__)


async def ava_error_handler(request: Request, exc: AvaError) -> PlainTextResponse:
    if exc.status_code >= 500:
        logger.error(f"[ava_error_handler] {request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"[ava_error_handler] {request.method} {request.url.path} rejected: {exc}")
    return PlainTextResponse(str(exc), status_code=exc.status_code)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AvaError, ava_error_handler)
