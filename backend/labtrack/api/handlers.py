"""Exception handlers shared by the application and by router tests."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from labtrack.errors import LabTrackError, ValidationError

logger = logging.getLogger(__name__)


async def labtrack_error_handler(request: Request, exc: LabTrackError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{location}: {first.get('msg', 'invalid value')}" if location else "Invalid request body"
    return JSONResponse(status_code=400, content=ValidationError(message).to_dict())


def install_error_handlers(app: FastAPI) -> None:
    """Map LabTrackError subclasses to their HTTP status and malformed bodies to 400."""
    app.add_exception_handler(LabTrackError, labtrack_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
