"""
Custom exception handlers for FastAPI.
Provides clear, actionable error messages for validation and server errors.
"""

import logging

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.status import HTTP_422_UNPROCESSABLE_ENTITY, HTTP_500_INTERNAL_SERVER_ERROR

from receipt_scanner.core.observability import sentry_capture

logger = logging.getLogger(__name__)


def validation_exception_handler(request: Request, exc: RequestValidationError):
    body = exc.body
    if not isinstance(body, (dict, list, str, int, float)):
        # Multipart uploads carry raw image bytes; do not echo them back
        body = None
    return JSONResponse(
        status_code=HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation error",
            "details": jsonable_encoder(exc.errors()),
            "body": body,
        },
    )


def generic_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
    sentry_capture(exc)
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "details": str(exc),
        },
    )
