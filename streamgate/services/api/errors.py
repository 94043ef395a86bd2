# streamgate/services/api/errors.py
from __future__ import annotations

from http import HTTPStatus
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from streamgate.common.logging import get_logger
from streamgate.domain.exceptions import ExtractionFailed, StreamGateError
from streamgate.services.api.deps import wants_debug

logger = get_logger(__name__)


def error_body(error: str, *, code: Optional[str] = None, details: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"error": error}
    if code:
        body["code"] = code
    if details:
        body["details"] = details
    return body


async def streamgate_error_handler(request: Request, exc: StreamGateError) -> JSONResponse:
    details = None
    if isinstance(exc, ExtractionFailed):
        logger.warning("%s %s: %s (%s)", request.method, request.url.path, type(exc).__name__, exc.tool_message)
        if wants_debug(request):
            details = exc.tool_message
    elif exc.status_code >= 500:
        logger.error("%s %s: %s", request.method, request.url.path, exc, exc_info=exc.__cause__)
    return JSONResponse(
        error_body(exc.message, code=exc.code, details=details),
        status_code=int(exc.status_code),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        error_body(str(exc.detail)),
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(error_body("Invalid request"), status_code=HTTPStatus.BAD_REQUEST)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(error_body("Internal Server Error"), status_code=HTTPStatus.INTERNAL_SERVER_ERROR)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StreamGateError, streamgate_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
