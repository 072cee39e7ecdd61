from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from server.gbcite.errors import GbciteError, InputValidationError

logger = logging.getLogger(__name__)


async def gbcite_error_handler(request: Request, exc: GbciteError) -> JSONResponse:
    if isinstance(exc, InputValidationError):
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
    else:
        upstream = getattr(exc, "upstream_status", None)
        logger.error(
            "Request %s %s failed: %s (%s, upstream_status=%s)",
            request.method,
            request.url.path,
            type(exc).__name__,
            exc,
            upstream,
            exc_info=exc if exc.__cause__ is not None else None,
        )
    return JSONResponse({"error": exc.public_message}, status_code=exc.status_code)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    kinds = sorted({str(err.get("type")) for err in exc.errors() if isinstance(err, dict)})
    logger.info("Rejected %s %s: unreadable body (%s)", request.method, request.url.path, ", ".join(kinds))
    return JSONResponse(
        {"error": InputValidationError.public_message},
        status_code=InputValidationError.status_code,
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse({"error": GbciteError.public_message}, status_code=500)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GbciteError, gbcite_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
