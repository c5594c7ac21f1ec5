"""
HTTP mapping for pipeline failures.

Every PipelineError carries its own status code (4xx for validation,
500 for local, tool and storage faults). Callers get the human-readable
message only; diagnostics such as ffmpeg's stderr stay in the logs.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..core.media.errors import PipelineError

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error_type": type(exc).__name__,
                "error": exc.message,
                "diagnostics": exc.diagnostics,
            }
        )
    else:
        logger.info(
            "Request rejected",
            extra={
                "path": request.url.path,
                "status_code": exc.status_code,
                "error": exc.message,
            }
        )

    return error_response(exc.status_code, exc.message)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Keep the {"error": ...} body shape for errors raised by FastAPI itself."""
    response = error_response(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PipelineError, pipeline_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
