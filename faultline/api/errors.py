"""Exception handlers — every supported upstream failure → JSON error response."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from faultline.render import render, to_json_response
from faultline.translate import supported_types, translate

logger = structlog.get_logger(__name__)


async def _upstream_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = translate(exc)
    rendered = render(error)
    fields = {
        "upstream": type(exc).__name__,
        "category": type(error).__name__,
        "status_code": int(rendered.status),
        "method": request.method,
        "path": request.url.path,
    }
    if rendered.status >= 500:
        # Internal diagnostics stay in the log; the caller only gets the tag.
        logger.error("error.translated", exc_info=exc, **fields)
    else:
        logger.info("error.translated", reason=str(exc), **fields)
    return to_json_response(rendered)


def register_error_handlers(app: FastAPI) -> None:
    """Install one handler per translatable exception type on *app*."""
    for exc_type in supported_types():
        app.add_exception_handler(exc_type, _upstream_error_handler)  # type: ignore[arg-type]
