"""Rendering — ServiceError → (status, JSON body)."""

from __future__ import annotations

from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, assert_never

from fastapi.responses import JSONResponse

from faultline.errors import (
    AnyServiceError,
    BadRequest,
    InternalServerError,
    NotFound,
    Unauthorized,
)

UNAUTHORIZED_BODY = "Unauthorized"


@dataclass(frozen=True)
class RenderedResponse:
    """Transport-ready error response. ``body`` is JSON-serializable."""

    status: HTTPStatus
    body: Any


def render(error: AnyServiceError) -> RenderedResponse:
    match error:
        case BadRequest(message=message):
            return RenderedResponse(HTTPStatus.BAD_REQUEST, message)
        case Unauthorized():
            return RenderedResponse(HTTPStatus.UNAUTHORIZED, UNAUTHORIZED_BODY)
        case NotFound(message=message):
            return RenderedResponse(HTTPStatus.NOT_FOUND, message)
        case InternalServerError(message=message):
            return RenderedResponse(HTTPStatus.INTERNAL_SERVER_ERROR, message)
        case unreachable:
            assert_never(unreachable)


def to_json_response(rendered: RenderedResponse) -> JSONResponse:
    return JSONResponse(status_code=int(rendered.status), content=rendered.body)
