"""faultline — translate backend failures into uniform HTTP error responses."""

from faultline.errors import (
    AnyServiceError,
    BadRequest,
    InternalServerError,
    NotFound,
    ServiceError,
    Unauthorized,
)
from faultline.render import RenderedResponse, render
from faultline.translate import supported_types, translate

__all__ = [
    "AnyServiceError",
    "ServiceError",
    "BadRequest",
    "Unauthorized",
    "NotFound",
    "InternalServerError",
    "RenderedResponse",
    "render",
    "translate",
    "supported_types",
]
