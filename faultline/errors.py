"""Caller-facing error taxonomy — every upstream failure ends up as one of these."""

from __future__ import annotations

from http import HTTPStatus

_CATEGORIES: list[type[ServiceError]] = []


class ServiceError(Exception):
    """Base service exception.

    The four categories below are the closed set exposed to HTTP callers.
    The base class is never instantiated, and new error types must derive
    from one of the categories.
    Two errors are equal when they are the same category with the same message.
    """

    status_code: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR
    label: str = "Internal Server Error"

    def __init_subclass__(cls, *, category: bool = False, **kwargs: object) -> None:
        super().__init_subclass__(**kwargs)
        if category and cls.__module__ == __name__:
            _CATEGORIES.append(cls)
        elif not issubclass(cls, tuple(_CATEGORIES)):
            raise TypeError(
                f"{cls.__name__} must derive from one of "
                + ", ".join(c.__name__ for c in _CATEGORIES)
            )

    def __init__(self, message: str) -> None:
        if type(self) is ServiceError:
            raise TypeError("ServiceError is abstract; raise one of its categories")
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.label}: {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ServiceError):
            return NotImplemented
        return type(self) is type(other) and self.message == other.message

    def __hash__(self) -> int:
        return hash((type(self), self.message))


class BadRequest(ServiceError, category=True):
    """Caller-correctable input or constraint violation (-> HTTP 400)."""

    status_code = HTTPStatus.BAD_REQUEST
    label = "BadRequest"


class Unauthorized(ServiceError, category=True):
    """Identity could not be established (-> HTTP 401). Carries no detail."""

    status_code = HTTPStatus.UNAUTHORIZED
    label = "Unauthorized"

    def __init__(self) -> None:
        super().__init__("Unauthorized")

    def __str__(self) -> str:
        return self.label

    def __repr__(self) -> str:
        return "Unauthorized()"


class NotFound(ServiceError, category=True):
    """Referenced resource does not exist (-> HTTP 404)."""

    status_code = HTTPStatus.NOT_FOUND
    label = "Not Found"


class InternalServerError(ServiceError, category=True):
    """Failure not attributable to the caller (-> HTTP 500)."""


# The closed union, for exhaustive matching.
AnyServiceError = BadRequest | Unauthorized | NotFound | InternalServerError
