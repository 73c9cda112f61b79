"""Error translation — upstream failures → ServiceError.

Each upstream domain gets a ``classify_*`` function that reduces the raw
exception to a small kind enum, and a translator that switches over that
enum. Translators are registered per exception type; :func:`translate` walks
the exception's MRO so the most specific registration wins (SQLAlchemy pool
errors are also ``SQLAlchemyError`` subclasses).

Translation is pure: nothing here logs, retries or touches I/O.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from typing import Any, assert_never, cast

from jose.exceptions import ExpiredSignatureError, JOSEError, JWTClaimsError
from sqlalchemy import exc as sa_exc

from faultline.errors import (
    AnyServiceError,
    BadRequest,
    InternalServerError,
    NotFound,
    ServiceError,
    Unauthorized,
)
from faultline.ids import EncoderError, EncoderErrorKind
from faultline.mailbox import MailboxError

NOT_FOUND_MESSAGE = "requested record was not found"
INVALID_TOKEN_MESSAGE = "Invalid Token"
INVALID_ISSUER_MESSAGE = "Invalid Issuer"
DATABASE_TAG = "database"
POOL_TAG = "pool"
MAILBOX_TAG = "mailbox"

_UNIQUE_VIOLATION_SQLSTATE = "23505"

Translator = Callable[[Any], AnyServiceError]

_TRANSLATORS: dict[type[BaseException], Translator] = {}


def register(*exc_types: type[BaseException]) -> Callable[[Translator], Translator]:
    """Register a translator for one or more upstream exception types.

    Usage::

        @register(MyUpstreamError)
        def _translate_mine(exc: MyUpstreamError) -> AnyServiceError:
            return InternalServerError("mine")
    """

    def decorator(fn: Translator) -> Translator:
        for exc_type in exc_types:
            _TRANSLATORS[exc_type] = fn
        return fn

    return decorator


def supported_types() -> tuple[type[BaseException], ...]:
    """Exception types that :func:`translate` accepts (subclasses included)."""
    return tuple(_TRANSLATORS)


def translate(exc: BaseException) -> AnyServiceError:
    """Convert an upstream failure into exactly one :class:`ServiceError`.

    Raises ``TypeError`` if *exc* belongs to no registered domain.
    """
    for cls in type(exc).__mro__:
        translator = _TRANSLATORS.get(cls)
        if translator is not None:
            return translator(exc)
    raise TypeError(f"no translator registered for {type(exc).__name__}")


@register(ServiceError)
def _translate_service_error(exc: ServiceError) -> AnyServiceError:
    return exc  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Data store (SQLAlchemy)
# ---------------------------------------------------------------------------


class DatabaseErrorKind(enum.Enum):
    UNIQUE_VIOLATION = "unique_violation"
    NOT_FOUND = "not_found"
    CONNECT_FAILURE = "connect_failure"
    OTHER = "other"


def _first_attr(objs: tuple[Any, ...], *names: str) -> str | None:
    """Return the first non-empty string attribute found on *objs*."""
    for obj in objs:
        if obj is None:
            continue
        for name in names:
            value = getattr(obj, name, None)
            if isinstance(value, str) and value:
                return value
    return None


def _is_unique_violation(orig: BaseException | None) -> bool:
    if orig is None:
        return False
    # asyncpg (via SQLAlchemy's adapter) and psycopg 3 expose sqlstate,
    # psycopg2 exposes pgcode.
    code = _first_attr((orig,), "sqlstate", "pgcode")
    if code is not None:
        return code == _UNIQUE_VIOLATION_SQLSTATE
    if getattr(orig, "sqlite_errorname", None) == "SQLITE_CONSTRAINT_UNIQUE":
        return True
    return str(orig).startswith("UNIQUE constraint failed")


def classify_database_error(exc: sa_exc.SQLAlchemyError) -> DatabaseErrorKind:
    if isinstance(exc, sa_exc.NoResultFound):
        return DatabaseErrorKind.NOT_FOUND
    if isinstance(exc, sa_exc.DBAPIError) and exc.statement is None:
        # Raised while the pool opened a new connection, before any statement ran.
        return DatabaseErrorKind.CONNECT_FAILURE
    if isinstance(exc, sa_exc.DBAPIError) and _is_unique_violation(exc.orig):
        return DatabaseErrorKind.UNIQUE_VIOLATION
    return DatabaseErrorKind.OTHER


def constraint_message(exc: sa_exc.DBAPIError) -> str:
    """Driver-provided text for a constraint violation.

    Prefers the detail line (``Key (email)=(a@b.c) already exists.``) and
    falls back to the primary message.
    """
    orig = exc.orig
    cause = orig.__cause__ if orig is not None else None
    diag = getattr(orig, "diag", None)
    detail = _first_attr((diag,), "message_detail") or _first_attr((orig, cause), "detail")
    if detail:
        return detail
    message = _first_attr((diag,), "message_primary") or _first_attr((cause, orig), "message")
    if message:
        return message
    return str(orig) if orig is not None else str(exc)


@register(sa_exc.SQLAlchemyError)
def translate_database_error(exc: sa_exc.SQLAlchemyError) -> AnyServiceError:
    kind = classify_database_error(exc)
    match kind:
        case DatabaseErrorKind.UNIQUE_VIOLATION:
            return BadRequest(constraint_message(cast(sa_exc.DBAPIError, exc)))
        case DatabaseErrorKind.NOT_FOUND:
            return NotFound(NOT_FOUND_MESSAGE)
        case DatabaseErrorKind.CONNECT_FAILURE:
            return InternalServerError(POOL_TAG)
        case DatabaseErrorKind.OTHER:
            return InternalServerError(DATABASE_TAG)
        case unreachable:
            assert_never(unreachable)


# ---------------------------------------------------------------------------
# Connection pool (SQLAlchemy pool layer)
# ---------------------------------------------------------------------------


@register(sa_exc.TimeoutError, sa_exc.DisconnectionError)
def translate_pool_error(_exc: sa_exc.SQLAlchemyError) -> AnyServiceError:
    return InternalServerError(POOL_TAG)


# ---------------------------------------------------------------------------
# Token validation (python-jose)
# ---------------------------------------------------------------------------


class TokenErrorKind(enum.Enum):
    INVALID_TOKEN = "invalid_token"
    INVALID_ISSUER = "invalid_issuer"
    EXPIRED_SIGNATURE = "expired_signature"
    INVALID_SIGNATURE = "invalid_signature"
    INVALID_AUDIENCE = "invalid_audience"
    INVALID_CLAIMS = "invalid_claims"
    OTHER = "other"


# python-jose reports structural problems only through the message text.
_MALFORMED_PREFIXES = (
    "Not enough segments",
    "Invalid header",
    "Invalid payload",
    "Invalid crypto padding",
    "Error decoding token",
)


def classify_token_error(exc: JOSEError) -> TokenErrorKind:
    message = str(exc)
    if isinstance(exc, ExpiredSignatureError):
        return TokenErrorKind.EXPIRED_SIGNATURE
    if isinstance(exc, JWTClaimsError):
        if message == "Invalid issuer":
            return TokenErrorKind.INVALID_ISSUER
        if message.startswith("Invalid audience"):
            return TokenErrorKind.INVALID_AUDIENCE
        return TokenErrorKind.INVALID_CLAIMS
    if message.startswith(_MALFORMED_PREFIXES):
        return TokenErrorKind.INVALID_TOKEN
    if message.startswith("Signature verification failed"):
        return TokenErrorKind.INVALID_SIGNATURE
    return TokenErrorKind.OTHER


@register(JOSEError)
def translate_token_error(exc: JOSEError) -> AnyServiceError:
    kind = classify_token_error(exc)
    match kind:
        case TokenErrorKind.INVALID_TOKEN:
            return BadRequest(INVALID_TOKEN_MESSAGE)
        case TokenErrorKind.INVALID_ISSUER:
            return BadRequest(INVALID_ISSUER_MESSAGE)
        case (
            TokenErrorKind.EXPIRED_SIGNATURE
            | TokenErrorKind.INVALID_SIGNATURE
            | TokenErrorKind.INVALID_AUDIENCE
            | TokenErrorKind.INVALID_CLAIMS
            | TokenErrorKind.OTHER
        ):
            return Unauthorized()
        case unreachable:
            assert_never(unreachable)


# ---------------------------------------------------------------------------
# Messaging (actor mailbox)
# ---------------------------------------------------------------------------


@register(MailboxError)
def translate_mailbox_error(_exc: MailboxError) -> AnyServiceError:
    return InternalServerError(MAILBOX_TAG)


# ---------------------------------------------------------------------------
# Id encoder (hashids)
# ---------------------------------------------------------------------------


@register(EncoderError)
def translate_encoder_error(exc: EncoderError) -> AnyServiceError:
    match exc.kind:
        case EncoderErrorKind.ALPHABET_LENGTH:
            return InternalServerError("hashids AlphabetLength error")
        case EncoderErrorKind.ILLEGAL_CHARACTER:
            return InternalServerError("hashids IllegalCharacter error")
        case EncoderErrorKind.SEPARATOR:
            return InternalServerError("hashids Separator error")
        case unreachable:
            assert_never(unreachable)
