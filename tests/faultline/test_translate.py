"""Tests for translate() — one class per upstream domain."""

import base64
from datetime import datetime, timedelta, timezone

import pytest
from jose import JWTError, jwt
from jose.exceptions import JWSError, JWTClaimsError
from sqlalchemy import Column, Integer, MetaData, String, Table, create_engine, insert, select, text
from sqlalchemy import exc as sa_exc
from sqlalchemy.pool import QueuePool

from faultline.errors import BadRequest, InternalServerError, NotFound, Unauthorized
from faultline.ids import EncoderError, EncoderErrorKind
from faultline.mailbox import MailboxError, MailboxErrorKind
from faultline.translate import (
    DatabaseErrorKind,
    TokenErrorKind,
    classify_database_error,
    classify_token_error,
    supported_types,
    translate,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("email", String, unique=True, nullable=False),
)


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(f"sqlite:///{tmp_path / 'faultline.db'}")
    metadata.create_all(eng)
    yield eng
    eng.dispose()


class _Diag:
    """Stand-in for psycopg's ``Diagnostic`` object."""

    def __init__(self, message_detail=None, message_primary=None):
        self.message_detail = message_detail
        self.message_primary = message_primary


class _Psycopg2Error(Exception):
    def __init__(self, msg, pgcode, diag):
        super().__init__(msg)
        self.pgcode = pgcode
        self.diag = diag


class _AsyncpgError(Exception):
    def __init__(self, message, detail=None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class _AdaptedAsyncpgError(Exception):
    """Shape of SQLAlchemy's asyncpg adapter error: sqlstate + chained cause."""

    def __init__(self, cause):
        super().__init__(f"{type(cause)}: {cause}")
        self.sqlstate = self.pgcode = "23505"
        self.__cause__ = cause


def _integrity_error(orig):
    return sa_exc.IntegrityError("INSERT INTO users ...", {}, orig)


SECRET = "test-jwt-secret-for-unit-tests"
ALGORITHM = "HS256"


def _token(secret=SECRET, **claims):
    return jwt.encode({"sub": "alice", **claims}, secret, algorithm=ALGORITHM)


def _decode_error(token, **kwargs):
    with pytest.raises(JWTError) as info:
        jwt.decode(token, SECRET, algorithms=[ALGORITHM], **kwargs)
    return info.value


# ---------------------------------------------------------------------------
# Data store
# ---------------------------------------------------------------------------


class TestDatabaseErrors:
    def test_sqlite_unique_violation_is_bad_request(self, engine):
        with engine.begin() as conn:
            conn.execute(insert(users).values(email="alice@example.com"))
        with pytest.raises(sa_exc.IntegrityError) as info:
            with engine.begin() as conn:
                conn.execute(insert(users).values(email="alice@example.com"))

        assert classify_database_error(info.value) is DatabaseErrorKind.UNIQUE_VIOLATION
        assert translate(info.value) == BadRequest("UNIQUE constraint failed: users.email")

    def test_sqlite_not_null_violation_is_internal(self, engine):
        with pytest.raises(sa_exc.IntegrityError) as info:
            with engine.begin() as conn:
                conn.execute(insert(users).values(email=None))

        assert classify_database_error(info.value) is DatabaseErrorKind.OTHER
        assert translate(info.value) == InternalServerError("database")

    def test_no_result_is_not_found(self, engine):
        with pytest.raises(sa_exc.NoResultFound) as info:
            with engine.connect() as conn:
                conn.execute(select(users).where(users.c.id == 42)).one()

        assert translate(info.value) == NotFound("requested record was not found")

    def test_multiple_results_is_internal(self, engine):
        with engine.begin() as conn:
            conn.execute(insert(users), [{"email": "a@example.com"}, {"email": "b@example.com"}])
        with pytest.raises(sa_exc.MultipleResultsFound) as info:
            with engine.connect() as conn:
                conn.execute(select(users)).one()

        assert translate(info.value) == InternalServerError("database")

    def test_operational_error_does_not_leak_backend_text(self, engine):
        with pytest.raises(sa_exc.OperationalError) as info:
            with engine.connect() as conn:
                conn.execute(text("SELECT * FROM no_such_table"))

        result = translate(info.value)
        assert result == InternalServerError("database")
        assert "no_such_table" not in result.message

    def test_psycopg2_unique_violation_uses_detail(self):
        orig = _Psycopg2Error(
            "duplicate key value violates unique constraint",
            "23505",
            _Diag(
                message_detail="email already exists",
                message_primary='duplicate key value violates unique constraint "uq_users_email"',
            ),
        )
        assert translate(_integrity_error(orig)) == BadRequest("email already exists")

    def test_psycopg2_unique_violation_without_detail_uses_primary(self):
        primary = 'duplicate key value violates unique constraint "uq_users_email"'
        orig = _Psycopg2Error(primary, "23505", _Diag(message_primary=primary))
        assert translate(_integrity_error(orig)) == BadRequest(primary)

    def test_asyncpg_unique_violation_reads_cause(self):
        cause = _AsyncpgError(
            'duplicate key value violates unique constraint "uq_users_email"',
            detail="Key (email)=(alice@example.com) already exists.",
        )
        result = translate(_integrity_error(_AdaptedAsyncpgError(cause)))
        assert result == BadRequest("Key (email)=(alice@example.com) already exists.")

    def test_asyncpg_unique_violation_without_detail_uses_cause_message(self):
        cause = _AsyncpgError('duplicate key value violates unique constraint "uq_users_email"')
        result = translate(_integrity_error(_AdaptedAsyncpgError(cause)))
        assert result == BadRequest('duplicate key value violates unique constraint "uq_users_email"')

    def test_foreign_key_violation_is_internal(self):
        orig = _Psycopg2Error(
            "insert or update violates foreign key constraint",
            "23503",
            _Diag(message_detail='Key (project_id)=(7) is not present in table "projects".'),
        )
        assert translate(_integrity_error(orig)) == InternalServerError("database")

    def test_bare_sqlalchemy_error_is_internal(self):
        assert translate(sa_exc.InvalidRequestError("bad query")) == InternalServerError("database")


# ---------------------------------------------------------------------------
# Pool
# ---------------------------------------------------------------------------


class TestPoolErrors:
    def test_exhausted_pool_is_internal(self, tmp_path):
        eng = create_engine(
            f"sqlite:///{tmp_path / 'pool.db'}",
            poolclass=QueuePool,
            pool_size=1,
            max_overflow=0,
            pool_timeout=0.05,
        )
        held = eng.connect()
        try:
            with pytest.raises(sa_exc.TimeoutError) as info:
                eng.connect()
        finally:
            held.close()
            eng.dispose()

        assert translate(info.value) == InternalServerError("pool")

    def test_connect_failure_is_pool(self, tmp_path):
        eng = create_engine(f"sqlite:///{tmp_path / 'missing' / 'faultline.db'}")
        try:
            with pytest.raises(sa_exc.OperationalError) as info:
                eng.connect()
        finally:
            eng.dispose()

        assert info.value.statement is None
        assert classify_database_error(info.value) is DatabaseErrorKind.CONNECT_FAILURE
        assert translate(info.value) == InternalServerError("pool")

    def test_failed_statement_is_not_connect_failure(self):
        exc = sa_exc.OperationalError("SELECT 1", {}, Exception("server closed the connection"))
        assert classify_database_error(exc) is DatabaseErrorKind.OTHER
        assert translate(exc) == InternalServerError("database")

    @pytest.mark.parametrize(
        "exc",
        [
            sa_exc.TimeoutError("QueuePool limit of size 5 overflow 10 reached"),
            sa_exc.DisconnectionError("connection invalidated"),
        ],
    )
    def test_all_pool_errors_collapse(self, exc):
        # Pool errors are SQLAlchemyError subclasses but must not read as "database".
        assert translate(exc) == InternalServerError("pool")


# ---------------------------------------------------------------------------
# Token
# ---------------------------------------------------------------------------


class TestTokenErrors:
    def test_malformed_token_is_invalid_token(self):
        exc = _decode_error("not-a-token")
        assert classify_token_error(exc) is TokenErrorKind.INVALID_TOKEN
        assert translate(exc) == BadRequest("Invalid Token")

    def test_undecodable_header_is_invalid_token(self):
        header = base64.urlsafe_b64encode(b"not json").rstrip(b"=").decode()
        exc = _decode_error(f"{header}.e30.c2ln")
        assert classify_token_error(exc) is TokenErrorKind.INVALID_TOKEN
        assert translate(exc) == BadRequest("Invalid Token")

    def test_wrong_issuer_is_invalid_issuer(self):
        exc = _decode_error(_token(iss="someone-else"), issuer="faultline")
        assert isinstance(exc, JWTClaimsError)
        assert classify_token_error(exc) is TokenErrorKind.INVALID_ISSUER
        assert translate(exc) == BadRequest("Invalid Issuer")

    def test_expired_token_is_unauthorized(self):
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
        exc = _decode_error(_token(exp=exp))
        assert classify_token_error(exc) is TokenErrorKind.EXPIRED_SIGNATURE
        assert translate(exc) == Unauthorized()

    def test_bad_signature_is_unauthorized(self):
        exc = _decode_error(_token(secret="some-other-secret"))
        assert classify_token_error(exc) is TokenErrorKind.INVALID_SIGNATURE
        assert translate(exc) == Unauthorized()

    def test_wrong_audience_is_unauthorized(self):
        exc = _decode_error(_token(aud="other-service"), audience="faultline")
        assert classify_token_error(exc) is TokenErrorKind.INVALID_AUDIENCE
        assert translate(exc) == Unauthorized()

    def test_other_claims_error_is_unauthorized(self):
        exc = JWTClaimsError("Invalid subject")
        assert classify_token_error(exc) is TokenErrorKind.INVALID_CLAIMS
        assert translate(exc) == Unauthorized()

    def test_unclassified_jose_error_is_unauthorized(self):
        exc = JWSError("The specified alg value is not allowed")
        assert classify_token_error(exc) is TokenErrorKind.OTHER
        assert translate(exc) == Unauthorized()

    def test_unauthorized_carries_no_detail(self):
        exc = _decode_error(_token(secret="some-other-secret"))
        assert translate(exc).message == "Unauthorized"


# ---------------------------------------------------------------------------
# Mailbox / encoder
# ---------------------------------------------------------------------------


class TestMailboxErrors:
    @pytest.mark.parametrize("kind", list(MailboxErrorKind))
    def test_every_kind_is_internal_mailbox(self, kind):
        result = translate(MailboxError(kind, "mailer"))
        assert result == InternalServerError("mailbox")
        assert "mailer" not in result.message


class TestEncoderErrors:
    @pytest.mark.parametrize(
        ("kind", "message"),
        [
            (EncoderErrorKind.ALPHABET_LENGTH, "hashids AlphabetLength error"),
            (EncoderErrorKind.ILLEGAL_CHARACTER, "hashids IllegalCharacter error"),
            (EncoderErrorKind.SEPARATOR, "hashids Separator error"),
        ],
    )
    def test_kind_specific_tag(self, kind, message):
        assert translate(EncoderError(kind, character=" ")) == InternalServerError(message)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_service_error_passes_through(self):
        err = NotFound("project 7 not found")
        assert translate(err) is err

    def test_unsupported_type_raises(self):
        with pytest.raises(TypeError, match="KeyError"):
            translate(KeyError("x"))

    def test_supported_types_cover_every_domain(self):
        types = supported_types()
        for exc_type in (
            sa_exc.SQLAlchemyError,
            sa_exc.TimeoutError,
            sa_exc.DisconnectionError,
            MailboxError,
            EncoderError,
        ):
            assert exc_type in types
        assert any(issubclass(JWTError, t) for t in types)

    def test_translation_is_deterministic(self):
        exc = sa_exc.TimeoutError("pool timeout")
        assert translate(exc) == translate(exc)
