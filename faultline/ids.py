"""IdCodec — short, non-sequential public ids backed by hashids."""

from __future__ import annotations

import enum
import os

from hashids import Hashids

DEFAULT_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ1234567890"
MIN_ALPHABET_LENGTH = 16
SEPARATORS = "cfhistuCFHISTU"

# Environment variable keys
_ENV_SALT = "FAULTLINE_ID_SALT"
_ENV_ALPHABET = "FAULTLINE_ID_ALPHABET"
_ENV_MIN_LENGTH = "FAULTLINE_ID_MIN_LENGTH"


class EncoderErrorKind(enum.Enum):
    ALPHABET_LENGTH = "alphabet_length"
    ILLEGAL_CHARACTER = "illegal_character"
    SEPARATOR = "separator"


class EncoderError(Exception):
    """Raised when an :class:`IdCodec` is built from an unusable alphabet."""

    def __init__(self, kind: EncoderErrorKind, character: str | None = None) -> None:
        if kind is EncoderErrorKind.ALPHABET_LENGTH:
            msg = f"alphabet must contain at least {MIN_ALPHABET_LENGTH} unique characters"
        elif kind is EncoderErrorKind.ILLEGAL_CHARACTER:
            msg = f"alphabet contains illegal character {character!r}"
        else:
            msg = f"alphabet must contain at least one separator ({SEPARATORS})"
        super().__init__(msg)
        self.kind = kind
        self.character = character


def _validate_alphabet(alphabet: str) -> None:
    if len(set(alphabet)) < MIN_ALPHABET_LENGTH:
        raise EncoderError(EncoderErrorKind.ALPHABET_LENGTH)
    for ch in alphabet:
        if ch.isspace():
            raise EncoderError(EncoderErrorKind.ILLEGAL_CHARACTER, character=ch)
    if not any(ch in SEPARATORS for ch in alphabet):
        raise EncoderError(EncoderErrorKind.SEPARATOR)


class IdCodec:
    """Encode integer ids into opaque strings and back.

    The alphabet is checked up front so a bad configuration fails at startup
    with an :class:`EncoderError` instead of producing unstable ids.
    """

    def __init__(
        self,
        salt: str = "",
        *,
        alphabet: str = DEFAULT_ALPHABET,
        min_length: int = 0,
    ) -> None:
        _validate_alphabet(alphabet)
        if min_length < 0:
            raise ValueError("min_length must not be negative")
        self._hashids = Hashids(salt=salt, min_length=min_length, alphabet=alphabet)

    @classmethod
    def from_env(cls) -> IdCodec:
        """Build a codec from ``FAULTLINE_ID_*`` environment variables."""
        return cls(
            os.environ.get(_ENV_SALT, ""),
            alphabet=os.environ.get(_ENV_ALPHABET, DEFAULT_ALPHABET),
            min_length=int(os.environ.get(_ENV_MIN_LENGTH, "0")),
        )

    def encode(self, *ids: int) -> str:
        if not ids:
            raise ValueError("encode() requires at least one id")
        if any(i < 0 for i in ids):
            raise ValueError("ids must be non-negative")
        return self._hashids.encode(*ids)

    def decode(self, hashid: str) -> tuple[int, ...]:
        """Return the ids in *hashid*, or an empty tuple if it is not ours."""
        return tuple(self._hashids.decode(hashid))

    def decode_one(self, hashid: str) -> int | None:
        ids = self.decode(hashid)
        if len(ids) != 1:
            return None
        return ids[0]
