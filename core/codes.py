"""
core/codes.py -- Random session tokens, reset tokens and verification codes.

Every value is drawn with the secrets module. Two formats exist for
verification codes:

  default   8 characters of DEFAULT_ALPHABET (consonants only, upper case --
            easy to read out of an email and type back).
  hardened  12 characters of HARDENED_ALPHABET. Used when rate limiting is
            disabled: without a cap on attempts the code needs a search space
            large enough that guessing is not practical.

Session and reset tokens are always 32 characters of DEFAULT_ALPHABET.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass

DEFAULT_ALPHABET = "BCDFGHJKLMNPQRSTVXYZ"
HARDENED_ALPHABET = "bcdfghjklmpqrstvxyzBCDFGHJKLMNPQRSTVXYZ0123456789"

DEFAULT_CODE_LENGTH = 8
HARDENED_CODE_LENGTH = 12
SESSION_TOKEN_LENGTH = 32
RESET_TOKEN_LENGTH = 32

MSG_CODE_INVALID_LENGTH = "Verification code is invalid length"
MSG_CODE_INVALID_CHARACTERS = "Verification code contains invalid characters"


def random_from_alphabet(length: int, alphabet: str) -> str:
    """Return a cryptographically random string of `length` characters from `alphabet`."""
    if length <= 0:
        raise ValueError("length must be positive")
    if not alphabet:
        raise ValueError("alphabet must not be empty")
    return "".join(secrets.choice(alphabet) for _ in range(length))


def new_session_token() -> str:
    return random_from_alphabet(SESSION_TOKEN_LENGTH, DEFAULT_ALPHABET)


def new_reset_token() -> str:
    return random_from_alphabet(RESET_TOKEN_LENGTH, DEFAULT_ALPHABET)


@dataclass(frozen=True)
class CodePolicy:
    """Length and alphabet of verification codes."""

    length: int = DEFAULT_CODE_LENGTH
    alphabet: str = DEFAULT_ALPHABET

    @classmethod
    def for_mode(cls, hardened: bool) -> CodePolicy:
        if hardened:
            return cls(length=HARDENED_CODE_LENGTH, alphabet=HARDENED_ALPHABET)
        return cls()

    def generate(self) -> str:
        return random_from_alphabet(self.length, self.alphabet)

    def check(self, code: str) -> str | None:
        """Return the validation message for a malformed code, or None if well-formed.

        Length is checked before the character set, so a short code with bad
        characters reports the length problem.
        """
        if len(code) != self.length:
            return MSG_CODE_INVALID_LENGTH
        allowed = set(self.alphabet)
        if any(ch not in allowed for ch in code):
            return MSG_CODE_INVALID_CHARACTERS
        return None
