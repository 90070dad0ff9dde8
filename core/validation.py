"""
core/validation.py -- Input checks used by the auth flows.

Every check returns a user-facing message (or raises a validation AuthError)
rather than a bool, so the flows can surface the exact reason verbatim.

Email format: email-validator parses the address syntax only. Deliverability
(DNS lookups) is switched off -- the flows must not do network I/O of their
own, and a typo'd domain is caught by the code/link email never arriving.

Passwords: PasswordPolicy checks run in a fixed order and report only the
first failure, so a client fixing one problem at a time sees a stable
sequence of messages.

Comparison: constant_time_equals() wraps hmac.compare_digest for the
password-confirmation check, which runs before any collaborator is called.
"""

from __future__ import annotations

import hmac
import unicodedata
from dataclasses import dataclass

from email_validator import EmailNotValidError, validate_email

from core.errors import validation_error

COMMON_PASSWORDS = frozenset({"password", "123456", "123456789", "qwerty", "admin", "letmein"})


def require(value: str, message: str) -> None:
    """Raise a validation error carrying `message` when value is empty."""
    if not value:
        raise validation_error(message)


def email_format_error(email: str) -> str | None:
    """Return the validation message for a malformed address, else None.

    Empty input returns None -- presence is checked separately, and first.
    """
    if not email:
        return None
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return f"This is not a valid email: {email}"
    return None


def require_email_format(email: str) -> None:
    message = email_format_error(email)
    if message:
        raise validation_error(message, email=email)


def _is_special(ch: str) -> bool:
    # Unicode punctuation (P*) or symbol (S*) categories.
    return unicodedata.category(ch)[0] in ("P", "S")


@dataclass(frozen=True)
class PasswordPolicy:
    min_length: int = 8
    require_uppercase: bool = True
    require_lowercase: bool = True
    require_digit: bool = True
    require_special: bool = True
    forbid_common_words: bool = True

    @classmethod
    def disabled(cls) -> PasswordPolicy:
        return cls(
            min_length=0,
            require_uppercase=False,
            require_lowercase=False,
            require_digit=False,
            require_special=False,
            forbid_common_words=False,
        )

    def check(self, password: str) -> str | None:
        """Return the first policy violation message, or None when the password passes."""
        if self.min_length > 0 and len(password) < self.min_length:
            return f"password must be at least {self.min_length} characters long"

        has_upper = any(ch.isupper() for ch in password)
        has_lower = any(ch.islower() for ch in password)
        has_digit = any(ch.isdigit() for ch in password)
        has_special = any(_is_special(ch) for ch in password)

        if self.require_uppercase and not has_upper:
            return "password must contain at least one uppercase letter"
        if self.require_lowercase and not has_lower:
            return "password must contain at least one lowercase letter"
        if self.require_digit and not has_digit:
            return "password must contain at least one digit"
        if self.require_special and not has_special:
            return "password must contain at least one special character"
        if self.forbid_common_words and password.lower() in COMMON_PASSWORDS:
            return "password is too common"
        return None


def constant_time_equals(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))
