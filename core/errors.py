"""
core/errors.py -- Error taxonomy shared by every auth flow.

Two axes describe a failure:
  ErrorKind  -- which step of which flow failed (validation, token_store, ...).
               Used for logging and for picking the HTTP status at the boundary.
  ErrorCode  -- the machine-readable code a client sees. Each code owns a fixed
               user-facing message, except VALIDATION_FAILED whose message comes
               from the check that failed.

AuthError separates the user-facing message from the internal exception:
  message   -- always safe to show verbatim.
  internal  -- the collaborator exception that caused the failure. Logged with
               exc_info at the boundary, never serialized into a response.
  context   -- extra structured log fields (user_id, email, ...).

Flows raise AuthError and nothing else. The factories below are the only
place that pairs a kind with a code and a message.

Layer rule: core/ is the kernel. No imports from api/ or auth/.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    PASSWORD_STRENGTH = "password_strength"
    AUTHENTICATION = "authentication"
    CODE_GENERATION = "code_generation"
    TOKEN_STORE = "token_store"
    EMAIL_SEND = "email_send"
    SERIALIZATION = "serialization"
    CODE_EXPIRED = "code_expired"
    DESERIALIZE = "deserialize"
    REGISTER = "register"
    TOKEN_LOOKUP = "token_lookup"
    TOKEN_INVALID = "token_invalid"
    PASSWORD_CHANGE = "password_change"
    LOGOUT = "logout"
    USER_LOOKUP = "user_lookup"
    INTERNAL = "internal"


class ErrorCode(str, Enum):
    EMAIL_SEND_FAILED = "EMAIL_SEND_FAILED"
    TOKEN_STORE_FAILED = "TOKEN_STORE_FAILED"
    CODE_GENERATION_FAILED = "CODE_GENERATION_FAILED"
    SERIALIZATION_FAILED = "SERIALIZATION_FAILED"
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    REGISTRATION_FAILED = "REGISTRATION_FAILED"
    LOGOUT_FAILED = "LOGOUT_FAILED"
    PASSWORD_RESET_FAILED = "PASSWORD_RESET_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_FAILED = "VALIDATION_FAILED"


USER_MESSAGES: Mapping[ErrorCode, str] = MappingProxyType(
    {
        ErrorCode.EMAIL_SEND_FAILED: "Failed to send email. Please try again later",
        ErrorCode.TOKEN_STORE_FAILED: "Failed to process request. Please try again later",
        ErrorCode.CODE_GENERATION_FAILED: "Failed to generate verification code. Please try again later",
        ErrorCode.SERIALIZATION_FAILED: "Failed to process request. Please try again later",
        ErrorCode.AUTHENTICATION_FAILED: "Authentication failed",
        ErrorCode.REGISTRATION_FAILED: "Registration failed. Please try again later",
        ErrorCode.LOGOUT_FAILED: "Logout failed. Please try again later",
        ErrorCode.PASSWORD_RESET_FAILED: "Password reset failed. Please try again later",
        ErrorCode.INTERNAL_ERROR: "Internal server error. Please try again later",
    }
)

# Kinds whose message is user input feedback rather than a system failure.
CLIENT_ERROR_KINDS = frozenset(
    {
        ErrorKind.VALIDATION,
        ErrorKind.PASSWORD_STRENGTH,
        ErrorKind.CODE_EXPIRED,
        ErrorKind.DESERIALIZE,
        ErrorKind.TOKEN_LOOKUP,
        ErrorKind.TOKEN_INVALID,
    }
)

MSG_INVALID_CREDENTIALS = "Invalid credentials"
MSG_CODE_EXPIRED = "Verification code has expired"
MSG_LINK_INVALID = "Link not valid or expired"
MSG_MALFORMED_PAYLOAD = "Serialized format is malformed"


class ConfigError(ValueError):
    """Raised at construction time when the auth configuration is incomplete."""


class AuthError(Exception):
    """A failed auth operation. Immutable once created."""

    __slots__ = ("kind", "code", "message", "internal", "context")

    def __init__(
        self,
        kind: ErrorKind,
        code: ErrorCode,
        message: str,
        internal: BaseException | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "code", code)
        object.__setattr__(self, "message", message)
        object.__setattr__(self, "internal", internal)
        object.__setattr__(self, "context", MappingProxyType(dict(context or {})))

    def __setattr__(self, name: str, value: Any) -> None:
        # BaseException machinery (raise ... from, tracebacks) must keep working.
        if name in AuthError.__slots__:
            raise AttributeError(f"AuthError.{name} is read-only")
        super().__setattr__(name, value)

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"AuthError(kind={self.kind.value!r}, code={self.code.value!r}, message={self.message!r})"

    @property
    def is_client_error(self) -> bool:
        return self.kind in CLIENT_ERROR_KINDS


def _generic(kind: ErrorKind, code: ErrorCode, internal: BaseException | None, **context: Any) -> AuthError:
    return AuthError(kind, code, USER_MESSAGES[code], internal=internal, context=context)


# ---------------------------------------------------------------------------
# Validation-class errors -- message shown verbatim
# ---------------------------------------------------------------------------


def validation_error(message: str, **context: Any) -> AuthError:
    return AuthError(ErrorKind.VALIDATION, ErrorCode.VALIDATION_FAILED, message, context=context)


def password_strength_error(message: str, **context: Any) -> AuthError:
    return AuthError(ErrorKind.PASSWORD_STRENGTH, ErrorCode.VALIDATION_FAILED, message, context=context)


def invalid_credentials(internal: BaseException | None = None, **context: Any) -> AuthError:
    """Unknown user and wrong password are deliberately indistinguishable."""
    return AuthError(
        ErrorKind.AUTHENTICATION,
        ErrorCode.AUTHENTICATION_FAILED,
        MSG_INVALID_CREDENTIALS,
        internal=internal,
        context=context,
    )


def unauthenticated(message: str, internal: BaseException | None = None) -> AuthError:
    return AuthError(ErrorKind.AUTHENTICATION, ErrorCode.AUTHENTICATION_FAILED, message, internal=internal)


def code_expired(internal: BaseException | None = None, **context: Any) -> AuthError:
    return AuthError(
        ErrorKind.CODE_EXPIRED, ErrorCode.VALIDATION_FAILED, MSG_CODE_EXPIRED, internal=internal, context=context
    )


def malformed_payload(internal: BaseException | None = None, **context: Any) -> AuthError:
    return AuthError(
        ErrorKind.DESERIALIZE, ErrorCode.VALIDATION_FAILED, MSG_MALFORMED_PAYLOAD, internal=internal, context=context
    )


def link_lookup_failed(internal: BaseException | None = None) -> AuthError:
    return AuthError(ErrorKind.TOKEN_LOOKUP, ErrorCode.VALIDATION_FAILED, MSG_LINK_INVALID, internal=internal)


def link_invalid() -> AuthError:
    return AuthError(ErrorKind.TOKEN_INVALID, ErrorCode.VALIDATION_FAILED, MSG_LINK_INVALID)


# ---------------------------------------------------------------------------
# Collaborator failures -- generic message, original error kept for logs
# ---------------------------------------------------------------------------


def token_store_failed(internal: BaseException | None = None, **context: Any) -> AuthError:
    return _generic(ErrorKind.TOKEN_STORE, ErrorCode.TOKEN_STORE_FAILED, internal, **context)


def email_send_failed(internal: BaseException | None = None, **context: Any) -> AuthError:
    return _generic(ErrorKind.EMAIL_SEND, ErrorCode.EMAIL_SEND_FAILED, internal, **context)


def code_generation_failed(internal: BaseException | None = None, **context: Any) -> AuthError:
    return _generic(ErrorKind.CODE_GENERATION, ErrorCode.CODE_GENERATION_FAILED, internal, **context)


def serialization_failed(internal: BaseException | None = None, **context: Any) -> AuthError:
    return _generic(ErrorKind.SERIALIZATION, ErrorCode.SERIALIZATION_FAILED, internal, **context)


def registration_failed(internal: BaseException | None = None, **context: Any) -> AuthError:
    return _generic(ErrorKind.REGISTER, ErrorCode.REGISTRATION_FAILED, internal, **context)


def logout_failed(internal: BaseException | None = None, **context: Any) -> AuthError:
    return _generic(ErrorKind.LOGOUT, ErrorCode.LOGOUT_FAILED, internal, **context)


def password_reset_failed(internal: BaseException | None = None, **context: Any) -> AuthError:
    return _generic(ErrorKind.PASSWORD_CHANGE, ErrorCode.PASSWORD_RESET_FAILED, internal, **context)


def user_lookup_failed(internal: BaseException | None = None, **context: Any) -> AuthError:
    return AuthError(
        ErrorKind.USER_LOOKUP, ErrorCode.INTERNAL_ERROR, "Internal server error", internal=internal, context=context
    )


def internal_error(internal: BaseException | None = None, **context: Any) -> AuthError:
    return _generic(ErrorKind.INTERNAL, ErrorCode.INTERNAL_ERROR, internal, **context)
