"""
auth/login.py -- Login flows.

  login_with_password   email + password -> session token (password strategy).
  request_code          email -> emailed one-time code (passwordless strategy).
  verify_code           code -> session token (passwordless strategy).

Ordering rules the flows guarantee:
  - Presence checks run first, then format checks, then collaborators. A
    request with a missing field never reaches a collaborator.
  - A verification code is checked for length and alphabet before the
    temporary key store is consulted, so malformed codes never cost a lookup.
  - Unknown user and wrong password produce the same "Invalid credentials"
    error so the response does not reveal which accounts exist.

consume_code() and authenticate_via_username() are shared with
auth/registration.py: registration-code verification runs the same code
prefix and the same session tail.
"""

from __future__ import annotations

import logging

from auth.emails import SUBJECT_LOGIN_CODE
from auth.sessions import SessionIssuer
from auth.strategy import AuthConfig, PasswordlessStrategy, PasswordStrategy, Strategy
from core.codes import CodePolicy
from core.errors import (
    code_expired,
    code_generation_failed,
    email_send_failed,
    internal_error,
    invalid_credentials,
    token_store_failed,
    validation_error,
)
from core.models import ClientContext, MessageResult, TokenResult
from core.validation import require, require_email_format

logger = logging.getLogger("gatehouse.auth.login")

MSG_EMAIL_REQUIRED = "Email is required field"
MSG_PASSWORD_REQUIRED = "Password is required field"
MSG_CODE_REQUIRED = "Verification code is required field"
MSG_LOGIN_CODE_SENT = "Login code was sent successfully"


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def consume_code(config: AuthConfig, code: str) -> str:
    """Validate a verification code's shape, then resolve it in the temporary key store.

    Returns the stored value. Raises validation errors for an empty or
    malformed code and code_expired when the store has nothing usable --
    missing, expired and errored lookups are indistinguishable to the caller.
    """
    require(code, MSG_CODE_REQUIRED)

    policy: CodePolicy = config.code_policy
    problem = policy.check(code)
    if problem:
        raise validation_error(problem)

    try:
        value = config.keys.get(code)
    except Exception as exc:
        raise code_expired(exc) from exc
    if not value:
        raise code_expired()
    return value


def authenticate_via_username(
    strategy: Strategy,
    issuer: SessionIssuer,
    email: str,
    first_name: str,
    last_name: str,
    ctx: ClientContext,
) -> TokenResult:
    """Resolve the account behind a verified email and issue a session for it.

    Passwordless looks the user up by email alone; the password strategy uses
    the username lookup, which may also match first and last name.
    """
    try:
        if isinstance(strategy, PasswordlessStrategy):
            user_id = strategy.users.find_by_email(email, ctx)
        else:
            user_id = strategy.users.find_by_username(email, first_name, last_name, ctx)
    except Exception as exc:
        raise invalid_credentials(exc, email=email) from exc
    if not user_id:
        raise invalid_credentials(email=email)
    return issuer.issue(user_id, ctx)


# ---------------------------------------------------------------------------
# Flows
# ---------------------------------------------------------------------------


class LoginFlow:
    def __init__(self, config: AuthConfig, issuer: SessionIssuer) -> None:
        self._config = config
        self._issuer = issuer

    def login_with_password(self, email: str, password: str, ctx: ClientContext) -> TokenResult:
        strategy = self._config.strategy
        if not isinstance(strategy, PasswordStrategy):
            raise internal_error(RuntimeError("password login requires the password strategy"))

        require(email, MSG_EMAIL_REQUIRED)
        require(password, MSG_PASSWORD_REQUIRED)
        require_email_format(email)

        try:
            user_id = strategy.users.login(email, password, ctx)
        except Exception as exc:
            raise invalid_credentials(exc, email=email) from exc
        if not user_id:
            raise invalid_credentials(email=email)

        return self._issuer.issue(user_id, ctx)

    def request_code(self, email: str, ctx: ClientContext) -> MessageResult:
        if not isinstance(self._config.strategy, PasswordlessStrategy):
            raise internal_error(RuntimeError("login codes require the passwordless strategy"))

        require(email, MSG_EMAIL_REQUIRED)
        require_email_format(email)

        try:
            code = self._config.code_policy.generate()
        except Exception as exc:
            raise code_generation_failed(exc, email=email) from exc

        try:
            self._config.keys.set(code, email, self._config.code_ttl_seconds)
        except Exception as exc:
            raise token_store_failed(exc, email=email) from exc

        try:
            body = self._config.templates.login_code(email, code, ctx)
            self._config.notifier.send(email, SUBJECT_LOGIN_CODE, body, ctx)
        except Exception as exc:
            raise email_send_failed(exc, email=email) from exc

        logger.info("Login code sent to %s", email)
        return MessageResult(message=MSG_LOGIN_CODE_SENT)

    def verify_code(self, code: str, ctx: ClientContext) -> TokenResult:
        email = consume_code(self._config, code)
        return authenticate_via_username(self._config.strategy, self._issuer, email, "", "", ctx)
