"""
auth/password.py -- Password restore (request a reset link) and reset (consume it).

Password strategy only. The reset token is a 32 character random string
stored in the temporary key store as token -> user id with a TTL.

Security:
  restore() leaves the name comparison to the user directory: the core
  passes email, first and last name to find_by_username() and trusts its
  answer. An unknown combination is reported as "User not found".

  reset() compares password and confirmation in constant time and does so
  before any collaborator is called.

  After a successful password change every session of the user is
  invalidated. If that invalidation fails the whole reset is reported as
  failed, even though the new password is already in place -- the caller
  must not assume old sessions are gone.

  The reset token is not deleted after use; it stays valid until its TTL
  expires.

  Verification codes live in the same key store. A token that is not
  RESET_TOKEN_LENGTH long is rejected as an invalid link before the lookup,
  so a login or registration code can never be redeemed as a reset token.
"""

from __future__ import annotations

import html
import logging

from auth.emails import SUBJECT_PASSWORD_RESTORE
from auth.login import MSG_EMAIL_REQUIRED, MSG_PASSWORD_REQUIRED
from auth.registration import MSG_FIRST_NAME_REQUIRED, MSG_LAST_NAME_REQUIRED
from auth.strategy import AuthConfig, PasswordStrategy
from core.codes import RESET_TOKEN_LENGTH, new_reset_token
from core.errors import (
    code_generation_failed,
    email_send_failed,
    internal_error,
    link_invalid,
    link_lookup_failed,
    logout_failed,
    password_reset_failed,
    password_strength_error,
    token_store_failed,
    user_lookup_failed,
    validation_error,
)
from core.models import ClientContext, MessageResult, TokenResult
from core.validation import constant_time_equals, require, require_email_format

logger = logging.getLogger("gatehouse.auth.password")

MSG_TOKEN_REQUIRED = "Token is required field"
MSG_PASSWORDS_DO_NOT_MATCH = "Passwords do not match"
MSG_USER_NOT_FOUND = "User not found"
MSG_RESET_LINK_SENT = "Password reset link was sent to your e-mail"
MSG_RESET_SUCCESS = "login success"


class PasswordFlow:
    def __init__(self, config: AuthConfig) -> None:
        self._config = config

    def _strategy(self) -> PasswordStrategy:
        strategy = self._config.strategy
        if not isinstance(strategy, PasswordStrategy):
            raise internal_error(RuntimeError("password restore requires the password strategy"))
        return strategy

    def restore(self, email: str, first_name: str, last_name: str, ctx: ClientContext) -> MessageResult:
        strategy = self._strategy()

        require(email, MSG_EMAIL_REQUIRED)
        require_email_format(email)
        require(first_name, MSG_FIRST_NAME_REQUIRED)
        require(last_name, MSG_LAST_NAME_REQUIRED)

        # Names were escaped when the account was registered.
        first_name = html.escape(first_name)
        last_name = html.escape(last_name)

        try:
            user_id = strategy.users.find_by_username(email, first_name, last_name, ctx)
        except Exception as exc:
            raise user_lookup_failed(exc, email=email, first_name=first_name, last_name=last_name) from exc
        if not user_id:
            raise validation_error(MSG_USER_NOT_FOUND)

        try:
            token = new_reset_token()
        except Exception as exc:
            raise code_generation_failed(exc, user_id=user_id) from exc

        try:
            self._config.keys.set(token, user_id, self._config.reset_ttl_seconds)
        except Exception as exc:
            raise token_store_failed(exc, user_id=user_id) from exc

        try:
            body = self._config.templates.password_restore(user_id, self._config.password_reset_link(token), ctx)
            self._config.notifier.send(user_id, SUBJECT_PASSWORD_RESTORE, body, ctx)
        except Exception as exc:
            raise email_send_failed(exc, user_id=user_id) from exc

        logger.info("Password reset link sent for user %s", user_id)
        return MessageResult(message=MSG_RESET_LINK_SENT)

    def reset(self, token: str, password: str, password_confirm: str, ctx: ClientContext) -> TokenResult:
        strategy = self._strategy()

        require(token, MSG_TOKEN_REQUIRED)
        require(password, MSG_PASSWORD_REQUIRED)
        if not constant_time_equals(password, password_confirm):
            raise validation_error(MSG_PASSWORDS_DO_NOT_MATCH)

        problem = strategy.password_policy.check(password)
        if problem:
            raise password_strength_error(problem)

        if len(token) != RESET_TOKEN_LENGTH:
            raise link_invalid()

        try:
            user_id = self._config.keys.get(token)
        except Exception as exc:
            raise link_lookup_failed(exc) from exc
        if not user_id:
            raise link_invalid()

        try:
            strategy.users.change_password(user_id, password, ctx)
        except Exception as exc:
            raise password_reset_failed(exc, user_id=user_id) from exc

        try:
            self._config.sessions.logout(user_id, ctx)
        except Exception as exc:
            raise logout_failed(exc, user_id=user_id) from exc

        logger.info("Password reset for user %s", user_id)
        return TokenResult(message=MSG_RESET_SUCCESS, token=token)
