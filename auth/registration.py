"""
auth/registration.py -- Registration flows.

  register     single-phase for the password strategy without verification:
               the account is created immediately and no session is issued.
               Two-phase otherwise: the profile is staged under a fresh
               verification code and the code is emailed.
  verify_code  consumes a registration code, creates the staged account and
               issues a session for it.

The staged profile is JSON (core.models.StagedRegistration) with keys email,
first_name and last_name, plus password for the password strategy. The
password is re-checked against the policy at verification time because the
policy may have changed while the code was outstanding.

First and last names are HTML-escaped before they are stored or forwarded.
"""

from __future__ import annotations

import html
import logging

from auth.emails import SUBJECT_REGISTRATION_CODE
from auth.login import MSG_EMAIL_REQUIRED, MSG_PASSWORD_REQUIRED, authenticate_via_username, consume_code
from auth.sessions import SessionIssuer
from auth.strategy import AuthConfig, PasswordStrategy
from core.errors import (
    code_generation_failed,
    email_send_failed,
    malformed_payload,
    password_strength_error,
    registration_failed,
    serialization_failed,
    token_store_failed,
    validation_error,
)
from core.models import ClientContext, MessageResult, StagedRegistration, TokenResult
from core.validation import require, require_email_format

logger = logging.getLogger("gatehouse.auth.registration")

MSG_FIRST_NAME_REQUIRED = "First name is required field"
MSG_LAST_NAME_REQUIRED = "Last name is required field"
MSG_REGISTRATION_DISABLED = "Registration is disabled"
MSG_REGISTRATION_SUCCESS = "registration success"
MSG_REGISTRATION_CODE_SENT = "Registration code was sent successfully"


class RegistrationFlow:
    def __init__(self, config: AuthConfig, issuer: SessionIssuer) -> None:
        self._config = config
        self._issuer = issuer

    @property
    def _two_phase(self) -> bool:
        strategy = self._config.strategy
        return not isinstance(strategy, PasswordStrategy) or strategy.enable_verification

    def _check_password(self, password: str) -> None:
        strategy = self._config.strategy
        if isinstance(strategy, PasswordStrategy):
            problem = strategy.password_policy.check(password)
            if problem:
                raise password_strength_error(problem)

    def register(self, first_name: str, last_name: str, email: str, password: str, ctx: ClientContext) -> MessageResult:
        if not self._config.enable_registration:
            raise validation_error(MSG_REGISTRATION_DISABLED)

        password_based = isinstance(self._config.strategy, PasswordStrategy)

        require(first_name, MSG_FIRST_NAME_REQUIRED)
        require(last_name, MSG_LAST_NAME_REQUIRED)
        require(email, MSG_EMAIL_REQUIRED)
        if password_based:
            require(password, MSG_PASSWORD_REQUIRED)
        require_email_format(email)
        if password_based:
            self._check_password(password)

        first_name = html.escape(first_name)
        last_name = html.escape(last_name)

        if not self._two_phase:
            return self._register_now(email, password, first_name, last_name, ctx)

        staged = StagedRegistration(
            email=email,
            first_name=first_name,
            last_name=last_name,
            password=password if password_based else None,
        )
        return self._stage(staged, ctx)

    def _register_now(
        self, email: str, password: str, first_name: str, last_name: str, ctx: ClientContext
    ) -> MessageResult:
        strategy = self._config.strategy
        assert isinstance(strategy, PasswordStrategy)
        try:
            strategy.users.register(email, password, first_name, last_name, ctx)
        except Exception as exc:
            raise registration_failed(exc, email=email) from exc
        logger.info("Registered %s", email)
        return MessageResult(message=MSG_REGISTRATION_SUCCESS)

    def _stage(self, staged: StagedRegistration, ctx: ClientContext) -> MessageResult:
        try:
            code = self._config.code_policy.generate()
        except Exception as exc:
            raise code_generation_failed(exc, email=staged.email) from exc

        try:
            payload = staged.to_json()
        except Exception as exc:
            raise serialization_failed(exc, email=staged.email) from exc

        try:
            self._config.keys.set(code, payload, self._config.code_ttl_seconds)
        except Exception as exc:
            raise token_store_failed(exc, email=staged.email) from exc

        try:
            body = self._config.templates.registration_code(staged.email, code, ctx)
            self._config.notifier.send(staged.email, SUBJECT_REGISTRATION_CODE, body, ctx)
        except Exception as exc:
            raise email_send_failed(exc, email=staged.email) from exc

        logger.info("Registration code sent to %s", staged.email)
        return MessageResult(message=MSG_REGISTRATION_CODE_SENT)

    def verify_code(self, code: str, ctx: ClientContext) -> TokenResult:
        if not self._config.enable_registration:
            raise validation_error(MSG_REGISTRATION_DISABLED)

        raw = consume_code(self._config, code)

        try:
            staged = StagedRegistration.from_json(raw)
        except (TypeError, ValueError) as exc:
            raise malformed_payload(exc) from exc

        strategy = self._config.strategy
        password = staged.password or ""
        self._check_password(password)

        try:
            if isinstance(strategy, PasswordStrategy):
                strategy.users.register(staged.email, password, staged.first_name, staged.last_name, ctx)
            else:
                strategy.users.register_passwordless(staged.email, staged.first_name, staged.last_name, ctx)
        except Exception as exc:
            raise registration_failed(exc, email=staged.email) from exc

        logger.info("Registration confirmed for %s", staged.email)
        return authenticate_via_username(
            strategy, self._issuer, staged.email, staged.first_name, staged.last_name, ctx
        )
