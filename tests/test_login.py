"""Unit tests for auth/login.py -- password login, login code request and verify.

All collaborators are the recording fakes from conftest.py, so each test can
assert both the outcome and which collaborators were (not) reached.
"""

import pytest

from auth.login import LoginFlow
from auth.sessions import SessionIssuer
from core.errors import AuthError, ErrorCode, ErrorKind


@pytest.fixture
def password_flow(make_config, sessions):
    return LoginFlow(make_config(), SessionIssuer(sessions))


@pytest.fixture
def passwordless_flow(make_config, sessions):
    return LoginFlow(make_config(passwordless=True), SessionIssuer(sessions))


class TestLoginWithPassword:
    def test_success_issues_session(self, password_flow, password_users, sessions, ctx):
        user_id = password_users.add("ann@example.com", "Secret123!")
        result = password_flow.login_with_password("ann@example.com", "Secret123!", ctx)
        assert result.message == "login success"
        assert len(result.token) == 32
        assert sessions.tokens[result.token] == user_id

    def test_unknown_user_is_invalid_credentials(self, password_flow, sessions, ctx):
        # Directory answers "no user" without an error.
        with pytest.raises(AuthError) as exc_info:
            password_flow.login_with_password("a@b.com", "pw1", ctx)
        err = exc_info.value
        assert err.kind is ErrorKind.AUTHENTICATION
        assert err.code is ErrorCode.AUTHENTICATION_FAILED
        assert err.message == "Invalid credentials"
        assert sessions.calls == []

    def test_directory_error_is_invalid_credentials(self, password_flow, password_users, ctx):
        password_users.fail["login"] = RuntimeError("db down")
        with pytest.raises(AuthError) as exc_info:
            password_flow.login_with_password("ann@example.com", "Secret123!", ctx)
        assert exc_info.value.message == "Invalid credentials"
        assert isinstance(exc_info.value.internal, RuntimeError)

    @pytest.mark.parametrize(
        "email,password,message",
        [
            ("", "", "Email is required field"),
            ("", "pw", "Email is required field"),
            ("ann@example.com", "", "Password is required field"),
            ("bogus", "pw", "This is not a valid email: bogus"),
        ],
    )
    def test_validation_before_directory(self, password_flow, password_users, ctx, email, password, message):
        with pytest.raises(AuthError) as exc_info:
            password_flow.login_with_password(email, password, ctx)
        assert exc_info.value.kind is ErrorKind.VALIDATION
        assert exc_info.value.message == message
        assert password_users.calls == []

    def test_session_store_failure(self, password_flow, password_users, sessions, ctx):
        password_users.add("ann@example.com", "Secret123!")
        sessions.fail["store_token"] = RuntimeError("disk full")
        with pytest.raises(AuthError) as exc_info:
            password_flow.login_with_password("ann@example.com", "Secret123!", ctx)
        assert exc_info.value.kind is ErrorKind.TOKEN_STORE
        assert exc_info.value.code is ErrorCode.TOKEN_STORE_FAILED

    def test_rejected_on_passwordless_strategy(self, passwordless_flow, ctx):
        with pytest.raises(AuthError) as exc_info:
            passwordless_flow.login_with_password("ann@example.com", "Secret123!", ctx)
        assert exc_info.value.kind is ErrorKind.INTERNAL


class TestRequestCode:
    def test_code_stored_and_sent(self, passwordless_flow, keys, notifier, templates, ctx):
        result = passwordless_flow.request_code("test@test.com", ctx)
        assert result.message == "Login code was sent successfully"

        (_, code, value, ttl), = keys.called("set")
        assert value == "test@test.com"
        assert ttl == 3600
        assert len(code) == 8

        assert templates.called("login_code") == [("login_code", "test@test.com", code)]
        (_, recipient, subject, body), = notifier.called("send")
        assert recipient == "test@test.com"
        assert subject == "Login Code"
        assert code in body

    def test_invalid_email(self, passwordless_flow, keys, ctx):
        with pytest.raises(AuthError) as exc_info:
            passwordless_flow.request_code("nope", ctx)
        assert exc_info.value.message == "This is not a valid email: nope"
        assert keys.calls == []

    def test_store_failure(self, passwordless_flow, keys, notifier, ctx):
        keys.fail["set"] = RuntimeError("redis down")
        with pytest.raises(AuthError) as exc_info:
            passwordless_flow.request_code("ann@example.com", ctx)
        assert exc_info.value.code is ErrorCode.TOKEN_STORE_FAILED
        assert notifier.calls == []

    def test_send_failure(self, passwordless_flow, notifier, ctx):
        notifier.fail["send"] = OSError("smtp down")
        with pytest.raises(AuthError) as exc_info:
            passwordless_flow.request_code("ann@example.com", ctx)
        assert exc_info.value.kind is ErrorKind.EMAIL_SEND
        assert exc_info.value.message == "Failed to send email. Please try again later"

    def test_template_failure_is_send_failure(self, passwordless_flow, templates, ctx):
        templates.fail["login_code"] = RuntimeError("template missing")
        with pytest.raises(AuthError) as exc_info:
            passwordless_flow.request_code("ann@example.com", ctx)
        assert exc_info.value.kind is ErrorKind.EMAIL_SEND

    def test_rejected_on_password_strategy(self, password_flow, ctx):
        with pytest.raises(AuthError) as exc_info:
            password_flow.request_code("ann@example.com", ctx)
        assert exc_info.value.kind is ErrorKind.INTERNAL

    def test_hardened_codes_without_rate_limit(self, make_config, sessions, keys, ctx):
        flow = LoginFlow(make_config(passwordless=True, disable_rate_limit=True), SessionIssuer(sessions))
        flow.request_code("ann@example.com", ctx)
        (_, code, _, _), = keys.called("set")
        assert len(code) == 12


class TestVerifyCode:
    def test_success(self, passwordless_flow, passwordless_users, keys, sessions, ctx):
        passwordless_users.users["ann@example.com"] = "user123"
        keys.data["BCDFGHJK"] = "ann@example.com"
        result = passwordless_flow.verify_code("BCDFGHJK", ctx)
        assert result.message == "login success"
        assert sessions.tokens[result.token] == "user123"

    def test_password_strategy_uses_username_lookup(self, password_flow, password_users, keys, ctx):
        password_users.add("ann@example.com", "Secret123!")
        keys.data["BCDFGHJK"] = "ann@example.com"
        password_flow.verify_code("BCDFGHJK", ctx)
        assert password_users.called("find_by_username") == [("find_by_username", "ann@example.com", "", "")]

    @pytest.mark.parametrize(
        "code,message",
        [
            ("", "Verification code is required field"),
            ("BCD", "Verification code is invalid length"),
            ("bcdfghjk", "Verification code contains invalid characters"),
        ],
    )
    def test_malformed_code_never_reaches_store(self, passwordless_flow, keys, ctx, code, message):
        with pytest.raises(AuthError) as exc_info:
            passwordless_flow.verify_code(code, ctx)
        assert exc_info.value.kind is ErrorKind.VALIDATION
        assert exc_info.value.message == message
        assert keys.calls == []

    def test_missing_code_is_expired(self, passwordless_flow, ctx):
        with pytest.raises(AuthError) as exc_info:
            passwordless_flow.verify_code("BCDFGHJK", ctx)
        assert exc_info.value.kind is ErrorKind.CODE_EXPIRED
        assert exc_info.value.message == "Verification code has expired"

    def test_store_error_is_expired(self, passwordless_flow, keys, ctx):
        keys.fail["get"] = RuntimeError("timeout")
        with pytest.raises(AuthError) as exc_info:
            passwordless_flow.verify_code("BCDFGHJK", ctx)
        assert exc_info.value.kind is ErrorKind.CODE_EXPIRED

    def test_empty_value_is_expired(self, passwordless_flow, keys, ctx):
        keys.data["BCDFGHJK"] = ""
        with pytest.raises(AuthError) as exc_info:
            passwordless_flow.verify_code("BCDFGHJK", ctx)
        assert exc_info.value.kind is ErrorKind.CODE_EXPIRED

    def test_unknown_account(self, passwordless_flow, keys, sessions, ctx):
        keys.data["BCDFGHJK"] = "ghost@example.com"
        with pytest.raises(AuthError) as exc_info:
            passwordless_flow.verify_code("BCDFGHJK", ctx)
        assert exc_info.value.message == "Invalid credentials"
        assert sessions.calls == []
