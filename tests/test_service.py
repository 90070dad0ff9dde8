"""Unit tests for auth/service.py -- the AuthService facade and its settings wiring.

Includes the end-to-end flow scenarios run against the recording fakes:
  A: unknown user password login -> Invalid credentials
  B: password reset with a valid token -> "login success", token echoed
  C: passwordless registration code verify -> session issued
  D: passwordless login code request -> code stored against the email
"""

import json

import pytest

from auth.csrf import SignedCSRFValidator
from auth.ports import RateLimitDecision
from auth.service import AuthService, build_auth_service, password_policy_from_settings
from auth.strategy import AuthConfigBuilder, PasswordlessStrategy, PasswordStrategy
from core.config import Settings
from core.errors import AuthError, ErrorKind

TOKEN = "R" * 32


class TestScenarios:
    def test_a_unknown_user(self, make_config, ctx):
        service = AuthService(make_config())
        with pytest.raises(AuthError) as exc_info:
            service.login("a@b.com", "pw1", ctx)
        assert exc_info.value.message == "Invalid credentials"

    def test_b_password_reset(self, make_config, keys, password_users, sessions, ctx):
        service = AuthService(make_config())
        keys.data[TOKEN] = "user123"
        password_users.users["x@example.com"] = {
            "id": "user123",
            "password": "old",
            "first_name": "X",
            "last_name": "Y",
        }
        result = service.reset_password(TOKEN, "Secret123!", "Secret123!", ctx)
        assert result.message == "login success"
        assert result.token == TOKEN

    def test_c_passwordless_registration_verify(self, make_config, keys, passwordless_users, ctx):
        service = AuthService(make_config(passwordless=True))
        keys.data["BCDFGHJK"] = json.dumps({"email": "t@t.com", "first_name": "John", "last_name": "Doe"})
        result = service.verify_registration_code("BCDFGHJK", ctx)
        assert result.message == "login success"
        assert result.token

    def test_d_passwordless_login_code(self, make_config, keys, ctx):
        service = AuthService(make_config(passwordless=True))
        result = service.request_login_code("test@test.com", ctx)
        assert result.message == "Login code was sent successfully"
        (_, _, value, _), = keys.called("set")
        assert value == "test@test.com"


class TestAuthenticate:
    def test_resolves_token(self, make_config, sessions, ctx):
        sessions.tokens["TOKEN"] = "user1"
        user = AuthService(make_config()).authenticate("TOKEN", ctx)
        assert user.user_id == "user1"
        assert user.token == "TOKEN"

    def test_missing_token(self, make_config, sessions, ctx):
        with pytest.raises(AuthError) as exc_info:
            AuthService(make_config()).authenticate("", ctx)
        assert exc_info.value.kind is ErrorKind.AUTHENTICATION
        assert exc_info.value.message == "auth token is required"
        assert sessions.calls == []

    def test_lookup_failure(self, make_config, sessions, ctx):
        sessions.fail["find_user_by_token"] = RuntimeError("db down")
        with pytest.raises(AuthError) as exc_info:
            AuthService(make_config()).authenticate("TOKEN", ctx)
        assert exc_info.value.message == "auth token is required"

    def test_unknown_token(self, make_config, ctx):
        with pytest.raises(AuthError) as exc_info:
            AuthService(make_config()).authenticate("TOKEN", ctx)
        assert exc_info.value.message == "user id is required"


class _BrokenLimiter:
    def check(self, ip, endpoint):
        raise RuntimeError("storage unreachable")


class _DenyingLimiter:
    def check(self, ip, endpoint):
        return RateLimitDecision(allowed=False, retry_after=42)


@pytest.fixture
def builder(keys, sessions, password_users, notifier):
    return (
        AuthConfigBuilder()
        .endpoint("/auth")
        .redirect_on_success("/")
        .password_strategy(password_users)
        .temporary_keys(keys)
        .sessions(sessions)
        .notifier(notifier)
    )


class TestRequestGuards:
    def test_rate_limit_counts_attempts(self, builder):
        service = AuthService(builder.rate_limit(max_attempts=2).build())
        assert service.check_rate_limit("203.0.113.7", "login").allowed
        assert service.check_rate_limit("203.0.113.7", "login").allowed
        denied = service.check_rate_limit("203.0.113.7", "login")
        assert not denied.allowed
        assert denied.retry_after > 0
        # Other endpoints and other clients have their own budget.
        assert service.check_rate_limit("203.0.113.7", "register").allowed
        assert service.check_rate_limit("198.51.100.1", "login").allowed

    def test_rate_limit_disabled(self, builder):
        service = AuthService(builder.rate_limit(disabled=True, limiter=_DenyingLimiter()).build())
        assert service.check_rate_limit("203.0.113.7", "login").allowed

    def test_custom_limiter(self, builder):
        decision = AuthService(builder.rate_limit(limiter=_DenyingLimiter()).build()).check_rate_limit("ip", "login")
        assert decision == RateLimitDecision(allowed=False, retry_after=42)

    def test_rate_limit_fails_open(self, builder):
        service = AuthService(builder.rate_limit(limiter=_BrokenLimiter()).build())
        assert service.check_rate_limit("203.0.113.7", "login").allowed

    def test_csrf_disabled_accepts_anything(self, builder):
        service = AuthService(builder.build())
        assert not service.csrf_enabled
        assert service.validate_csrf("")
        assert service.issue_csrf_token() == ""

    def test_csrf_enabled(self, builder):
        service = AuthService(builder.csrf(enabled=True, validator=SignedCSRFValidator("s" * 32)).build())
        assert service.csrf_enabled
        assert service.validate_csrf(service.issue_csrf_token())
        assert not service.validate_csrf("forged")
        assert not service.validate_csrf("")


class TestBuildFromSettings:
    def test_password_strategy(self, keys, password_users, notifier):
        settings = Settings(debug=True, enable_verification=True, password_min_length=12)
        service = build_auth_service(settings, password_users, keys, notifier)
        assert isinstance(service.config.strategy, PasswordStrategy)
        assert service.config.strategy.enable_verification
        assert service.config.strategy.password_policy.min_length == 12
        assert service.config.endpoint == "/auth"
        assert service.config.use_cookies

    def test_passwordless_strategy(self, keys, passwordless_users, notifier):
        settings = Settings(debug=True, auth_strategy="passwordless")
        service = build_auth_service(settings, passwordless_users, keys, notifier)
        assert isinstance(service.config.strategy, PasswordlessStrategy)
        assert service.passwordless

    def test_csrf_secret_defaults_to_secret_key(self, keys, password_users, notifier):
        settings = Settings(debug=True, enable_csrf=True)
        service = build_auth_service(settings, password_users, keys, notifier)
        token = service.issue_csrf_token()
        assert SignedCSRFValidator(settings.secret_key).validate(token)

    def test_policy_from_settings(self):
        policy = password_policy_from_settings(Settings(debug=True, password_require_special=False))
        assert policy.check("Secret1234") is None
