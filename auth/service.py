"""
auth/service.py -- AuthService: the single entry point the HTTP layer talks to.

Pattern: Facade. Wires the flows to one validated AuthConfig and exposes one
method per operation. Every method either returns a result dataclass
(core.models) or raises core.errors.AuthError; nothing else escapes.

The service keeps no mutable state of its own. Cross-request state (codes,
sessions, rate-limit counters) lives in the collaborators, which own their
locking. One instance is shared by all requests.
"""

from __future__ import annotations

import logging

from auth.emails import DefaultEmailTemplates
from auth.keystore import TemporaryKeyStore
from auth.login import LoginFlow
from auth.logout import LogoutFlow
from auth.password import PasswordFlow
from auth.ports import Notifier, RateLimitDecision
from auth.registration import RegistrationFlow
from auth.sessions import SessionIssuer
from auth.store import UserStore
from auth.strategy import AuthConfig, AuthConfigBuilder
from core.config import Settings
from core.errors import unauthenticated
from core.models import AuthenticatedUser, ClientContext, MessageResult, TokenResult
from core.validation import PasswordPolicy

logger = logging.getLogger("gatehouse.auth")

MSG_TOKEN_REQUIRED = "auth token is required"
MSG_USER_ID_REQUIRED = "user id is required"

# Endpoint names used as rate-limit keys.
ENDPOINT_LOGIN = "login"
ENDPOINT_LOGIN_CODE_VERIFY = "login_code_verify"
ENDPOINT_REGISTER = "register"
ENDPOINT_REGISTER_CODE_VERIFY = "register_code_verify"


class AuthService:
    def __init__(self, config: AuthConfig) -> None:
        self.config = config
        issuer = SessionIssuer(config.sessions)
        self._login = LoginFlow(config, issuer)
        self._registration = RegistrationFlow(config, issuer)
        self._password = PasswordFlow(config)
        self._logout = LogoutFlow(config.sessions)

    @property
    def passwordless(self) -> bool:
        return self.config.passwordless

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str, password: str, ctx: ClientContext) -> TokenResult:
        return self._login.login_with_password(email, password, ctx)

    def request_login_code(self, email: str, ctx: ClientContext) -> MessageResult:
        return self._login.request_code(email, ctx)

    def verify_login_code(self, code: str, ctx: ClientContext) -> TokenResult:
        return self._login.verify_code(code, ctx)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, first_name: str, last_name: str, email: str, password: str, ctx: ClientContext) -> MessageResult:
        return self._registration.register(first_name, last_name, email, password, ctx)

    def verify_registration_code(self, code: str, ctx: ClientContext) -> TokenResult:
        return self._registration.verify_code(code, ctx)

    # ------------------------------------------------------------------
    # Password restore / reset
    # ------------------------------------------------------------------

    def restore_password(self, email: str, first_name: str, last_name: str, ctx: ClientContext) -> MessageResult:
        return self._password.restore(email, first_name, last_name, ctx)

    def reset_password(self, token: str, password: str, password_confirm: str, ctx: ClientContext) -> TokenResult:
        return self._password.reset(token, password, password_confirm, ctx)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def logout(self, token: str, ctx: ClientContext) -> MessageResult:
        return self._logout.logout(token, ctx)

    def authenticate(self, token: str, ctx: ClientContext) -> AuthenticatedUser:
        """Resolve a presented session token to the user it belongs to.

        Raises an authentication AuthError with "auth token is required" for a
        missing token or a failed lookup, and "user id is required" when the
        token resolves to nobody.
        """
        if not token:
            raise unauthenticated(MSG_TOKEN_REQUIRED)
        try:
            user_id = self.config.sessions.find_user_by_token(token, ctx)
        except Exception as exc:
            raise unauthenticated(MSG_TOKEN_REQUIRED, exc) from exc
        if not user_id:
            raise unauthenticated(MSG_USER_ID_REQUIRED)
        return AuthenticatedUser(user_id=user_id, token=token)

    # ------------------------------------------------------------------
    # Request guards
    # ------------------------------------------------------------------

    def check_rate_limit(self, ip: str, endpoint: str) -> RateLimitDecision:
        """Ask the configured limiter whether ip may call endpoint.

        Fails open: a limiter that raises is logged and the request allowed,
        so a broken counter store cannot lock every user out.
        """
        limiter = self.config.rate_limiter
        if self.config.disable_rate_limit or limiter is None:
            return RateLimitDecision(allowed=True)
        try:
            return limiter.check(ip, endpoint)
        except Exception:
            logger.warning("Rate limiter failed for %s on %s; allowing request", ip, endpoint, exc_info=True)
            return RateLimitDecision(allowed=True)

    @property
    def csrf_enabled(self) -> bool:
        return self.config.csrf is not None

    def issue_csrf_token(self) -> str:
        if self.config.csrf is None:
            return ""
        return self.config.csrf.issue()

    def validate_csrf(self, token: str) -> bool:
        """True when CSRF protection is off or the token verifies."""
        if self.config.csrf is None:
            return True
        return self.config.csrf.validate(token)


# ---------------------------------------------------------------------------
# Wiring from Settings
# ---------------------------------------------------------------------------


def password_policy_from_settings(settings: Settings) -> PasswordPolicy:
    return PasswordPolicy(
        min_length=settings.password_min_length,
        require_uppercase=settings.password_require_uppercase,
        require_lowercase=settings.password_require_lowercase,
        require_digit=settings.password_require_digit,
        require_special=settings.password_require_special,
        forbid_common_words=settings.password_forbid_common_words,
    )


def build_auth_service(
    settings: Settings,
    users: UserStore,
    keys: TemporaryKeyStore,
    notifier: Notifier,
) -> AuthService:
    """Assemble an AuthService from application settings and concrete stores.

    users serves as user directory and session store for both strategies.
    An empty CSRF_SECRET falls back to SECRET_KEY.
    """
    builder = (
        AuthConfigBuilder()
        .endpoint(settings.auth_endpoint)
        .redirect_on_success(settings.redirect_on_success)
        .temporary_keys(keys)
        .sessions(users)
        .notifier(notifier)
        .templates(DefaultEmailTemplates(code_ttl_seconds=settings.code_ttl_seconds))
        .registration(settings.enable_registration)
        .transport(settings.use_cookies, settings.use_local_storage)
        .rate_limit(
            disabled=settings.disable_rate_limit,
            max_attempts=settings.max_login_attempts,
            window_seconds=settings.rate_limit_window_seconds,
            lockout_seconds=settings.lockout_seconds,
            storage_uri=settings.rate_limit_storage_uri,
        )
        .csrf(settings.enable_csrf, secret=settings.csrf_secret or settings.secret_key)
        .ttl(code_seconds=settings.code_ttl_seconds, reset_seconds=settings.reset_ttl_seconds)
    )
    if settings.auth_strategy == "passwordless":
        builder.passwordless_strategy(users)
    else:
        builder.password_strategy(
            users,
            enable_verification=settings.enable_verification,
            password_policy=password_policy_from_settings(settings),
        )

    config = builder.build()
    logger.info(
        "Auth configured (strategy=%s, registration=%s, verification=%s, rate_limit=%s, csrf=%s)",
        settings.auth_strategy,
        settings.enable_registration,
        settings.enable_verification,
        not settings.disable_rate_limit,
        settings.enable_csrf,
    )
    return AuthService(config)
