"""
auth/strategy.py -- Strategy selection and the validated auth configuration.

Two mutually exclusive strategies exist:

  PasswordStrategy      credentials are checked by the user directory;
                        registration is single-phase unless
                        enable_verification stages it behind an emailed code;
                        password restore/reset is available.
  PasswordlessStrategy  login and registration both go through emailed
                        codes; there is no password to restore.

Each variant holds only the directory it needs, so a flow that receives a
PasswordStrategy can call login() without checking for None.

AuthConfig is immutable and only produced by AuthConfigBuilder.build(),
which fails fast with ConfigError when a required collaborator is missing.
Optional collaborators fall back to defaults at build time:
  templates     -> auth.emails.DefaultEmailTemplates
  rate_limiter  -> auth.ratelimit.AttemptRateLimiter (unless rate limiting
                   is disabled)
  csrf          -> auth.csrf.SignedCSRFValidator when CSRF is enabled
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from auth.csrf import SignedCSRFValidator
from auth.emails import DefaultEmailTemplates
from auth.ports import (
    CSRFValidator,
    EmailTemplates,
    Notifier,
    PasswordlessUserDirectory,
    PasswordUserDirectory,
    RateLimiter,
    SessionStore,
    TemporaryKeyStore,
)
from auth.ratelimit import AttemptRateLimiter
from core.codes import CodePolicy
from core.errors import ConfigError
from core.validation import PasswordPolicy

DEFAULT_CODE_TTL_SECONDS = 3600
DEFAULT_RESET_TTL_SECONDS = 3600

PATH_PASSWORD_RESET = "password-reset"


@dataclass(frozen=True)
class PasswordStrategy:
    users: PasswordUserDirectory
    enable_verification: bool = False
    password_policy: PasswordPolicy = field(default_factory=PasswordPolicy)


@dataclass(frozen=True)
class PasswordlessStrategy:
    users: PasswordlessUserDirectory


Strategy = Union[PasswordStrategy, PasswordlessStrategy]


def join_link(endpoint: str, path: str) -> str:
    if endpoint.endswith("/"):
        return endpoint + path
    return endpoint + "/" + path


@dataclass(frozen=True)
class AuthConfig:
    endpoint: str
    redirect_on_success: str
    strategy: Strategy
    keys: TemporaryKeyStore
    sessions: SessionStore
    notifier: Notifier
    templates: EmailTemplates
    enable_registration: bool = True
    use_cookies: bool = True
    use_local_storage: bool = False
    disable_rate_limit: bool = False
    rate_limiter: RateLimiter | None = None
    csrf: CSRFValidator | None = None
    code_ttl_seconds: int = DEFAULT_CODE_TTL_SECONDS
    reset_ttl_seconds: int = DEFAULT_RESET_TTL_SECONDS

    @property
    def passwordless(self) -> bool:
        return isinstance(self.strategy, PasswordlessStrategy)

    @property
    def code_policy(self) -> CodePolicy:
        return CodePolicy.for_mode(hardened=self.disable_rate_limit)

    def link(self, path: str) -> str:
        return join_link(self.endpoint, path)

    def password_reset_link(self, token: str) -> str:
        return self.link(PATH_PASSWORD_RESET) + "?t=" + token


class AuthConfigBuilder:
    """Assemble an AuthConfig step by step, then validate it once in build().

    Usage:
        config = (
            AuthConfigBuilder()
            .endpoint("/auth")
            .redirect_on_success("/dashboard")
            .password_strategy(user_store, enable_verification=True)
            .temporary_keys(key_store)
            .sessions(user_store)
            .notifier(mailer)
            .build()
        )
    """

    def __init__(self) -> None:
        self._endpoint = ""
        self._redirect_on_success = ""
        self._strategy: Strategy | None = None
        self._keys: TemporaryKeyStore | None = None
        self._sessions: SessionStore | None = None
        self._notifier: Notifier | None = None
        self._templates: EmailTemplates | None = None
        self._enable_registration = True
        self._use_cookies = True
        self._use_local_storage = False
        self._disable_rate_limit = False
        self._rate_limiter: RateLimiter | None = None
        self._max_login_attempts = 0
        self._window_seconds = 0
        self._lockout_seconds = 0
        self._rate_limit_storage_uri = "memory://"
        self._enable_csrf = False
        self._csrf_secret = ""
        self._csrf: CSRFValidator | None = None
        self._code_ttl_seconds = DEFAULT_CODE_TTL_SECONDS
        self._reset_ttl_seconds = DEFAULT_RESET_TTL_SECONDS

    # ------------------------------------------------------------------
    # Required
    # ------------------------------------------------------------------

    def endpoint(self, endpoint: str) -> AuthConfigBuilder:
        self._endpoint = endpoint
        return self

    def redirect_on_success(self, url: str) -> AuthConfigBuilder:
        self._redirect_on_success = url
        return self

    def password_strategy(
        self,
        users: PasswordUserDirectory,
        enable_verification: bool = False,
        password_policy: PasswordPolicy | None = None,
    ) -> AuthConfigBuilder:
        self._strategy = PasswordStrategy(
            users=users,
            enable_verification=enable_verification,
            password_policy=password_policy or PasswordPolicy(),
        )
        return self

    def passwordless_strategy(self, users: PasswordlessUserDirectory) -> AuthConfigBuilder:
        self._strategy = PasswordlessStrategy(users=users)
        return self

    def temporary_keys(self, keys: TemporaryKeyStore) -> AuthConfigBuilder:
        self._keys = keys
        return self

    def sessions(self, sessions: SessionStore) -> AuthConfigBuilder:
        self._sessions = sessions
        return self

    def notifier(self, notifier: Notifier) -> AuthConfigBuilder:
        self._notifier = notifier
        return self

    # ------------------------------------------------------------------
    # Optional
    # ------------------------------------------------------------------

    def templates(self, templates: EmailTemplates) -> AuthConfigBuilder:
        self._templates = templates
        return self

    def registration(self, enabled: bool) -> AuthConfigBuilder:
        self._enable_registration = enabled
        return self

    def transport(self, use_cookies: bool, use_local_storage: bool) -> AuthConfigBuilder:
        self._use_cookies = use_cookies
        self._use_local_storage = use_local_storage
        return self

    def rate_limit(
        self,
        disabled: bool = False,
        limiter: RateLimiter | None = None,
        max_attempts: int = 0,
        window_seconds: int = 0,
        lockout_seconds: int = 0,
        storage_uri: str = "memory://",
    ) -> AuthConfigBuilder:
        self._disable_rate_limit = disabled
        self._rate_limiter = limiter
        self._max_login_attempts = max_attempts
        self._window_seconds = window_seconds
        self._lockout_seconds = lockout_seconds
        self._rate_limit_storage_uri = storage_uri
        return self

    def csrf(self, enabled: bool, secret: str = "", validator: CSRFValidator | None = None) -> AuthConfigBuilder:
        self._enable_csrf = enabled
        self._csrf_secret = secret
        self._csrf = validator
        return self

    def ttl(self, code_seconds: int = 0, reset_seconds: int = 0) -> AuthConfigBuilder:
        self._code_ttl_seconds = code_seconds if code_seconds > 0 else DEFAULT_CODE_TTL_SECONDS
        self._reset_ttl_seconds = reset_seconds if reset_seconds > 0 else DEFAULT_RESET_TTL_SECONDS
        return self

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(self) -> AuthConfig:
        if not self._endpoint:
            raise ConfigError("auth: endpoint is required")
        if not self._redirect_on_success:
            raise ConfigError("auth: url to redirect to on success is required")
        if self._strategy is None:
            raise ConfigError("auth: strategy is required")
        if self._keys is None:
            raise ConfigError("auth: temporary key store is required")
        if self._sessions is None:
            raise ConfigError("auth: session store is required")
        if self._strategy.users is None:
            raise ConfigError("auth: user directory is required")
        if self._notifier is None:
            raise ConfigError("auth: notifier is required")
        if self._use_cookies and self._use_local_storage:
            raise ConfigError("auth: UseCookies and UseLocalStorage cannot be both true")
        if not self._use_cookies and not self._use_local_storage:
            raise ConfigError("auth: UseCookies and UseLocalStorage cannot be both false")

        csrf = self._csrf
        if self._enable_csrf and csrf is None:
            if not self._csrf_secret:
                raise ConfigError("auth: CSRF secret is required when CSRF protection is enabled")
            csrf = SignedCSRFValidator(self._csrf_secret)
        if not self._enable_csrf:
            csrf = None

        limiter = self._rate_limiter
        if self._disable_rate_limit:
            limiter = None
        elif limiter is None:
            limiter = AttemptRateLimiter(
                max_attempts=self._max_login_attempts,
                window_seconds=self._window_seconds,
                lockout_seconds=self._lockout_seconds,
                storage_uri=self._rate_limit_storage_uri,
            )

        return AuthConfig(
            endpoint=self._endpoint,
            redirect_on_success=self._redirect_on_success,
            strategy=self._strategy,
            keys=self._keys,
            sessions=self._sessions,
            notifier=self._notifier,
            templates=self._templates or DefaultEmailTemplates(code_ttl_seconds=self._code_ttl_seconds),
            enable_registration=self._enable_registration,
            use_cookies=self._use_cookies,
            use_local_storage=self._use_local_storage,
            disable_rate_limit=self._disable_rate_limit,
            rate_limiter=limiter,
            csrf=csrf,
            code_ttl_seconds=self._code_ttl_seconds,
            reset_ttl_seconds=self._reset_ttl_seconds,
        )
