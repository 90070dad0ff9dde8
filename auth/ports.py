"""
auth/ports.py -- Interfaces of the collaborators the auth flows depend on.

The flows never talk to a database, a mail server or a rate-limit counter
directly. They receive objects satisfying the Protocols below and call them
in a fixed order. Any exception a collaborator raises is treated as "that
step failed" and mapped to a typed AuthError by the flow; collaborators do
not need to know about AuthError.

Return conventions:
  - user lookups return the user id, or "" when nothing matched.
  - TemporaryKeyStore.get raises (KeyError or anything else) for a missing,
    expired or unreadable key. The flows treat all three the same way.

Every call that can reach an external system receives the ClientContext, so
an implementation can audit by ip / user agent and bound its I/O by the
context deadline.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from core.models import ClientContext


@runtime_checkable
class TemporaryKeyStore(Protocol):
    def get(self, key: str) -> str: ...

    def set(self, key: str, value: str, ttl_seconds: int) -> None: ...


@runtime_checkable
class SessionStore(Protocol):
    def find_user_by_token(self, token: str, ctx: ClientContext) -> str: ...

    def store_token(self, token: str, user_id: str, ctx: ClientContext) -> None: ...

    def logout(self, user_id: str, ctx: ClientContext) -> None: ...


@runtime_checkable
class PasswordUserDirectory(Protocol):
    def login(self, email: str, password: str, ctx: ClientContext) -> str: ...

    def register(self, email: str, password: str, first_name: str, last_name: str, ctx: ClientContext) -> None: ...

    def find_by_username(self, email: str, first_name: str, last_name: str, ctx: ClientContext) -> str: ...

    def change_password(self, user_id: str, password: str, ctx: ClientContext) -> None: ...


@runtime_checkable
class PasswordlessUserDirectory(Protocol):
    def find_by_email(self, email: str, ctx: ClientContext) -> str: ...

    def register_passwordless(self, email: str, first_name: str, last_name: str, ctx: ClientContext) -> None: ...


@runtime_checkable
class Notifier(Protocol):
    def send(self, recipient: str, subject: str, body: str, ctx: ClientContext) -> None: ...


@runtime_checkable
class EmailTemplates(Protocol):
    def login_code(self, email: str, code: str, ctx: ClientContext) -> str: ...

    def registration_code(self, email: str, code: str, ctx: ClientContext) -> str: ...

    def password_restore(self, user_id: str, link: str, ctx: ClientContext) -> str: ...


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int = 0  # seconds


@runtime_checkable
class RateLimiter(Protocol):
    def check(self, ip: str, endpoint: str) -> RateLimitDecision: ...


@runtime_checkable
class CSRFValidator(Protocol):
    def issue(self) -> str: ...

    def validate(self, token: str) -> bool: ...
