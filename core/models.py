"""
core/models.py -- Domain dataclasses passed between the auth flows and their callers.

Pattern: Data class (pure data container, minimal logic). Flows return the
result types below on success and raise core.errors.AuthError on failure, so
a caller only ever sees one of the two.

Layer rule: no imports from api/ or auth/.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ClientContext:
    """Who is calling, and until when.

    ip / user_agent are forwarded to every collaborator for auditing and rate
    limiting; the flows never interpret them. deadline is an absolute
    time.monotonic() value -- collaborators doing I/O should bound their work
    by remaining(). The flows themselves do not check it.
    """

    ip: str = ""
    user_agent: str = ""
    deadline: float | None = field(default=None, compare=False)

    @classmethod
    def with_timeout(cls, ip: str, user_agent: str, timeout_seconds: float) -> ClientContext:
        return cls(ip=ip, user_agent=user_agent, deadline=time.monotonic() + timeout_seconds)

    def remaining(self) -> float | None:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0


@dataclass(frozen=True)
class MessageResult:
    message: str


@dataclass(frozen=True)
class TokenResult:
    """Successful operation that produced a token.

    For login and code verification the token is a new session token. For
    password reset it is the reset token echoed back.
    """

    message: str
    token: str


@dataclass(frozen=True)
class AuthenticatedUser:
    """The identity attached to a request after its session token resolved."""

    user_id: str
    token: str


@dataclass(frozen=True)
class StagedRegistration:
    """Profile held in the temporary key store while a registration awaits its code.

    Serialized as a JSON object with keys email, first_name, last_name and --
    for the password strategy only -- password.
    """

    email: str
    first_name: str
    last_name: str
    password: str | None = None

    def to_json(self) -> str:
        payload: dict[str, Any] = {
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
        }
        if self.password is not None:
            payload["password"] = self.password
        return json.dumps(payload)

    @classmethod
    def from_json(cls, raw: str) -> StagedRegistration:
        """Parse a staged payload. Raises ValueError on anything malformed."""
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("staged registration must be a JSON object")
        values: dict[str, str] = {}
        for key in ("email", "first_name", "last_name"):
            value = data.get(key, "")
            if not isinstance(value, str):
                raise ValueError(f"staged registration field {key!r} must be a string")
            values[key] = value
        password = data.get("password")
        if password is not None and not isinstance(password, str):
            raise ValueError("staged registration field 'password' must be a string")
        return cls(password=password, **values)
