"""
auth/tokens.py -- Password hashing and session cookie helpers.

Security design decisions:
  Passwords: bcrypt, used directly. Its cost factor makes brute-force
       expensive. The _DUMMY_HASH constant enables timing equalization in
       UserStore.login() so response time does not reveal whether an email
       is registered.

  Session tokens are opaque random strings (core.codes) -- there is nothing
       to sign or decode here. The session store resolves them.

  Cookies: HttpOnly, SameSite=Lax, path "/". Secure only when
       SECURE_COOKIES=true (TLS deployments). Removal overwrites the value
       with "none" and an expiry in the past, so browsers drop it even if
       they ignore Max-Age.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import bcrypt

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes. The API layer caps password
    fields at 255 characters; the policy checks run on the full string.
    """
    return bcrypt.hashpw(plain.encode("utf-8")[:72], bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8")[:72], hashed.encode("utf-8"))
    except ValueError:
        return False


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("gatehouse_timing_dummy")


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------

DEFAULT_COOKIE_MAX_AGE = 2 * 60 * 60


def set_session_cookie(
    response,
    name: str,
    token: str,
    secure: bool = False,
    max_age: int = DEFAULT_COOKIE_MAX_AGE,
) -> None:
    """Write the session token as an httpOnly cookie on the response."""
    response.set_cookie(
        name,
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=max_age,
        path="/",
    )


def remove_session_cookie(response, name: str, secure: bool = False) -> None:
    """Expire the session cookie."""
    response.set_cookie(
        name,
        value="none",
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=0,
        expires=0,
        path="/",
    )
