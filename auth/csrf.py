"""
auth/csrf.py -- Signed CSRF tokens for the registration endpoints.

We sign a random nonce with itsdangerous (HMAC) so:
- a token can't be forged without the secret
- a token expires (max_age)

The token is stateless: nothing is stored server-side, validation only checks
the signature and age. Clients fetch one from GET /api/v1/auth/csrf and echo
it back in the X-CSRF-Token header or the csrf_token body field.
"""

from __future__ import annotations

import secrets

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

DEFAULT_MAX_AGE_SECONDS = 2 * 60 * 60

MSG_INVALID_CSRF = "Invalid CSRF token"


class SignedCSRFValidator:
    def __init__(self, secret: str, max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS) -> None:
        if not secret:
            raise ValueError("CSRF secret must not be empty")
        self._serializer = URLSafeTimedSerializer(secret_key=secret, salt="gatehouse-csrf")
        self.max_age_seconds = max_age_seconds

    def issue(self) -> str:
        return self._serializer.dumps({"nonce": secrets.token_urlsafe(16)})

    def validate(self, token: str) -> bool:
        if not token:
            return False
        try:
            data = self._serializer.loads(token, max_age=self.max_age_seconds)
        except SignatureExpired:
            return False
        except BadSignature:
            return False
        return isinstance(data, dict) and "nonce" in data
