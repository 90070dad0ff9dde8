"""
API request and response models for the Gatehouse REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in core/models.py, which
own the flow results. Route handlers map between the two.

Request fields default to "" rather than being required: an absent field must
reach the flow so the client gets the flow's exact validation message
("Email is required field", ...) instead of a generic 422. Only length caps
are enforced here.

Separation of concerns: core/ models = domain truth; api/ models = API contract.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_SHORT = 255
_CODE = 64
_TOKEN = 512


class _Request(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(_Request):
    """Body for POST /auth/login.

    Password strategy: email + password. Passwordless: email only; a login
    code is emailed instead of a session being issued.
    """

    email: str = Field(default="", max_length=_SHORT)
    password: str = Field(default="", max_length=_SHORT)
    csrf_token: str = Field(default="", max_length=_TOKEN)


class CodeVerifyRequest(_Request):
    """Body for POST /auth/login-code-verify and /auth/register-code-verify."""

    verification_code: str = Field(default="", max_length=_CODE)


class RegisterRequest(_Request):
    first_name: str = Field(default="", max_length=_SHORT)
    last_name: str = Field(default="", max_length=_SHORT)
    email: str = Field(default="", max_length=_SHORT)
    password: str = Field(default="", max_length=_SHORT)
    csrf_token: str = Field(default="", max_length=_TOKEN)


class PasswordRestoreRequest(_Request):
    email: str = Field(default="", max_length=_SHORT)
    first_name: str = Field(default="", max_length=_SHORT)
    last_name: str = Field(default="", max_length=_SHORT)


class PasswordResetRequest(_Request):
    token: str = Field(default="", max_length=_TOKEN)
    password: str = Field(default="", max_length=_SHORT)
    password_confirm: str = Field(default="", max_length=_SHORT)
    csrf_token: str = Field(default="", max_length=_TOKEN)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SuccessResponse(BaseModel):
    """Envelope for every successful auth operation."""

    model_config = ConfigDict(frozen=True)

    status: str = "success"
    message: str
    data: Optional[dict[str, Any]] = None


class MeResponse(BaseModel):
    """Response for GET /auth/me."""

    model_config = ConfigDict(frozen=True)

    user_id: str


class CsrfTokenResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    csrf_token: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
