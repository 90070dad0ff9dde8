"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/login                 -- password login; passwordless: email a login code
  POST /api/v1/auth/login-code-verify     -- exchange a login code for a session
  POST /api/v1/auth/register              -- register (or stage a registration behind a code)
  POST /api/v1/auth/register-code-verify  -- confirm a staged registration; starts a session
  POST /api/v1/auth/restore-password      -- email a password reset link
  POST /api/v1/auth/reset-password        -- set a new password from a reset link
  POST /api/v1/auth/logout                -- end the session
  GET  /api/v1/auth/me                    -- current user (requires auth)
  GET  /api/v1/auth/csrf                  -- issue a CSRF token (when CSRF protection is on)

Handlers are thin: build the ClientContext, apply the request guards, call
one AuthService method, shape the response. Flow failures are AuthError and
propagate to the exception handler in api/main.py, which logs them and
renders the error envelope.

Security:
  Attempt limiting (auth.ratelimit) guards login, register and both code
  verifications per client IP + endpoint; 429 carries Retry-After.
  CSRF (when enabled) guards login, register and reset-password; 403 on a
  bad token, checked before the attempt limiter counts the request.
  Cache-Control: no-store on every response -- they carry tokens.
  Session cookies are only written for new sessions, never for the reset
  token echoed back by reset-password.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, request_rate_limit
from api.models import (
    CodeVerifyRequest,
    CsrfTokenResponse,
    ErrorDetail,
    ErrorResponse,
    LoginRequest,
    MeResponse,
    PasswordResetRequest,
    PasswordRestoreRequest,
    RegisterRequest,
    SuccessResponse,
)
from auth.csrf import MSG_INVALID_CSRF
from auth.dependencies import client_context, get_auth_service, get_current_user, request_token
from auth.ratelimit import MSG_TOO_MANY_REQUESTS
from auth.service import (
    ENDPOINT_LOGIN,
    ENDPOINT_LOGIN_CODE_VERIFY,
    ENDPOINT_REGISTER,
    ENDPOINT_REGISTER_CODE_VERIFY,
)
from auth.tokens import remove_session_cookie, set_session_cookie
from core.models import AuthenticatedUser, MessageResult, TokenResult

# Auth policy:
# - every POST route is public -- these are the routes that create sessions
# - GET /api/v1/auth/me requires auth (get_current_user)
# - GET /api/v1/auth/csrf is public
router = APIRouter()


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------


def _respond(status_code: int, content: dict) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=content)
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _message(result: MessageResult) -> JSONResponse:
    return _respond(200, SuccessResponse(message=result.message).model_dump())


def _session(request: Request, result: TokenResult) -> JSONResponse:
    """Respond with a newly issued session token; set the cookie when cookies are the transport."""
    service = get_auth_service(request)
    settings = request.app.state.settings
    resp = _respond(
        200,
        SuccessResponse(
            message=result.message,
            data={"token": result.token, "redirect_url": service.config.redirect_on_success},
        ).model_dump(),
    )
    if service.config.use_cookies:
        set_session_cookie(
            resp,
            settings.cookie_name,
            result.token,
            secure=settings.secure_cookies,
            max_age=settings.session_expire_seconds,
        )
    return resp


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return _respond(status_code, ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump())


# ---------------------------------------------------------------------------
# Request guards
# ---------------------------------------------------------------------------


def _rate_limited(request: Request, endpoint: str) -> JSONResponse | None:
    """Return a 429 response when the client is over its attempt budget, else None."""
    decision = get_auth_service(request).check_rate_limit(client_context(request).ip, endpoint)
    if decision.allowed:
        return None
    resp = _error(429, "rate_limited", MSG_TOO_MANY_REQUESTS)
    resp.headers["Retry-After"] = str(decision.retry_after)
    return resp


def _csrf_rejected(request: Request, body_token: str) -> JSONResponse | None:
    service = get_auth_service(request)
    if not service.csrf_enabled:
        return None
    token = request.headers.get("X-CSRF-Token", "") or body_token
    if service.validate_csrf(token):
        return None
    return _error(403, "csrf_invalid", MSG_INVALID_CSRF)


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


@limiter.limit(request_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login")
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Password strategy: check credentials and start a session.

    Passwordless strategy: email a one-time login code; the session starts at
    /auth/login-code-verify.
    """
    rejected = _csrf_rejected(request, body.csrf_token)
    if rejected is not None:
        return rejected
    blocked = _rate_limited(request, ENDPOINT_LOGIN)
    if blocked is not None:
        return blocked

    service = get_auth_service(request)
    ctx = client_context(request)
    if service.passwordless:
        return _message(service.request_login_code(body.email, ctx))
    return _session(request, service.login(body.email, body.password, ctx))


@limiter.limit(request_rate_limit)
@router.post("/auth/login-code-verify")
def login_code_verify(request: Request, body: CodeVerifyRequest) -> JSONResponse:
    """Exchange an emailed login code for a session."""
    blocked = _rate_limited(request, ENDPOINT_LOGIN_CODE_VERIFY)
    if blocked is not None:
        return blocked

    service = get_auth_service(request)
    return _session(request, service.verify_login_code(body.verification_code, client_context(request)))


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


@limiter.limit(request_rate_limit)
@router.post("/auth/register")
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account, or stage it behind an emailed registration code."""
    rejected = _csrf_rejected(request, body.csrf_token)
    if rejected is not None:
        return rejected
    blocked = _rate_limited(request, ENDPOINT_REGISTER)
    if blocked is not None:
        return blocked

    service = get_auth_service(request)
    result = service.register(body.first_name, body.last_name, body.email, body.password, client_context(request))
    return _message(result)


@limiter.limit(request_rate_limit)
@router.post("/auth/register-code-verify")
def register_code_verify(request: Request, body: CodeVerifyRequest) -> JSONResponse:
    """Confirm a staged registration and start a session for the new account."""
    blocked = _rate_limited(request, ENDPOINT_REGISTER_CODE_VERIFY)
    if blocked is not None:
        return blocked

    service = get_auth_service(request)
    return _session(request, service.verify_registration_code(body.verification_code, client_context(request)))


# ---------------------------------------------------------------------------
# Password restore / reset
# ---------------------------------------------------------------------------


@limiter.limit(request_rate_limit)
@router.post("/auth/restore-password")
def restore_password(request: Request, body: PasswordRestoreRequest) -> JSONResponse:
    service = get_auth_service(request)
    result = service.restore_password(body.email, body.first_name, body.last_name, client_context(request))
    return _message(result)


@limiter.limit(request_rate_limit)
@router.post("/auth/reset-password")
def reset_password(request: Request, body: PasswordResetRequest) -> JSONResponse:
    """Set a new password. Echoes the reset token back; no session is started."""
    rejected = _csrf_rejected(request, body.csrf_token)
    if rejected is not None:
        return rejected

    service = get_auth_service(request)
    result = service.reset_password(body.token, body.password, body.password_confirm, client_context(request))
    return _respond(200, SuccessResponse(message=result.message, data={"token": result.token}).model_dump())


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@router.post("/auth/logout")
def logout(request: Request) -> JSONResponse:
    """Invalidate the presented session and clear the cookie."""
    service = get_auth_service(request)
    result = service.logout(request_token(request), client_context(request))
    resp = _message(result)
    if service.config.use_cookies:
        settings = request.app.state.settings
        remove_session_cookie(resp, settings.cookie_name, secure=settings.secure_cookies)
    return resp


@router.get("/auth/me", response_model=MeResponse)
def me(current_user: AuthenticatedUser = Depends(get_current_user)) -> MeResponse:
    """Return the id of the currently authenticated user."""
    return MeResponse(user_id=current_user.user_id)


@router.get("/auth/csrf", response_model=CsrfTokenResponse)
def csrf_token(request: Request) -> CsrfTokenResponse:
    """Issue a CSRF token for the login, register and reset-password forms."""
    service = get_auth_service(request)
    if not service.csrf_enabled:
        raise HTTPException(
            status_code=404,
            detail={"code": "csrf_disabled", "message": "CSRF protection is not enabled."},
        )
    return CsrfTokenResponse(csrf_token=service.issue_csrf_token())
