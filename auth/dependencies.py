"""
auth/dependencies.py -- FastAPI Depends() helpers for request authentication.

Token sources, checked in priority order:
  1. Session cookie -- only when cookies are the configured transport.
  2. Authorization: Bearer <token> header.
  3. api_key query parameter.
  4. token query parameter.

The resolved identity is handed to routes as a typed AuthenticatedUser
through the dependency, not stashed in request state.

get_current_user() raises HTTP 401 with the reason from AuthService.authenticate().

Client context: the client IP comes from X-Forwarded-For (first entry), then
X-Real-IP, then the socket peer. Only deploy behind a proxy that overwrites
these headers -- otherwise clients can pick their own rate-limit key. Every
context carries a deadline REQUEST_TIMEOUT_SECONDS ahead; collaborators
doing I/O bound their work by it.

Layer rule: no imports from api/. This module may import from fastapi
because it is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.service import AuthService
from core.errors import AuthError
from core.models import AuthenticatedUser, ClientContext


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP", "")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else ""


def client_context(request: Request) -> ClientContext:
    """Caller identity plus a deadline of REQUEST_TIMEOUT_SECONDS from now."""
    return ClientContext.with_timeout(
        ip=client_ip(request),
        user_agent=request.headers.get("User-Agent", ""),
        timeout_seconds=request.app.state.settings.request_timeout_seconds,
    )


def retrieve_token(request: Request, use_cookies: bool, cookie_name: str) -> str:
    """Return the session token presented by the request, or ""."""
    if use_cookies:
        token = request.cookies.get(cookie_name, "")
        if token:
            return token

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token

    return request.query_params.get("api_key", "") or request.query_params.get("token", "")


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def request_token(request: Request) -> str:
    service = get_auth_service(request)
    return retrieve_token(request, service.config.use_cookies, request.app.state.settings.cookie_name)


def get_current_user(request: Request) -> AuthenticatedUser:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: AuthenticatedUser = Depends(get_current_user)): ...
    """
    try:
        return get_auth_service(request).authenticate(request_token(request), client_context(request))
    except AuthError as exc:
        raise HTTPException(
            status_code=401,
            detail={"code": exc.code.value, "message": exc.message},
        ) from exc
