"""
auth/sessions.py -- Session Issuer: the shared tail of every successful login.

Password login, login-code verification and registration-code verification
all finish here. The issuer mints a random token and asks the session store
to bind it to the user (the store records ip / user agent from the context
and owns the session lifetime).
"""

from __future__ import annotations

import logging

from auth.ports import SessionStore
from core.codes import new_session_token
from core.errors import code_generation_failed, token_store_failed
from core.models import ClientContext, TokenResult

logger = logging.getLogger("gatehouse.auth.sessions")

MSG_LOGIN_SUCCESS = "login success"


class SessionIssuer:
    def __init__(self, sessions: SessionStore) -> None:
        self._sessions = sessions

    def issue(self, user_id: str, ctx: ClientContext) -> TokenResult:
        try:
            token = new_session_token()
        except Exception as exc:
            raise code_generation_failed(exc, user_id=user_id) from exc

        try:
            self._sessions.store_token(token, user_id, ctx)
        except Exception as exc:
            raise token_store_failed(exc, user_id=user_id) from exc

        logger.debug("Session issued for user %s", user_id)
        return TokenResult(message=MSG_LOGIN_SUCCESS, token=token)
