"""
auth/logout.py -- Logout flow.

The token lookup runs even when no token was presented, so the session store
decides what an empty token means. An empty user id from a successful lookup
(unknown or orphaned token) is a no-op success: logging out twice is not an
error.
"""

from __future__ import annotations

import logging

from auth.ports import SessionStore
from core.errors import logout_failed
from core.models import ClientContext, MessageResult

logger = logging.getLogger("gatehouse.auth.logout")

MSG_LOGOUT_SUCCESS = "logout success"


class LogoutFlow:
    def __init__(self, sessions: SessionStore) -> None:
        self._sessions = sessions

    def logout(self, token: str, ctx: ClientContext) -> MessageResult:
        try:
            user_id = self._sessions.find_user_by_token(token, ctx)
        except Exception as exc:
            raise logout_failed(exc) from exc

        if not user_id:
            return MessageResult(message=MSG_LOGOUT_SUCCESS)

        try:
            self._sessions.logout(user_id, ctx)
        except Exception as exc:
            raise logout_failed(exc, user_id=user_id) from exc

        logger.info("User %s logged out", user_id)
        return MessageResult(message=MSG_LOGOUT_SUCCESS)
