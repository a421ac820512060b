"""
services/session_service.py -- Issues and "revokes" session tokens.

issue_session() is the only unauthenticated entry point into the services.
Unknown username and wrong password fail identically (InvalidCredentials),
and authenticate_user() equalizes their timing.

revoke_session() does not invalidate anything. Tokens are stateless JWTs
that expire on their own; logout only writes the LOGOUT audit entry. A
stolen token keeps working until its exp claim passes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from audit.models import AuditAction
from audit.recorder import AuditRecorder
from auth.models import Origin, RequestContext, User
from auth.store import UserStore
from auth.tokens import authenticate_user, create_access_token
from core.config import get_settings
from core.errors import InvalidCredentials

logger = logging.getLogger("proxypanel.auth")


@dataclass(frozen=True)
class Session:
    token: str
    expires_in: int
    user: User
    token_type: str = "bearer"


class SessionService:
    def __init__(self, users: UserStore, recorder: AuditRecorder) -> None:
        self._users = users
        self._recorder = recorder

    def issue_session(self, username: str, password: str, origin: Origin) -> Session:
        user = authenticate_user(self._users, username, password)
        if user is None:
            logger.warning("Failed login for username=%r from %s", username, origin.address)
            raise InvalidCredentials()

        expires_in = get_settings().token_expire_seconds
        token = create_access_token(user.id, user.username, user.role, expire_seconds=expires_in)
        self._users.update_last_login(user.id)
        self._recorder.record_authentication(RequestContext(actor=user, origin=origin), AuditAction.LOGIN)
        return Session(token=token, expires_in=expires_in, user=user)

    def revoke_session(self, ctx: RequestContext) -> None:
        self._recorder.record_authentication(ctx, AuditAction.LOGOUT)
