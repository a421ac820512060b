"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Callers authenticate with an `Authorization: Bearer <token>` header carrying
the JWT issued by POST /api/v1/auth/login.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises UnauthenticatedError (401).
get_request_context() wraps get_current_user() and adds the request origin;
every service call receives that context explicitly.

Role checks are NOT done here. They belong to the services (auth/guard.py),
so the same rules apply whether a service is called from a route, the CLI or
a test.

Layer rule: no imports from api/, services/, inventory/, or audit/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.models import Origin, RequestContext, User
from auth.tokens import decode_access_token
from core.errors import UnauthenticatedError

_MAX_AGENT_LENGTH = 500


def try_get_current_user(request: Request) -> User | None:
    """Attempt to authenticate the request via the Bearer header.

    Returns the authenticated User on success, None on any failure.
    The user is re-read from the store on every request so a deleted account
    stops working immediately, even though its token has not expired.
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    payload = decode_access_token(auth_header[7:])
    if payload is None:
        return None
    user_store = request.app.state.user_store
    user_id = payload.get("user_id")
    if not isinstance(user_id, int):
        return None
    return user_store.get_by_id(user_id)


def get_current_user(request: Request) -> User:
    """Require authentication. Raises UnauthenticatedError if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise UnauthenticatedError()
    return user


def get_origin(request: Request) -> Origin:
    """Client address and User-Agent, as the audit trail records them."""
    return Origin(
        address=request.client.host if request.client else "unknown",
        agent=request.headers.get("User-Agent", "")[:_MAX_AGENT_LENGTH],
    )


def get_request_context(
    request: Request,
    user: User = Depends(get_current_user),
) -> RequestContext:
    """Authenticated caller plus origin, passed by value into the services."""
    return RequestContext(actor=user, origin=get_origin(request))
