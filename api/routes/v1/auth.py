"""
api/routes/v1/auth.py -- Session endpoints.

Routes:
  POST /api/v1/auth/login   -- password login; returns a bearer JWT
  POST /api/v1/auth/logout  -- records LOGOUT; the token stays valid until exp
  GET  /api/v1/auth/me      -- current user info (requires auth)

Security:
  POST /login is rate-limited per client IP (Settings.login_rate_limit).
  Unknown username and wrong password produce the same 401 bad_credentials.
  Cache-Control: no-store on every login response.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import ErrorResponse, LoginRequest, LoginResponse, MessageResponse, UserResponse
from auth.dependencies import get_current_user, get_origin, get_request_context
from auth.models import RequestContext, User
from core.config import get_settings
from core.errors import InvalidCredentials
from services.registry import Services

router = APIRouter()


def _render_user(services: Services, user: User) -> UserResponse:
    names = services.departments.department_names([user.department_id])
    return UserResponse.from_user(user, names.get(user.department_id))


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(get_settings().login_rate_limit)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password and issue a session token."""
    services: Services = request.app.state.services
    try:
        session = services.sessions.issue_session(body.username, body.password, get_origin(request))
    except InvalidCredentials as exc:
        resp = JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse.model_validate({"error": exc.to_dict()}).model_dump(),
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    resp = JSONResponse(
        content=LoginResponse(
            access_token=session.token,
            token_type=session.token_type,
            expires_in=session.expires_in,
            user=_render_user(services, session.user),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, ctx: RequestContext = Depends(get_request_context)) -> MessageResponse:
    """Record the logout. The client is expected to discard its token."""
    services: Services = request.app.state.services
    services.sessions.revoke_session(ctx)
    return MessageResponse(message="Logged out.")


@router.get("/auth/me", response_model=UserResponse)
def me(request: Request, current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return identity information for the currently authenticated user."""
    return _render_user(request.app.state.services, current_user)
