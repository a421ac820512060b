"""
api/routes/v1/users.py -- User management routes. SuperAdmin only (enforced
in services/user_service.py).

Routes:
  GET    /users             -- list, filter by role / department_id
  POST   /users             -- create
  GET    /users/{user_id}   -- detail
  PUT    /users/{user_id}   -- update (role, department, username, password)
  DELETE /users/{user_id}   -- delete; deleting your own account is refused
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Request, Response

from api.models import UserListResponse, UserResponse
from api.params import IdFilter, UserId
from auth.dependencies import get_request_context
from auth.models import RequestContext, User
from services.registry import Services

router = APIRouter()


def _render(services: Services, user: User) -> UserResponse:
    names = services.departments.department_names([user.department_id])
    return UserResponse.from_user(user, names.get(user.department_id))


@router.get("/users", response_model=UserListResponse)
def list_users(
    request: Request,
    role: Optional[str] = None,
    department_id: IdFilter = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    ctx: RequestContext = Depends(get_request_context),
) -> UserListResponse:
    services: Services = request.app.state.services
    result = services.users.list_users(ctx, role=role, department_id=department_id, page=page, limit=limit)
    names = services.departments.department_names(u.department_id for u in result.items)
    return UserListResponse.from_page(result, names)


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(
    request: Request,
    body: Any = Body(...),
    ctx: RequestContext = Depends(get_request_context),
) -> UserResponse:
    services: Services = request.app.state.services
    return _render(services, services.users.create_user(ctx, body))


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(
    request: Request,
    user_id: UserId,
    ctx: RequestContext = Depends(get_request_context),
) -> UserResponse:
    services: Services = request.app.state.services
    return _render(services, services.users.get_user(ctx, user_id))


@router.put("/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: UserId,
    body: Any = Body(...),
    ctx: RequestContext = Depends(get_request_context),
) -> UserResponse:
    services: Services = request.app.state.services
    return _render(services, services.users.update_user(ctx, user_id, body))


@router.delete("/users/{user_id}", status_code=204)
def delete_user(
    request: Request,
    user_id: UserId,
    ctx: RequestContext = Depends(get_request_context),
) -> Response:
    services: Services = request.app.state.services
    services.users.delete_user(ctx, user_id)
    return Response(status_code=204)
