"""
api/routes/v1/departments.py -- Department routes. SuperAdmin only.

Routes:
  GET    /departments                   -- list with user/proxy counts
  POST   /departments                   -- create
  GET    /departments/{department_id}   -- detail with members and proxies
  PUT    /departments/{department_id}   -- rename / describe
  DELETE /departments/{department_id}   -- 400 dependency_conflict while in use
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Request, Response

from api.models import DepartmentDetailResponse, DepartmentListResponse, DepartmentResponse
from api.params import DepartmentId
from auth.dependencies import get_request_context
from auth.models import RequestContext
from services.registry import Services

router = APIRouter()


@router.get("/departments", response_model=DepartmentListResponse)
def list_departments(
    request: Request,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    ctx: RequestContext = Depends(get_request_context),
) -> DepartmentListResponse:
    services: Services = request.app.state.services
    return DepartmentListResponse.from_page(services.departments.list_departments(ctx, page=page, limit=limit))


@router.post("/departments", response_model=DepartmentResponse, status_code=201)
def create_department(
    request: Request,
    body: Any = Body(...),
    ctx: RequestContext = Depends(get_request_context),
) -> DepartmentResponse:
    services: Services = request.app.state.services
    return DepartmentResponse.from_department(services.departments.create_department(ctx, body))


@router.get("/departments/{department_id}", response_model=DepartmentDetailResponse)
def get_department(
    request: Request,
    department_id: DepartmentId,
    ctx: RequestContext = Depends(get_request_context),
) -> DepartmentDetailResponse:
    services: Services = request.app.state.services
    return DepartmentDetailResponse.from_detail(services.departments.get_department(ctx, department_id))


@router.put("/departments/{department_id}", response_model=DepartmentResponse)
def update_department(
    request: Request,
    department_id: DepartmentId,
    body: Any = Body(...),
    ctx: RequestContext = Depends(get_request_context),
) -> DepartmentResponse:
    services: Services = request.app.state.services
    return DepartmentResponse.from_department(services.departments.update_department(ctx, department_id, body))


@router.delete("/departments/{department_id}", status_code=204)
def delete_department(
    request: Request,
    department_id: DepartmentId,
    ctx: RequestContext = Depends(get_request_context),
) -> Response:
    services: Services = request.app.state.services
    services.departments.delete_department(ctx, department_id)
    return Response(status_code=204)
