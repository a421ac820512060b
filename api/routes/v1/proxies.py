"""
api/routes/v1/proxies.py -- Proxy inventory routes.

Routes:
  GET    /proxies               -- filtered, paginated listing
  POST   /proxies               -- create (managers: always in their own department)
  GET    /proxies/{proxy_id}    -- detail
  PUT    /proxies/{proxy_id}    -- partial update
  DELETE /proxies/{proxy_id}    -- delete
  POST   /proxies/{proxy_id}/assign -- move to another department (SuperAdmin)

Handlers only translate HTTP to service calls. Role and department checks,
body validation and auditing all happen in services/proxy_service.py.
Bodies are taken as raw JSON so that a caller who may not perform the action
gets 403 before any validation error.
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Request, Response

from api.models import ProxyListResponse, ProxyResponse
from api.params import IdFilter, ProxyId
from auth.dependencies import get_request_context
from auth.models import RequestContext
from inventory.models import ProxyRecord
from services.registry import Services

router = APIRouter()


def _services(request: Request) -> Services:
    return request.app.state.services


def _render(request: Request, proxy: ProxyRecord) -> ProxyResponse:
    names = _services(request).departments.department_names([proxy.department_id])
    return ProxyResponse.from_record(proxy, names.get(proxy.department_id))


@router.get("/proxies", response_model=ProxyListResponse)
def list_proxies(
    request: Request,
    status: Optional[str] = None,
    protocol: Optional[str] = None,
    department_id: IdFilter = None,
    location: Optional[str] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    ctx: RequestContext = Depends(get_request_context),
) -> ProxyListResponse:
    result = _services(request).proxies.list_proxies(
        ctx,
        status=status,
        protocol=protocol,
        department_id=department_id,
        location=location,
        page=page,
        limit=limit,
    )
    names = _services(request).departments.department_names(p.department_id for p in result.items)
    return ProxyListResponse.from_page(result, names)


@router.post("/proxies", response_model=ProxyResponse, status_code=201)
def create_proxy(
    request: Request,
    body: Any = Body(...),
    ctx: RequestContext = Depends(get_request_context),
) -> ProxyResponse:
    return _render(request, _services(request).proxies.create_proxy(ctx, body))


@router.get("/proxies/{proxy_id}", response_model=ProxyResponse)
def get_proxy(
    request: Request,
    proxy_id: ProxyId,
    ctx: RequestContext = Depends(get_request_context),
) -> ProxyResponse:
    return _render(request, _services(request).proxies.get_proxy(ctx, proxy_id))


@router.put("/proxies/{proxy_id}", response_model=ProxyResponse)
def update_proxy(
    request: Request,
    proxy_id: ProxyId,
    body: Any = Body(...),
    ctx: RequestContext = Depends(get_request_context),
) -> ProxyResponse:
    return _render(request, _services(request).proxies.update_proxy(ctx, proxy_id, body))


@router.delete("/proxies/{proxy_id}", status_code=204)
def delete_proxy(
    request: Request,
    proxy_id: ProxyId,
    ctx: RequestContext = Depends(get_request_context),
) -> Response:
    _services(request).proxies.delete_proxy(ctx, proxy_id)
    return Response(status_code=204)


@router.post("/proxies/{proxy_id}/assign", response_model=ProxyResponse)
def assign_proxy(
    request: Request,
    proxy_id: ProxyId,
    body: Any = Body(...),
    ctx: RequestContext = Depends(get_request_context),
) -> ProxyResponse:
    """Reassign a proxy to another department. SuperAdmin only."""
    return _render(request, _services(request).proxies.assign_proxy(ctx, proxy_id, body))
