"""
api/routes/v1/audit.py -- Read-only view of the audit trail. SuperAdmin only.

There is no write, update or delete route for audit entries.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.models import AuditListResponse
from api.params import IdFilter
from auth.dependencies import get_request_context
from auth.models import RequestContext
from services.registry import Services

router = APIRouter()


@router.get("/audit", response_model=AuditListResponse)
def list_audit_entries(
    request: Request,
    action: Optional[str] = None,
    actor_id: IdFilter = None,
    target_id: IdFilter = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    ctx: RequestContext = Depends(get_request_context),
) -> AuditListResponse:
    """Newest entries first."""
    services: Services = request.app.state.services
    result = services.audit.list_entries(
        ctx, action=action, actor_id=actor_id, target_id=target_id, page=page, limit=limit
    )
    return AuditListResponse.from_page(result)
