"""
services/audit_service.py -- Read access to the audit trail. SuperAdmin-only.
"""

from __future__ import annotations

from audit.models import AuditAction, AuditEntry
from audit.store import AuditStore
from auth.guard import SUPER_ADMIN_ONLY, require_role
from auth.models import RequestContext
from services.common import Page, page_request, parse_enum


class AuditService:
    def __init__(self, store: AuditStore) -> None:
        self._store = store

    def list_entries(
        self,
        ctx: RequestContext,
        action: str | None = None,
        actor_id: int | None = None,
        target_id: int | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[AuditEntry]:
        require_role(ctx.actor, SUPER_ADMIN_ONLY)
        req = page_request(page, limit)
        items, total = self._store.list_entries(
            action=parse_enum(AuditAction, action, "action"),
            actor_id=actor_id,
            target_id=target_id,
            offset=req.offset,
            limit=req.limit,
        )
        return Page(items=items, page=req.page, limit=req.limit, total=total)
