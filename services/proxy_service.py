"""
services/proxy_service.py -- Proxy inventory operations.

Every mutating method follows the same sequence and stops at the first
failure:

  1. role check               (auth.guard.require_role)
  2. fetch + department scope (update/delete/assign only)
  3. body validation and business rules ((address, port) uniqueness,
     department exists)
  4. write
  5. audit entry              (AuditRecorder.record, always last)

Nothing is written -- neither data nor audit -- when steps 1-3 fail.

Steps 2 and 4 are separate round-trips. A concurrent delete between them
shows up as NotFoundError; a concurrent insert of the same (address, port)
shows up as the store's IntegrityError and is reported as ConflictError.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from sqlalchemy.exc import IntegrityError

from audit.models import AuditAction
from audit.recorder import AuditRecorder
from auth.guard import (
    ANY_ROLE,
    SUPER_ADMIN_ONLY,
    department_for_create,
    require_department_scope,
    require_role,
    scoped_department_filter,
)
from auth.models import RequestContext
from core.errors import ConflictError, NotFoundError, ValidationError
from inventory.models import Protocol, ProxyRecord, ProxyStatus
from inventory.store import InventoryStore
from services.common import Page, as_body, page_request, parse_body, parse_enum, to_utc_iso
from services.schemas import ProxyAssign, ProxyCreate, ProxyUpdate

logger = logging.getLogger("proxypanel.services")

_DUPLICATE_MESSAGE = "Proxy with this address and port already exists."
_DEPARTMENT_KEYS = ("department_id", "departmentId")


class ProxyService:
    def __init__(self, inventory: InventoryStore, recorder: AuditRecorder) -> None:
        self._inventory = inventory
        self._recorder = recorder

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_proxies(
        self,
        ctx: RequestContext,
        status: str | None = None,
        protocol: str | None = None,
        department_id: int | None = None,
        location: str | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[ProxyRecord]:
        """Filtered, paginated listing. Managers only ever see their own department."""
        require_role(ctx.actor, ANY_ROLE)
        req = page_request(page, limit)
        items, total = self._inventory.list_proxies(
            status=parse_enum(ProxyStatus, status, "status"),
            protocol=parse_enum(Protocol, protocol, "protocol"),
            department_id=scoped_department_filter(ctx.actor, department_id),
            location=location,
            offset=req.offset,
            limit=req.limit,
        )
        return Page(items=items, page=req.page, limit=req.limit, total=total)

    def get_proxy(self, ctx: RequestContext, proxy_id: int) -> ProxyRecord:
        require_role(ctx.actor, ANY_ROLE)
        proxy = self._fetch(proxy_id)
        require_department_scope(ctx.actor, proxy.department_id)
        return proxy

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_proxy(self, ctx: RequestContext, body: Mapping[str, Any]) -> ProxyRecord:
        require_role(ctx.actor, ANY_ROLE)
        data = as_body(body)
        requested = next((data.pop(k) for k in _DEPARTMENT_KEYS if k in data), None)
        data["department_id"] = department_for_create(ctx.actor, requested)

        parsed = parse_body(ProxyCreate, data)
        if parsed.department_id is None:
            raise ValidationError("Department is required.")
        self._require_department(parsed.department_id)
        self._require_free_endpoint(parsed.address, parsed.port)

        proxy = ProxyRecord(
            address=parsed.address,
            port=parsed.port,
            protocol=parsed.protocol,
            department_id=parsed.department_id,
            status=parsed.status,
            username=parsed.username,
            password=parsed.password,
            location=parsed.location,
            speed=parsed.speed,
            expires_at=to_utc_iso(parsed.expires_at),
        )
        try:
            proxy_id = self._inventory.create_proxy(proxy)
        except IntegrityError as exc:
            raise ConflictError(_DUPLICATE_MESSAGE) from exc

        created = self._fetch(proxy_id)
        self._recorder.record(ctx, AuditAction.CREATE_PROXY, target_id=proxy_id, after=created)
        return created

    def update_proxy(self, ctx: RequestContext, proxy_id: int, body: Mapping[str, Any]) -> ProxyRecord:
        require_role(ctx.actor, ANY_ROLE)
        current = self._fetch(proxy_id)
        require_department_scope(ctx.actor, current.department_id)

        parsed = parse_body(ProxyUpdate, as_body(body))
        changes = parsed.model_dump(exclude_unset=True)
        if "expires_at" in changes:
            changes["expires_at"] = to_utc_iso(parsed.expires_at)

        merged = replace(current, **changes)
        if (merged.address, merged.port) != (current.address, current.port):
            self._require_free_endpoint(merged.address, merged.port)

        if changes:
            try:
                updated = self._inventory.update_proxy(proxy_id, **changes)
            except IntegrityError as exc:
                raise ConflictError(_DUPLICATE_MESSAGE) from exc
            if not updated:
                raise NotFoundError("Proxy not found.")

        after = self._fetch(proxy_id)
        self._recorder.record(ctx, AuditAction.UPDATE_PROXY, target_id=proxy_id, before=current, after=after)
        return after

    def delete_proxy(self, ctx: RequestContext, proxy_id: int) -> None:
        require_role(ctx.actor, ANY_ROLE)
        current = self._fetch(proxy_id)
        require_department_scope(ctx.actor, current.department_id)

        if not self._inventory.delete_proxy(proxy_id):
            raise NotFoundError("Proxy not found.")
        self._recorder.record(ctx, AuditAction.DELETE_PROXY, target_id=proxy_id, before=current)

    def assign_proxy(self, ctx: RequestContext, proxy_id: int, body: Mapping[str, Any]) -> ProxyRecord:
        """Move a proxy to another department. SuperAdmin only."""
        require_role(ctx.actor, SUPER_ADMIN_ONLY)
        current = self._fetch(proxy_id)

        parsed = parse_body(ProxyAssign, as_body(body))
        self._require_department(parsed.department_id)

        if not self._inventory.update_proxy(proxy_id, department_id=parsed.department_id):
            raise NotFoundError("Proxy not found.")
        after = self._fetch(proxy_id)
        self._recorder.record(ctx, AuditAction.ASSIGN_PROXY, target_id=proxy_id, before=current, after=after)
        return after

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fetch(self, proxy_id: int) -> ProxyRecord:
        proxy = self._inventory.get_proxy(proxy_id)
        if proxy is None:
            raise NotFoundError("Proxy not found.")
        return proxy

    def _require_department(self, department_id: int) -> None:
        if self._inventory.get_department(department_id) is None:
            logger.info("Rejected unknown department_id=%s", department_id)
            raise ValidationError("Department does not exist.")

    def _require_free_endpoint(self, address: str, port: int) -> None:
        if self._inventory.get_proxy_by_endpoint(address, port) is not None:
            logger.info("Rejected duplicate proxy endpoint %s:%d", address, port)
            raise ConflictError(_DUPLICATE_MESSAGE)
