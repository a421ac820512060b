"""
services/department_service.py -- Department management. SuperAdmin-only, apart from
the department_names() lookup the API uses to label users and proxies.

A department cannot be deleted while any user or proxy still points at it.
The check runs here, before the delete, and reports both counts; the store
has no foreign keys to fall back on. As with every read-then-act sequence in
the services, a user or proxy created between the count and the delete is
not caught.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.exc import IntegrityError

from audit.models import AuditAction
from audit.recorder import AuditRecorder
from auth.guard import SUPER_ADMIN_ONLY, require_role
from auth.models import RequestContext, User
from auth.store import UserStore
from core.errors import ConflictError, DependencyConflictError, NotFoundError
from inventory.models import Department, ProxyRecord
from inventory.store import InventoryStore
from services.common import Page, as_body, page_request, parse_body
from services.schemas import DepartmentCreate, DepartmentUpdate

_DUPLICATE_MESSAGE = "Department name already exists."


@dataclass
class DepartmentSummary:
    department: Department
    user_count: int
    proxy_count: int


@dataclass
class DepartmentDetail(DepartmentSummary):
    users: list[User] = field(default_factory=list)
    proxies: list[ProxyRecord] = field(default_factory=list)


class DepartmentService:
    def __init__(self, users: UserStore, inventory: InventoryStore, recorder: AuditRecorder) -> None:
        self._users = users
        self._inventory = inventory
        self._recorder = recorder

    def list_departments(
        self,
        ctx: RequestContext,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[DepartmentSummary]:
        require_role(ctx.actor, SUPER_ADMIN_ONLY)
        req = page_request(page, limit)
        departments, total = self._inventory.list_departments(offset=req.offset, limit=req.limit)
        items = [self._summarize(d) for d in departments]
        return Page(items=items, page=req.page, limit=req.limit, total=total)

    def get_department(self, ctx: RequestContext, department_id: int) -> DepartmentDetail:
        require_role(ctx.actor, SUPER_ADMIN_ONLY)
        department = self._fetch(department_id)
        users = self._users.list_by_department(department_id)
        proxies = self._inventory.list_by_department(department_id)
        return DepartmentDetail(
            department=department,
            user_count=len(users),
            proxy_count=len(proxies),
            users=users,
            proxies=proxies,
        )

    def department_names(self, department_ids: Iterable[int | None]) -> dict[int, str]:
        """Names for the departments of records the caller has already been given.

        No role check: it only labels users and proxies that another service
        call returned, so every role may use it.
        """
        return self._inventory.department_names(department_ids)

    def create_department(self, ctx: RequestContext, body: Mapping[str, Any]) -> Department:
        require_role(ctx.actor, SUPER_ADMIN_ONLY)
        parsed = parse_body(DepartmentCreate, as_body(body))
        if self._inventory.get_department_by_name(parsed.name) is not None:
            raise ConflictError(_DUPLICATE_MESSAGE)

        try:
            department_id = self._inventory.create_department(
                Department(name=parsed.name, description=parsed.description)
            )
        except IntegrityError as exc:
            raise ConflictError(_DUPLICATE_MESSAGE) from exc

        created = self._fetch(department_id)
        self._recorder.record(ctx, AuditAction.CREATE_DEPARTMENT, target_id=department_id, after=created)
        return created

    def update_department(self, ctx: RequestContext, department_id: int, body: Mapping[str, Any]) -> Department:
        require_role(ctx.actor, SUPER_ADMIN_ONLY)
        current = self._fetch(department_id)
        parsed = parse_body(DepartmentUpdate, as_body(body))
        changes = parsed.model_dump(exclude_unset=True)

        if "name" in changes and changes["name"] != current.name:
            if self._inventory.get_department_by_name(changes["name"]) is not None:
                raise ConflictError(_DUPLICATE_MESSAGE)

        if changes:
            try:
                updated = self._inventory.update_department(department_id, **changes)
            except IntegrityError as exc:
                raise ConflictError(_DUPLICATE_MESSAGE) from exc
            if not updated:
                raise NotFoundError("Department not found.")

        after = self._fetch(department_id)
        self._recorder.record(
            ctx, AuditAction.UPDATE_DEPARTMENT, target_id=department_id, before=current, after=after
        )
        return after

    def delete_department(self, ctx: RequestContext, department_id: int) -> None:
        require_role(ctx.actor, SUPER_ADMIN_ONLY)
        current = self._fetch(department_id)

        user_count = self._users.count_by_department(department_id)
        proxy_count = self._inventory.count_by_department(department_id)
        if user_count or proxy_count:
            raise DependencyConflictError(
                f"Cannot delete department. It has {user_count} users and {proxy_count} proxies assigned.",
                detail={"users": user_count, "proxies": proxy_count},
            )

        if not self._inventory.delete_department(department_id):
            raise NotFoundError("Department not found.")
        self._recorder.record(ctx, AuditAction.DELETE_DEPARTMENT, target_id=department_id, before=current)

    def _fetch(self, department_id: int) -> Department:
        department = self._inventory.get_department(department_id)
        if department is None:
            raise NotFoundError("Department not found.")
        return department

    def _summarize(self, department: Department) -> DepartmentSummary:
        return DepartmentSummary(
            department=department,
            user_count=self._users.count_by_department(department.id),
            proxy_count=self._inventory.count_by_department(department.id),
        )
