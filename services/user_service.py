"""
services/user_service.py -- Identity management. Every operation is SuperAdmin-only.

Invariants kept here (the store does not know them):
  - role DepartmentManager  => department_id set and pointing at a real department
  - role SuperAdmin         => department_id is None (a supplied value is dropped)
  - a user cannot delete their own account
  - the last SuperAdmin cannot be demoted

Returned User objects still carry hashed_password; api/ and the audit
snapshots strip it before anything leaves the process.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy.exc import IntegrityError

from audit.models import AuditAction
from audit.recorder import AuditRecorder
from auth.guard import SUPER_ADMIN_ONLY, require_role
from auth.models import RequestContext, Role, User
from auth.store import UserStore
from auth.tokens import hash_password
from core.errors import ConflictError, NotFoundError, ValidationError
from inventory.store import InventoryStore
from services.common import Page, as_body, page_request, parse_body, parse_enum
from services.schemas import UserCreate, UserUpdate

logger = logging.getLogger("proxypanel.services")

_DUPLICATE_MESSAGE = "Username already exists."


class UserService:
    def __init__(self, users: UserStore, inventory: InventoryStore, recorder: AuditRecorder) -> None:
        self._users = users
        self._inventory = inventory
        self._recorder = recorder

    def list_users(
        self,
        ctx: RequestContext,
        role: str | None = None,
        department_id: int | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[User]:
        require_role(ctx.actor, SUPER_ADMIN_ONLY)
        req = page_request(page, limit)
        items, total = self._users.list_users(
            role=parse_enum(Role, role, "role"),
            department_id=department_id,
            offset=req.offset,
            limit=req.limit,
        )
        return Page(items=items, page=req.page, limit=req.limit, total=total)

    def get_user(self, ctx: RequestContext, user_id: int) -> User:
        require_role(ctx.actor, SUPER_ADMIN_ONLY)
        return self._fetch(user_id)

    def create_user(self, ctx: RequestContext, body: Mapping[str, Any]) -> User:
        require_role(ctx.actor, SUPER_ADMIN_ONLY)
        parsed = parse_body(UserCreate, as_body(body))
        department_id = self._department_for_role(parsed.role, parsed.department_id)
        if self._users.get_by_username(parsed.username) is not None:
            logger.info("Rejected duplicate username %r", parsed.username)
            raise ConflictError(_DUPLICATE_MESSAGE)

        user = User(
            username=parsed.username,
            role=parsed.role,
            hashed_password=hash_password(parsed.password),
            department_id=department_id,
        )
        try:
            user_id = self._users.create_user(user)
        except IntegrityError as exc:
            raise ConflictError(_DUPLICATE_MESSAGE) from exc

        created = self._fetch(user_id)
        self._recorder.record(ctx, AuditAction.CREATE_USER, target_id=user_id, after=created)
        return created

    def update_user(self, ctx: RequestContext, user_id: int, body: Mapping[str, Any]) -> User:
        require_role(ctx.actor, SUPER_ADMIN_ONLY)
        current = self._fetch(user_id)
        parsed = parse_body(UserUpdate, as_body(body))
        provided = parsed.model_fields_set

        role = parsed.role if "role" in provided else current.role
        requested_department = parsed.department_id if "department_id" in provided else current.department_id
        department_id = self._department_for_role(role, requested_department)

        if current.role is Role.SUPER_ADMIN and role is not Role.SUPER_ADMIN:
            if self._users.count_super_admins() <= 1:
                logger.warning("Refused to demote the last SuperAdmin user_id=%s", user_id)
                raise ValidationError("Cannot demote the last SuperAdmin.")

        changes: dict[str, Any] = {"role": role, "department_id": department_id}
        if "username" in provided and parsed.username != current.username:
            if self._users.get_by_username(parsed.username) is not None:
                logger.info("Rejected duplicate username %r", parsed.username)
                raise ConflictError(_DUPLICATE_MESSAGE)
            changes["username"] = parsed.username
        if "password" in provided:
            changes["hashed_password"] = hash_password(parsed.password)

        try:
            updated = self._users.update_user(user_id, **changes)
        except IntegrityError as exc:
            raise ConflictError(_DUPLICATE_MESSAGE) from exc
        if not updated:
            raise NotFoundError("User not found.")

        after = self._fetch(user_id)
        self._recorder.record(ctx, AuditAction.UPDATE_USER, target_id=user_id, before=current, after=after)
        return after

    def delete_user(self, ctx: RequestContext, user_id: int) -> None:
        require_role(ctx.actor, SUPER_ADMIN_ONLY)
        if user_id == ctx.actor.id:
            raise ValidationError("Cannot delete your own account.")
        current = self._fetch(user_id)

        if not self._users.delete_user(user_id):
            raise NotFoundError("User not found.")
        self._recorder.record(ctx, AuditAction.DELETE_USER, target_id=user_id, before=current)

    def _fetch(self, user_id: int) -> User:
        user = self._users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found.")
        return user

    def _department_for_role(self, role: Role, department_id: int | None) -> int | None:
        """Apply the role/department invariant; returns the department_id to store."""
        if role is Role.SUPER_ADMIN:
            return None
        if department_id is None:
            raise ValidationError("Department is required for Department Manager.")
        if self._inventory.get_department(department_id) is None:
            raise ValidationError("Department does not exist.")
        return department_id
