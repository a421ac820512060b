"""
auth/guard.py -- The authorization decisions.

Two questions, answered as pure functions over the closed Role enum:

  authorize_role(identity, allowed_roles)
      May this caller perform this kind of action at all?

  authorize_department_scope(identity, resource_department_id)
      May this caller touch this particular resource? Only answerable after
      the resource has been fetched, so every department-scoped mutation is
      read-then-check-then-act. The window between the check and the write is
      not locked; a concurrent delete simply surfaces later as NotFound.

Both return a Decision rather than raising, so the rules are testable without
exceptions in the way. require_role() / require_department_scope() are the
raising wrappers the services use.

Denials for role and for scope raise the same ForbiddenError with the same
message -- a caller cannot tell which rule stopped them.

Layer rule: imports auth/ and core/ only.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any, assert_never

from auth.models import Role, User
from core.errors import ForbiddenError, UnauthenticatedError

logger = logging.getLogger("proxypanel.auth")


class DenyReason(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: DenyReason | None = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(True)
DENY_UNAUTHENTICATED = Decision(False, DenyReason.UNAUTHENTICATED)
DENY_FORBIDDEN = Decision(False, DenyReason.FORBIDDEN)

# Role sets used by the services.
ANY_ROLE: frozenset[Role] = frozenset(Role)
SUPER_ADMIN_ONLY: frozenset[Role] = frozenset({Role.SUPER_ADMIN})


def authorize_role(identity: User | None, allowed_roles: Iterable[Role]) -> Decision:
    if identity is None:
        return DENY_UNAUTHENTICATED
    if identity.role not in frozenset(allowed_roles):
        return DENY_FORBIDDEN
    return ALLOW


def authorize_department_scope(identity: User | None, resource_department_id: int | None) -> Decision:
    if identity is None:
        return DENY_UNAUTHENTICATED
    match identity.role:
        case Role.SUPER_ADMIN:
            return ALLOW
        case Role.DEPARTMENT_MANAGER:
            # A manager without a department (broken invariant) sees nothing.
            if identity.department_id is not None and identity.department_id == resource_department_id:
                return ALLOW
            return DENY_FORBIDDEN
        case _:
            assert_never(identity.role)


def scoped_department_filter(identity: User, requested_department_id: int | None) -> int | None:
    """Department filter to apply when listing department-scoped resources.

    SuperAdmin gets whatever they asked for (None = all departments). A
    DepartmentManager always gets their own department, whatever they asked.
    """
    match identity.role:
        case Role.SUPER_ADMIN:
            return requested_department_id
        case Role.DEPARTMENT_MANAGER:
            return identity.department_id
        case _:
            assert_never(identity.role)


def department_for_create(identity: User, requested_department_id: Any) -> Any:
    """Department a new department-scoped resource is created in.

    A DepartmentManager's requested department is ignored and replaced with
    their own; no denial, the value is coerced. Read, update and delete deny
    on mismatch instead.
    """
    match identity.role:
        case Role.SUPER_ADMIN:
            return requested_department_id
        case Role.DEPARTMENT_MANAGER:
            if requested_department_id is not None and requested_department_id != identity.department_id:
                logger.info(
                    "Overriding requested department_id=%s with own department_id=%s for user_id=%s",
                    requested_department_id,
                    identity.department_id,
                    identity.id,
                )
            return identity.department_id
        case _:
            assert_never(identity.role)


def _raise_for(decision: Decision, identity: User | None, what: str) -> None:
    if decision.allowed:
        return
    if decision.reason is DenyReason.UNAUTHENTICATED:
        raise UnauthenticatedError()
    logger.info(
        "Denied %s for user_id=%s role=%s",
        what,
        identity.id if identity else None,
        identity.role.value if identity else None,
    )
    raise ForbiddenError()


def require_role(identity: User | None, allowed_roles: Iterable[Role]) -> User:
    """Raise UnauthenticatedError / ForbiddenError unless the role check passes."""
    _raise_for(authorize_role(identity, allowed_roles), identity, "role check")
    return identity  # type: ignore[return-value]


def require_department_scope(identity: User | None, resource_department_id: int | None) -> None:
    """Raise UnauthenticatedError / ForbiddenError unless the scope check passes."""
    _raise_for(
        authorize_department_scope(identity, resource_department_id),
        identity,
        f"department scope (department_id={resource_department_id})",
    )
