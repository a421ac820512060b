"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in inventory/models.py and audit/models.py -- dataclasses own domain shape;
stores and services do the work.

Layer rule: no imports from api/, services/, inventory/, or audit/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Role(str, Enum):
    """The closed set of roles. Adding a member here forces every exhaustive
    match in auth/guard.py to be revisited (assert_never fails type checks)."""

    SUPER_ADMIN = "SuperAdmin"
    DEPARTMENT_MANAGER = "DepartmentManager"


@dataclass
class User:
    """Represents an authenticated identity in ProxyPanel.

    department_id is set iff role is DEPARTMENT_MANAGER. The user mutators
    keep that invariant; the store does not check it.

    hashed_password is a bcrypt hash and is never serialized outward --
    snapshots and API responses drop it.
    """

    username: str
    role: Role
    id: int | None = None
    hashed_password: str | None = None
    department_id: int | None = None
    created_at: str | None = None
    last_login: str | None = None


@dataclass(frozen=True)
class Origin:
    """Where a request came from, as reported by the HTTP layer."""

    address: str = "unknown"
    agent: str = ""


@dataclass(frozen=True)
class RequestContext:
    """The authenticated caller plus request origin.

    Built once per request by api/ and passed explicitly into every service
    call. There is no ambient "current user" anywhere in the code base.
    """

    actor: User
    origin: Origin = field(default_factory=Origin)
