"""
API response models for the ProxyPanel REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are separate from the dataclasses in auth/, inventory/ and audit/, which
own the internal representation. Each response model carries a from_* factory
that does the mapping, so route handlers stay thin.

Users and proxies carry department_name next to department_id; the routes
look the names up in one query per response (DepartmentService.department_names).

Secrets never cross this boundary: UserResponse has no password hash and
ProxyResponse has no proxy password, only has_credentials.

Request bodies are not modelled here. Routes accept raw JSON objects and the
services validate them (services/schemas.py) after the role and scope checks.
"""

from collections.abc import Mapping
from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from audit.models import AuditEntry
from auth.models import User
from inventory.models import Department, ProxyRecord
from services.common import Page
from services.department_service import DepartmentDetail, DepartmentSummary

# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class PaginationMeta(BaseModel):
    """Pagination block attached to every list response."""

    model_config = ConfigDict(frozen=True)

    page: int
    limit: int
    total: int
    page_count: int

    @classmethod
    def from_page(cls, page: Page) -> "PaginationMeta":
        return cls(page=page.page, limit=page.limit, total=page.total, page_count=page.page_count)


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    model_config = ConfigDict(str_strip_whitespace=True)

    # Same bounds as services/schemas.UserCreate.
    username: str = Field(min_length=1, max_length=255)
    password: Annotated[str, StringConstraints(strip_whitespace=False, min_length=1, max_length=72)]


class UserResponse(BaseModel):
    """Public view of a user account."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    role: str
    department_id: Optional[int] = None
    department_name: Optional[str] = None
    created_at: Optional[str] = None
    last_login: Optional[str] = None

    @classmethod
    def from_user(cls, user: User, department_name: Optional[str] = None) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            role=user.role.value,
            department_id=user.department_id,
            department_name=department_name,
            created_at=user.created_at,
            last_login=user.last_login,
        )


class LoginResponse(BaseModel):
    """Response for POST /api/v1/auth/login."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class UserListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: list[UserResponse]
    pagination: PaginationMeta

    @classmethod
    def from_page(cls, page: Page[User], department_names: Mapping[int, str]) -> "UserListResponse":
        return cls(
            data=[UserResponse.from_user(u, department_names.get(u.department_id)) for u in page.items],
            pagination=PaginationMeta.from_page(page),
        )


# ---------------------------------------------------------------------------
# Proxies
# ---------------------------------------------------------------------------


class ProxyResponse(BaseModel):
    """One proxy. The stored proxy password is never returned."""

    model_config = ConfigDict(frozen=True)

    id: int
    address: str
    port: int
    protocol: str
    status: str
    department_id: int
    department_name: Optional[str] = None
    username: Optional[str] = None
    has_credentials: bool = False
    location: Optional[str] = None
    speed: Optional[float] = None
    expires_at: Optional[str] = None
    created_at: str

    @classmethod
    def from_record(cls, proxy: ProxyRecord, department_name: Optional[str] = None) -> "ProxyResponse":
        return cls(
            id=proxy.id,
            address=proxy.address,
            port=proxy.port,
            protocol=proxy.protocol.value,
            status=proxy.status.value,
            department_id=proxy.department_id,
            department_name=department_name,
            username=proxy.username,
            has_credentials=bool(proxy.password),
            location=proxy.location,
            speed=proxy.speed,
            expires_at=proxy.expires_at,
            created_at=proxy.created_at,
        )


class ProxyListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: list[ProxyResponse]
    pagination: PaginationMeta

    @classmethod
    def from_page(cls, page: Page[ProxyRecord], department_names: Mapping[int, str]) -> "ProxyListResponse":
        return cls(
            data=[ProxyResponse.from_record(p, department_names.get(p.department_id)) for p in page.items],
            pagination=PaginationMeta.from_page(page),
        )


# ---------------------------------------------------------------------------
# Departments
# ---------------------------------------------------------------------------


class DepartmentResponse(BaseModel):
    """A department, with member counts when the caller asked for a listing."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    description: Optional[str] = None
    created_at: str
    user_count: Optional[int] = None
    proxy_count: Optional[int] = None

    @classmethod
    def from_department(cls, department: Department) -> "DepartmentResponse":
        return cls(
            id=department.id,
            name=department.name,
            description=department.description,
            created_at=department.created_at,
        )

    @classmethod
    def from_summary(cls, summary: DepartmentSummary) -> "DepartmentResponse":
        d = summary.department
        return cls(
            id=d.id,
            name=d.name,
            description=d.description,
            created_at=d.created_at,
            user_count=summary.user_count,
            proxy_count=summary.proxy_count,
        )


class DepartmentDetailResponse(DepartmentResponse):
    """GET /departments/{id}: the department plus its users and proxies."""

    users: list[UserResponse] = Field(default_factory=list)
    proxies: list[ProxyResponse] = Field(default_factory=list)

    @classmethod
    def from_detail(cls, detail: DepartmentDetail) -> "DepartmentDetailResponse":
        d = detail.department
        return cls(
            id=d.id,
            name=d.name,
            description=d.description,
            created_at=d.created_at,
            user_count=detail.user_count,
            proxy_count=detail.proxy_count,
            users=[UserResponse.from_user(u, d.name) for u in detail.users],
            proxies=[ProxyResponse.from_record(p, d.name) for p in detail.proxies],
        )


class DepartmentListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: list[DepartmentResponse]
    pagination: PaginationMeta

    @classmethod
    def from_page(cls, page: Page[DepartmentSummary]) -> "DepartmentListResponse":
        return cls(
            data=[DepartmentResponse.from_summary(s) for s in page.items],
            pagination=PaginationMeta.from_page(page),
        )


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


class AuditEntryResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    actor_id: int
    actor_name: str
    action: str
    target_id: Optional[int] = None
    before: Optional[dict[str, Any]] = None
    after: Optional[dict[str, Any]] = None
    origin_address: Optional[str] = None
    origin_agent: Optional[str] = None
    timestamp: str

    @classmethod
    def from_entry(cls, entry: AuditEntry) -> "AuditEntryResponse":
        return cls(
            id=entry.id,
            actor_id=entry.actor_id,
            actor_name=entry.actor_name,
            action=entry.action.value,
            target_id=entry.target_id,
            before=entry.before,
            after=entry.after,
            origin_address=entry.origin_address,
            origin_agent=entry.origin_agent,
            timestamp=entry.timestamp,
        )


class AuditListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: list[AuditEntryResponse]
    pagination: PaginationMeta

    @classmethod
    def from_page(cls, page: Page[AuditEntry]) -> "AuditListResponse":
        return cls(
            data=[AuditEntryResponse.from_entry(e) for e in page.items],
            pagination=PaginationMeta.from_page(page),
        )


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload.

    status_class is the coarse error kind (BadRequest, Unauthenticated,
    Forbidden, NotFound, Conflict, ServerError); code is the specific one.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    status_class: str
    message: str
    detail: Optional[Any] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
