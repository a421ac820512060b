"""
services/schemas.py -- Pydantic v2 models for validating request bodies.

The services validate raw bodies against these after authorization (see
services/common.parse_body). Both snake_case and the camelCase keys the UI
sends are accepted for multi-word fields.

Response shapes live in api/models.py; these are input-only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StringConstraints, model_validator

from auth.models import Role
from inventory.models import Protocol, ProxyStatus

_DEPARTMENT_ID = AliasChoices("department_id", "departmentId")
_EXPIRES_AT = AliasChoices("expires_at", "expiresAt", "expirationDate")

# Largest value an SQLite INTEGER column holds.
ID_MAX = 2**63 - 1

# bcrypt reads at most 72 bytes.
_PASSWORD_MAX = 72

# Secrets are stored exactly as sent; str_strip_whitespace does not apply.
AccountPassword = Annotated[str, StringConstraints(strip_whitespace=False, min_length=8, max_length=_PASSWORD_MAX)]
UpstreamPassword = Annotated[str, StringConstraints(strip_whitespace=False, max_length=255)]


# ---------------------------------------------------------------------------
# Proxies
# ---------------------------------------------------------------------------


class ProxyCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    address: str = Field(min_length=1, max_length=255, validation_alias=AliasChoices("address", "ipAddress"))
    port: int = Field(ge=1, le=65535)
    protocol: Protocol
    username: Optional[str] = Field(default=None, max_length=255)
    password: Optional[UpstreamPassword] = None
    location: Optional[str] = Field(default=None, max_length=255)
    speed: Optional[float] = Field(default=None, ge=0)
    status: ProxyStatus = ProxyStatus.ACTIVE
    department_id: Optional[int] = Field(default=None, ge=1, le=ID_MAX, validation_alias=_DEPARTMENT_ID)
    expires_at: Optional[datetime] = Field(default=None, validation_alias=_EXPIRES_AT)


class ProxyUpdate(BaseModel):
    """Partial update. Only keys present in the body are applied.

    department_id is not accepted here: moving a proxy between departments is
    the separate ASSIGN operation. An unknown key is ignored.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    address: Optional[str] = Field(default=None, min_length=1, max_length=255, validation_alias=AliasChoices("address", "ipAddress"))
    port: Optional[int] = Field(default=None, ge=1, le=65535)
    protocol: Optional[Protocol] = None
    username: Optional[str] = Field(default=None, max_length=255)
    password: Optional[UpstreamPassword] = None
    location: Optional[str] = Field(default=None, max_length=255)
    speed: Optional[float] = Field(default=None, ge=0)
    status: Optional[ProxyStatus] = None
    expires_at: Optional[datetime] = Field(default=None, validation_alias=_EXPIRES_AT)

    @model_validator(mode="after")
    def required_fields_not_null(self) -> "ProxyUpdate":
        for name in ("address", "port", "protocol", "status"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class ProxyAssign(BaseModel):
    department_id: int = Field(ge=1, le=ID_MAX, validation_alias=_DEPARTMENT_ID)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=255)
    password: AccountPassword
    role: Role
    department_id: Optional[int] = Field(default=None, ge=1, le=ID_MAX, validation_alias=_DEPARTMENT_ID)


class UserUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    username: Optional[str] = Field(default=None, min_length=1, max_length=255)
    password: Optional[AccountPassword] = None
    role: Optional[Role] = None
    department_id: Optional[int] = Field(default=None, ge=1, le=ID_MAX, validation_alias=_DEPARTMENT_ID)

    @model_validator(mode="after")
    def required_fields_not_null(self) -> "UserUpdate":
        for name in ("username", "password", "role"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


# ---------------------------------------------------------------------------
# Departments
# ---------------------------------------------------------------------------


class DepartmentCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)


class DepartmentUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def name_not_null(self) -> "DepartmentUpdate":
        if "name" in self.model_fields_set and self.name is None:
            raise ValueError("name cannot be null")
        return self
