"""
services/common.py -- Helpers shared by the resource services.

Request bodies reach the services as untyped mappings. They are validated
here, inside the service, after the role and scope checks have run. An
unauthorized caller learns nothing about what a valid body looks like, and a
malformed body from an authorized caller is a 400, not a 422.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from core.config import get_settings
from core.errors import ValidationError

M = TypeVar("M", bound=BaseModel)
T = TypeVar("T")
E = TypeVar("E", bound=Enum)


@dataclass
class Page(Generic[T]):
    """One page of a listing plus the metadata the API returns with it."""

    items: list[T]
    page: int
    limit: int
    total: int

    @property
    def page_count(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0


@dataclass(frozen=True)
class PageRequest:
    page: int
    limit: int
    offset: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "offset", (self.page - 1) * self.limit)


def page_request(page: int | None, limit: int | None) -> PageRequest:
    """Validate page/limit query values. page is 1-based."""
    settings = get_settings()
    page = 1 if page is None else page
    limit = settings.default_page_size if limit is None else limit
    if page < 1:
        raise ValidationError("page must be 1 or greater.")
    if not 1 <= limit <= settings.max_page_size:
        raise ValidationError(f"limit must be between 1 and {settings.max_page_size}.")
    return PageRequest(page=page, limit=limit)


def as_body(body: Any) -> dict[str, Any]:
    """Copy a request body into a plain dict, rejecting non-object bodies."""
    if not isinstance(body, Mapping):
        raise ValidationError("Request body must be a JSON object.")
    return dict(body)


def parse_body(model: type[M], data: Mapping[str, Any]) -> M:
    """Validate data against model, mapping pydantic failures to ValidationError.

    detail lists each failing field so the UI can highlight it.
    """
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        problems = [
            {"field": ".".join(str(part) for part in err["loc"]) or "body", "message": err["msg"]}
            for err in exc.errors()
        ]
        summary = "; ".join(f"{p['field']}: {p['message']}" for p in problems)
        raise ValidationError(f"Invalid input: {summary}", detail=problems) from exc


def parse_enum(enum_cls: type[E], value: str | None, name: str) -> E | None:
    """Parse an optional query-string filter into an enum member."""
    if value is None or value == "":
        return None
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{name} must be one of: {allowed}") from exc


def to_utc_iso(value: datetime | None) -> str | None:
    """Normalize a datetime to a UTC ISO 8601 string. Naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()
