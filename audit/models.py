"""
audit/models.py -- Domain dataclasses for the audit trail.

An AuditEntry is immutable once written: the store exposes append and read
operations only. before/after are plain dict snapshots (see
audit/recorder.snapshot), already stripped of secret fields.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class AuditAction(str, Enum):
    CREATE_PROXY = "CREATE_PROXY"
    UPDATE_PROXY = "UPDATE_PROXY"
    DELETE_PROXY = "DELETE_PROXY"
    ASSIGN_PROXY = "ASSIGN_PROXY"
    CREATE_USER = "CREATE_USER"
    UPDATE_USER = "UPDATE_USER"
    DELETE_USER = "DELETE_USER"
    CREATE_DEPARTMENT = "CREATE_DEPARTMENT"
    UPDATE_DEPARTMENT = "UPDATE_DEPARTMENT"
    DELETE_DEPARTMENT = "DELETE_DEPARTMENT"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"


@dataclass(frozen=True)
class AuditEntry:
    """One who-did-what-to-what record.

    id and timestamp are None until the store has written the entry.
    """

    actor_id: int
    actor_name: str
    action: AuditAction
    target_id: int | None = None
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    origin_address: str = "unknown"
    origin_agent: str = ""
    timestamp: str | None = None  # ISO 8601, set by store on insert
    id: int | None = None
