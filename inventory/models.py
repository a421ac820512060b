"""
inventory/models.py -- Domain dataclasses for departments and proxy records.

These are pure data containers with zero logic. Business rules (uniqueness,
department scoping, dependents on delete) live in services/; persistence
lives in inventory/store.py.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Protocol(str, Enum):
    HTTP = "HTTP"
    HTTPS = "HTTPS"
    SOCKS4 = "SOCKS4"
    SOCKS5 = "SOCKS5"


class ProxyStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    BANNED = "Banned"


@dataclass
class Department:
    """An organizational unit. Users and proxies point at it by id.

    id is None before the record is written to the database.
    """

    name: str
    description: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert


@dataclass
class ProxyRecord:
    """A registered proxy endpoint.

    (address, port) is unique across the whole inventory, not per department.
    password is the upstream proxy credential, kept so the proxy stays usable;
    it is never part of an API response or an audit snapshot.

    id is None before the record is written to the database.
    """

    address: str
    port: int
    protocol: Protocol
    department_id: int
    status: ProxyStatus = ProxyStatus.ACTIVE
    username: Optional[str] = None
    password: Optional[str] = None
    location: Optional[str] = None
    speed: Optional[float] = None
    expires_at: Optional[str] = None  # ISO 8601
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
