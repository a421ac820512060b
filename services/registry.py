"""
services/registry.py -- Wires stores into services.

api/main.py builds one Services bundle in its lifespan and hangs it on
app.state; tests build their own against in-memory stores.
"""

from __future__ import annotations

from dataclasses import dataclass

from audit.recorder import AuditRecorder
from audit.store import AuditStore
from auth.store import UserStore
from inventory.store import InventoryStore
from services.audit_service import AuditService
from services.department_service import DepartmentService
from services.proxy_service import ProxyService
from services.session_service import SessionService
from services.user_service import UserService


@dataclass(frozen=True)
class Services:
    sessions: SessionService
    proxies: ProxyService
    users: UserService
    departments: DepartmentService
    audit: AuditService


def build_services(user_store: UserStore, inventory: InventoryStore, audit_store: AuditStore) -> Services:
    recorder = AuditRecorder(audit_store)
    return Services(
        sessions=SessionService(user_store, recorder),
        proxies=ProxyService(inventory, recorder),
        users=UserService(user_store, inventory, recorder),
        departments=DepartmentService(user_store, inventory, recorder),
        audit=AuditService(audit_store),
    )
