"""
tests/conftest.py -- Shared test fixtures for ProxyPanel.

This module provides:
  - stores:     isolated in-memory UserStore / InventoryStore / AuditStore
  - world:      the stores plus services and a seeded organisation
                (SuperAdmin "root", departments Sales and Marketing,
                managers alice@Sales and bob@Marketing)
  - api_client: (client, world) -- TestClient over the real app with a
                patched lifespan that wires the test stores into app.state

Named shared-memory SQLite URIs (not plain :memory:) are required because
TestClient runs sync route handlers in a thread pool. Plain :memory: DBs are
per-connection and would present a blank schema to each worker thread. Every
fixture instance gets a fresh uuid-suffixed name so tests never share rows.

Environment must be set before any application import: DEBUG so that
get_settings() auto-generates SECRET_KEY, ALLOWED_HOSTS so TrustedHost
accepts TestClient's "testserver" host, LOGIN_RATE_LIMIT so the login tests
never trip the limiter.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: set before any api/auth/core import -- Settings is cached on first use.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from audit.store import AuditStore
from auth.models import Origin, RequestContext, Role, User
from auth.store import UserStore
from auth.tokens import create_access_token, hash_password
from inventory.models import Department
from inventory.store import InventoryStore
from services.registry import Services, build_services

PASSWORD = "password123"

# Hash the shared test password once per session; bcrypt is slow.
_PASSWORD_HASH = hash_password(PASSWORD)


def memory_url(prefix: str) -> str:
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


@dataclass
class Stores:
    users: UserStore
    inventory: InventoryStore
    audit: AuditStore

    def close(self) -> None:
        self.audit.close()
        self.inventory.close()
        self.users.close()


@dataclass
class World:
    stores: Stores
    services: Services
    root: User
    alice: User
    bob: User
    sales_id: int
    marketing_id: int

    def ctx(self, user: User) -> RequestContext:
        return RequestContext(actor=user, origin=Origin(address="10.9.8.7", agent="pytest"))

    def headers(self, user: User) -> dict[str, str]:
        token = create_access_token(user.id, user.username, user.role, expire_seconds=3600)
        return {"Authorization": f"Bearer {token}"}


def _make_test_stores() -> Stores:
    return Stores(
        users=UserStore(db_url=memory_url("test_users")),
        inventory=InventoryStore(db_url=memory_url("test_inventory")),
        audit=AuditStore(db_url=memory_url("test_audit")),
    )


def _add_user(store: UserStore, username: str, role: Role, department_id: int | None = None) -> User:
    user_id = store.create_user(
        User(username=username, role=role, hashed_password=_PASSWORD_HASH, department_id=department_id)
    )
    return store.get_by_id(user_id)


def _patch_lifespan(world: World):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-built test stores and services into app.state so routes
    see isolated in-memory databases instead of the configured one.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = world.stores.users
        app.state.inventory = world.stores.inventory
        app.state.audit_store = world.stores.audit
        app.state.services = world.services
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def stores() -> Generator[Stores, None, None]:
    s = _make_test_stores()
    yield s
    s.close()


@pytest.fixture
def world(stores: Stores) -> World:
    """Seeded organisation. Seeding goes straight to the stores, so the audit trail starts empty."""
    sales_id = stores.inventory.create_department(Department(name="Sales", description="Sales team"))
    marketing_id = stores.inventory.create_department(Department(name="Marketing"))
    return World(
        stores=stores,
        services=build_services(stores.users, stores.inventory, stores.audit),
        root=_add_user(stores.users, "root", Role.SUPER_ADMIN),
        alice=_add_user(stores.users, "alice", Role.DEPARTMENT_MANAGER, sales_id),
        bob=_add_user(stores.users, "bob", Role.DEPARTMENT_MANAGER, marketing_id),
        sales_id=sales_id,
        marketing_id=marketing_id,
    )


@pytest.fixture
def api_client(world: World) -> Generator[tuple[TestClient, World], None, None]:
    """Yield (client, world) for API integration tests.

    The TestClient uses the real FastAPI app, middleware and exception
    handlers; only the lifespan is swapped.
    """
    app.router.lifespan_context = _patch_lifespan(world)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, world
