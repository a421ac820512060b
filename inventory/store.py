"""
inventory/store.py -- SQLAlchemy-backed persistence layer for departments and proxies.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in inventory/models.py
remain the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change.

Pattern: Repository + Data Mapper. InventoryStore is the repository (one clean
interface per entity). The _row_to_* functions are the mappers. Services never
touch SQL directly.

Storage-level invariants (the only ones enforced atomically):
  - UNIQUE(address, port) on proxies
  - UNIQUE(name) on departments
Everything else -- department scoping, "no delete while referenced" -- is
checked by the services before they call in here.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = InventoryStore()                               # settings.database_url
    store = InventoryStore("postgresql://user:pw@host/db") # explicit
    dept_id = store.create_department(Department(name="Sales"))
    proxy_id = store.create_proxy(proxy)
    proxies, total = store.list_proxies(department_id=dept_id, offset=0, limit=10)
    store.close()
"""

from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import (
    Column,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    func,
    select,
    text,
)
from sqlalchemy.engine import Engine

from core.config import get_settings
from inventory.models import Department, Protocol, ProxyRecord, ProxyStatus

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_departments = Table(
    "departments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("description", Text),
    Column("created_at", String(32), nullable=False),
)

_proxies = Table(
    "proxies",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("address", String(255), nullable=False),
    Column("port", Integer, nullable=False),
    Column("protocol", String(10), nullable=False),
    Column("username", String(255)),
    Column("password", Text),
    Column("location", String(255)),
    Column("speed", Float),
    Column("status", String(20), nullable=False, server_default=ProxyStatus.ACTIVE.value),
    Column("department_id", Integer, nullable=False),
    Column("expires_at", String(32)),
    Column("created_at", String(32), nullable=False),
    UniqueConstraint("address", "port", name="uq_proxy_address_port"),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _enum_value(value):
    return value.value if hasattr(value, "value") else value


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class InventoryStore:
    """Repository for Department and ProxyRecord entities."""

    def __init__(self, db_url: Optional[str] = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    # ------------------------------------------------------------------
    # Departments
    # ------------------------------------------------------------------

    def create_department(self, department: Department) -> int:
        """Insert a department and return its ID.

        Raises sqlalchemy.exc.IntegrityError if the name is already taken.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _departments.insert().values(
                    name=department.name,
                    description=department.description,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_department(self, department_id: int) -> Optional[Department]:
        with self.engine.connect() as conn:
            row = conn.execute(_departments.select().where(_departments.c.id == department_id)).fetchone()
        return _row_to_department(row) if row else None

    def get_department_by_name(self, name: str) -> Optional[Department]:
        with self.engine.connect() as conn:
            row = conn.execute(_departments.select().where(_departments.c.name == name)).fetchone()
        return _row_to_department(row) if row else None

    def list_departments(self, offset: int = 0, limit: int = 10) -> tuple[list[Department], int]:
        """Return one page of departments (newest first) and the total count."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _departments.select().order_by(_departments.c.id.desc()).offset(offset).limit(limit)
            ).fetchall()
            total = conn.execute(select(func.count()).select_from(_departments)).scalar() or 0
        return [_row_to_department(r) for r in rows], total

    def department_names(self, department_ids: Iterable[Optional[int]]) -> dict[int, str]:
        """Map each existing id in department_ids to its department name."""
        wanted = {d for d in department_ids if d is not None}
        if not wanted:
            return {}
        query = select(_departments.c.id, _departments.c.name).where(_departments.c.id.in_(wanted))
        with self.engine.connect() as conn:
            return {row.id: row.name for row in conn.execute(query)}

    def update_department(self, department_id: int, **fields) -> bool:
        """Update name and/or description. Returns False if the department is gone.

        Raises sqlalchemy.exc.IntegrityError on a name collision.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _departments.update().where(_departments.c.id == department_id).values(**fields)
            )
            conn.commit()
        return result.rowcount > 0

    def delete_department(self, department_id: int) -> bool:
        """Delete a department row. Callers check for dependents first."""
        with self.engine.connect() as conn:
            result = conn.execute(_departments.delete().where(_departments.c.id == department_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Proxies
    # ------------------------------------------------------------------

    def create_proxy(self, proxy: ProxyRecord) -> int:
        """Insert a proxy and return its ID.

        Raises sqlalchemy.exc.IntegrityError if (address, port) already exists.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _proxies.insert().values(
                    address=proxy.address,
                    port=proxy.port,
                    protocol=_enum_value(proxy.protocol),
                    username=proxy.username,
                    password=proxy.password,
                    location=proxy.location,
                    speed=proxy.speed,
                    status=_enum_value(proxy.status),
                    department_id=proxy.department_id,
                    expires_at=proxy.expires_at,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_proxy(self, proxy_id: int) -> Optional[ProxyRecord]:
        with self.engine.connect() as conn:
            row = conn.execute(_proxies.select().where(_proxies.c.id == proxy_id)).fetchone()
        return _row_to_proxy(row) if row else None

    def get_proxy_by_endpoint(self, address: str, port: int) -> Optional[ProxyRecord]:
        """Look up a proxy by its unique (address, port) pair."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _proxies.select().where((_proxies.c.address == address) & (_proxies.c.port == port))
            ).fetchone()
        return _row_to_proxy(row) if row else None

    def list_proxies(
        self,
        status: Optional[str] = None,
        protocol: Optional[str] = None,
        department_id: Optional[int] = None,
        location: Optional[str] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[ProxyRecord], int]:
        """Return one page of proxies (newest first) and the total match count.

        location is a case-insensitive substring match. Pages are computed per
        call; there is no cursor, so rows can shift between pages if the table
        changes in between.
        """
        conditions = []
        if status is not None:
            conditions.append(_proxies.c.status == _enum_value(status))
        if protocol is not None:
            conditions.append(_proxies.c.protocol == _enum_value(protocol))
        if department_id is not None:
            conditions.append(_proxies.c.department_id == department_id)
        if location:
            conditions.append(func.lower(_proxies.c.location).contains(location.lower(), autoescape=True))

        query = _proxies.select().where(*conditions).order_by(_proxies.c.id.desc()).offset(offset).limit(limit)
        count_query = select(func.count()).select_from(_proxies).where(*conditions)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
            total = conn.execute(count_query).scalar() or 0
        return [_row_to_proxy(r) for r in rows], total

    def list_by_department(self, department_id: int) -> list[ProxyRecord]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _proxies.select().where(_proxies.c.department_id == department_id).order_by(_proxies.c.id)
            ).fetchall()
        return [_row_to_proxy(r) for r in rows]

    def count_by_department(self, department_id: int) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(_proxies).where(_proxies.c.department_id == department_id)
            ).scalar()
        return result or 0

    def update_proxy(self, proxy_id: int, **fields) -> bool:
        """Update proxy columns. Enum values may be passed as enums.

        Returns False if the proxy no longer exists (deleted since it was read).
        Raises sqlalchemy.exc.IntegrityError if the new (address, port) is taken.
        """
        values = {k: _enum_value(v) for k, v in fields.items()}
        with self.engine.connect() as conn:
            result = conn.execute(_proxies.update().where(_proxies.c.id == proxy_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def delete_proxy(self, proxy_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_proxies.delete().where(_proxies.c.id == proxy_id))
            conn.commit()
        return result.rowcount > 0

    def list_expiring(self, within_days: int, now: Optional[datetime] = None) -> list[ProxyRecord]:
        """Return Active proxies whose expires_at is on or before now + within_days.

        Already-expired Active proxies are included -- they are the most urgent.
        Ordered by expires_at, soonest first. ISO 8601 strings in UTC sort
        lexically, so the comparison happens in SQL.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = (now + timedelta(days=within_days)).isoformat()
        with self.engine.connect() as conn:
            rows = conn.execute(
                _proxies.select()
                .where(
                    (_proxies.c.status == ProxyStatus.ACTIVE.value)
                    & (_proxies.c.expires_at.is_not(None))
                    & (_proxies.c.expires_at <= cutoff)
                )
                .order_by(_proxies.c.expires_at)
            ).fetchall()
        return [_row_to_proxy(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_department(row) -> Department:
    return Department(
        id=row.id,
        name=row.name,
        description=row.description,
        created_at=row.created_at,
    )


def _row_to_proxy(row) -> ProxyRecord:
    return ProxyRecord(
        id=row.id,
        address=row.address,
        port=row.port,
        protocol=Protocol(row.protocol),
        username=row.username,
        password=row.password,
        location=row.location,
        speed=row.speed,
        status=ProxyStatus(row.status),
        department_id=row.department_id,
        expires_at=row.expires_at,
        created_at=row.created_at,
    )
