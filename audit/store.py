"""
audit/store.py -- Append-only persistence for AuditEntry records.

Pattern: Repository + Data Mapper, like auth/store.py and inventory/store.py,
with one difference: there is no update and no delete. The only write is
append(). Nothing in the code base can rewrite history through this class.

Snapshots are stored as JSON text, the same way the inventory store keeps
list-shaped columns.

Security: all queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

import json
from dataclasses import replace
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine

from audit.models import AuditAction, AuditEntry
from core.config import get_settings

_metadata = MetaData()

_audit_entries = Table(
    "audit_entries",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("actor_id", Integer, nullable=False),
    Column("actor_name", String(255), nullable=False),
    Column("action", String(30), nullable=False),
    Column("target_id", Integer),
    Column("before_state", Text),  # JSON object or NULL
    Column("after_state", Text),  # JSON object or NULL
    Column("origin_address", String(64)),
    Column("origin_agent", String(500)),
    Column("timestamp", String(32), nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dump(state: dict | None) -> str | None:
    return json.dumps(state, sort_keys=True) if state is not None else None


def _load(raw: str | None) -> dict | None:
    return json.loads(raw) if raw is not None else None


class AuditStore:
    """Append-only repository for AuditEntry records."""

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def append(self, entry: AuditEntry) -> AuditEntry:
        """Write one entry and return it with id and timestamp filled in."""
        timestamp = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _audit_entries.insert().values(
                    actor_id=entry.actor_id,
                    actor_name=entry.actor_name,
                    action=entry.action.value,
                    target_id=entry.target_id,
                    before_state=_dump(entry.before),
                    after_state=_dump(entry.after),
                    origin_address=entry.origin_address,
                    origin_agent=entry.origin_agent,
                    timestamp=timestamp,
                )
            )
            conn.commit()
            entry_id = result.inserted_primary_key[0]
        return replace(entry, id=entry_id, timestamp=timestamp)

    def list_entries(
        self,
        action: AuditAction | None = None,
        actor_id: int | None = None,
        target_id: int | None = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[AuditEntry], int]:
        """Return one page of entries (newest first) and the total match count."""
        conditions = []
        if action is not None:
            conditions.append(_audit_entries.c.action == action.value)
        if actor_id is not None:
            conditions.append(_audit_entries.c.actor_id == actor_id)
        if target_id is not None:
            conditions.append(_audit_entries.c.target_id == target_id)

        query = (
            _audit_entries.select()
            .where(*conditions)
            .order_by(_audit_entries.c.id.desc())
            .offset(offset)
            .limit(limit)
        )
        count_query = select(func.count()).select_from(_audit_entries).where(*conditions)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
            total = conn.execute(count_query).scalar() or 0
        return [_row_to_entry(r) for r in rows], total

    def count(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_audit_entries)).scalar() or 0

    def close(self) -> None:
        self.engine.dispose()


def _row_to_entry(row) -> AuditEntry:
    return AuditEntry(
        id=row.id,
        actor_id=row.actor_id,
        actor_name=row.actor_name,
        action=AuditAction(row.action),
        target_id=row.target_id,
        before=_load(row.before_state),
        after=_load(row.after_state),
        origin_address=row.origin_address,
        origin_agent=row.origin_agent,
        timestamp=row.timestamp,
    )
