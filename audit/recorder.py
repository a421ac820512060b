"""
audit/recorder.py -- Builds and writes audit entries for the services.

snapshot() turns a domain dataclass into the dict stored as before/after:
  - a deep, point-in-time copy (JSON round-trip, so later mutation of the
    source object cannot leak into a stored snapshot)
  - secret fields removed (SECRET_FIELDS)
  - enums reduced to their values

AuditRecorder.record() is always the last step of a mutation. Ordering is
data write first, audit write second, in separate connections. If the audit
write fails the mutation has already been committed; the recorder then logs
the complete entry at CRITICAL on the "proxypanel.audit" logger (so the
record survives in the log stream) and raises AuditWriteError, which the API
surfaces as a 500. A crash between the two writes leaves a mutation with no
audit row -- a known gap, not a guarantee this module makes.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, is_dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from audit.models import AuditAction, AuditEntry
from audit.store import AuditStore
from auth.models import RequestContext
from core.errors import AuditWriteError

logger = logging.getLogger("proxypanel.audit")

SECRET_FIELDS: frozenset[str] = frozenset({"password", "hashed_password"})


def snapshot(obj: Any) -> dict[str, Any] | None:
    """Deep copy of obj's exposed state with secret fields stripped."""
    if obj is None:
        return None
    data = asdict(obj) if is_dataclass(obj) else dict(obj)
    exposed = {k: v for k, v in data.items() if k not in SECRET_FIELDS}
    return json.loads(json.dumps(exposed, default=str))


class AuditRecorder:
    def __init__(self, store: AuditStore) -> None:
        self._store = store

    def record(
        self,
        ctx: RequestContext,
        action: AuditAction,
        target_id: int | None = None,
        before: Any = None,
        after: Any = None,
    ) -> AuditEntry:
        """Append one entry for ctx.actor. before/after may be dataclasses or dicts."""
        return self._append(
            AuditEntry(
                actor_id=ctx.actor.id,
                actor_name=ctx.actor.username,
                action=action,
                target_id=target_id,
                before=snapshot(before),
                after=snapshot(after),
                origin_address=ctx.origin.address,
                origin_agent=ctx.origin.agent,
            )
        )

    def record_authentication(self, ctx: RequestContext, action: AuditAction) -> AuditEntry:
        """LOGIN / LOGOUT: the actor is also the target."""
        return self.record(ctx, action, target_id=ctx.actor.id)

    def _append(self, entry: AuditEntry) -> AuditEntry:
        try:
            written = self._store.append(entry)
        except SQLAlchemyError as exc:
            logger.critical(
                "Audit write failed; entry not persisted: %s",
                json.dumps(asdict(entry), default=str, sort_keys=True),
            )
            raise AuditWriteError() from exc
        logger.info(
            "%s by %s (user_id=%s) target=%s from %s",
            entry.action.value,
            entry.actor_name,
            entry.actor_id,
            entry.target_id,
            entry.origin_address,
        )
        return written
