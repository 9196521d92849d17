# Overview: Append-only audit log for catalog, ledger and settings mutations.

from __future__ import annotations

from typing import Any, Optional

from ..extensions import db
from ..models import AuditEvent
from ..time_utils import utcnow
"""
Audit Log Invariants (authoritative)

- Append-only: no updates/deletes of existing events.
- No domain/business logic in the audit log itself.
- Events are written inside the same DB transaction as the mutation they
  record, so a rolled-back mutation leaves no event behind.
"""


def append_event(
    *,
    event_type: str,
    entity_type: str,
    entity_id: int,
    session_id: int | None = None,
    note: Optional[str] = None,
    payload: Optional[dict[str, Any]] = None,
) -> AuditEvent:
    ev = AuditEvent(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        session_id=session_id,
        occurred_at=utcnow(),
        note=note[:255] if note else None,
        payload=payload,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def list_events(
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    session_id: int | None = None,
    limit: int = 200,
) -> list[AuditEvent]:
    query = db.session.query(AuditEvent)
    if entity_type:
        query = query.filter(AuditEvent.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(AuditEvent.entity_id == entity_id)
    if session_id is not None:
        query = query.filter(AuditEvent.session_id == session_id)
    return query.order_by(AuditEvent.occurred_at.desc(), AuditEvent.id.desc()).limit(limit).all()
