# Overview: Audit collaborator contract and its default database sink.

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Optional

from ..extensions import db
from ..models import AuditLog


@dataclass(frozen=True)
class AuditEntry:
    action: str
    entity_type: str
    entity_id: str
    actor_id: Optional[int] = None
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None

    def to_dict(self) -> dict:
        return asdict(self)


class DatabaseAuditSink:
    """Appends AuditLog rows. Runs after the audited operation has committed."""

    def record(self, entry: AuditEntry) -> AuditLog:
        row = AuditLog(
            action=entry.action,
            entity_type=entry.entity_type,
            entity_id=str(entry.entity_id),
            actor_id=entry.actor_id,
            old_value=entry.old_value,
            new_value=entry.new_value,
        )
        db.session.add(row)
        db.session.commit()
        return row


def get_audit_trail(entity_type: str, entity_id) -> list[AuditLog]:
    """Audit rows for one entity, oldest first."""
    return (
        db.session.query(AuditLog)
        .filter_by(entity_type=entity_type, entity_id=str(entity_id))
        .order_by(AuditLog.created_at, AuditLog.id)
        .all()
    )
