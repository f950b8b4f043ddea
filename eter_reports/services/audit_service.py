"""Journal d'audit / Audit trail helper."""

import json

from sqlalchemy.ext.asyncio import AsyncSession

from eter_reports.database import utc_now
from eter_reports.models.audit import AuditLog


def record_audit(
    db: AsyncSession,
    entity_type: str,
    entity_id: str | int,
    action: str,
    changes: dict | None = None,
    user: str | None = None,
) -> AuditLog:
    """Ajouter une entrée d'audit à la session / Add an audit entry to the session."""
    entry = AuditLog(
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        changes=json.dumps(changes, default=str, ensure_ascii=False) if changes else None,
        user=user,
        timestamp=utc_now().isoformat(timespec="seconds"),
    )
    db.add(entry)
    return entry
