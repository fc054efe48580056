"""Journal d'audit / Audit trail."""

import json
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from capacity_ledger.models.audit import AuditLog


def record_audit(
    session: AsyncSession,
    entity_type: str,
    entity_id: int,
    action: str,
    changes: dict,
    user: str | None = None,
) -> AuditLog:
    """Ajouter une ligne d'audit à la transaction courante / Add an audit row to the current transaction."""
    entry = AuditLog(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        changes=json.dumps(changes, default=str, sort_keys=True),
        user=user,
        timestamp=datetime.now(timezone.utc).isoformat(timespec="seconds"),
    )
    session.add(entry)
    return entry
