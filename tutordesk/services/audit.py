from typing import Any

from sqlalchemy.orm import Session

from ..db import models


def record(
    db: Session,
    action: str,
    entity_type: str,
    entity_id: int | None,
    *,
    performed_by: int | None,
    details: dict[str, Any] | None = None,
) -> models.AuditLog:
    """Stage an audit entry in the caller's transaction."""
    entry = models.AuditLog(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        performed_by=performed_by,
        details=details,
    )
    db.add(entry)
    return entry


__all__ = ["record"]
