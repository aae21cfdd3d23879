import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from sqlalchemy.orm import Session
from ..config import get_settings
from ..models.audit import AuditEvent, AuditAction


def create_audit_event(
    db: Session,
    actor: str,
    action: AuditAction,
    entity_type: str,
    entity_id: str,
    details: dict[str, Any] | None,
    *,
    timestamp: datetime | None = None,
    commit: bool = False,
) -> AuditEvent:
    settings = get_settings()
    event = AuditEvent(
        actor=actor or "SYSTEM",
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or {},
        timestamp=timestamp or datetime.now(timezone.utc),
    )
    db.add(event)
    if commit:
        db.commit()

    if settings.AUDIT_EXPORT_PATH:
        _write_audit_export(settings.AUDIT_EXPORT_PATH, event)

    return event


def _write_audit_export(path: str, event: AuditEvent) -> None:
    export_path = Path(path)
    export_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "timestamp": event.timestamp.isoformat(),
        "actor": event.actor,
        "action": event.action.value,
        "entity_type": event.entity_type,
        "entity_id": event.entity_id,
        "details": event.details,
    }
    with export_path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(payload, default=str) + "\n")
