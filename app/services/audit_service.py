import json
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.models.audit_log import AuditLog


def _jsonable(diff: Any) -> Any:
    # Decimal/date/UUID values land in the JSON column as strings
    return json.loads(json.dumps(diff, default=str))


def write_audit_log(
    db: Session,
    *,
    entity_type: str,
    entity_id: str,
    action: str,
    diff: dict[str, Any],
    actor_name: Optional[str] = None,
    actor_id: Optional[str] = None,
) -> AuditLog:
    """
    Append one audit entry inside the caller's transaction.

    Never commits: the entry becomes visible together with the change it records.
    """
    row = AuditLog(
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        diff=_jsonable(diff),
        actor_id=actor_id,
        actor_name=actor_name,
    )
    db.add(row)
    db.flush()
    return row
