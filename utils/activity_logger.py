import logging
from datetime import datetime, date
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from db.models import ActivityLog
from utils.time_and_ids import as_utc

logger = logging.getLogger(__name__)

# Relationship/audit columns never diffed field by field
SKIP_FIELDS = {"id", "version", "created_at", "updated_at", "points_of_contact", "remarks", "proposals"}


def _plain(value: Any) -> Any:
    """JSON-safe rendering of a column value for the changes column."""
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if hasattr(value, "value") and not isinstance(value, (str, int, float, bool)):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


def snapshot(obj: Any, fields: Optional[Iterable[str]] = None) -> Dict[str, Any]:
    """Column values of an ORM row as plain JSON data."""
    columns = fields or [c.key for c in obj.__table__.columns]
    return {name: _plain(getattr(obj, name, None)) for name in columns if name not in SKIP_FIELDS}


def compute_changes(before: Dict[str, Any], after: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Structured diff of two snapshots, one entry per changed field."""
    changes = []
    for field in after:
        if field in SKIP_FIELDS:
            continue
        old, new = before.get(field), after.get(field)
        if old != new:
            changes.append({"field": field, "old_value": old, "new_value": new})
    return changes


def creation_changes(after: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [
        {"field": k, "old_value": None, "new_value": v}
        for k, v in after.items()
        if v not in (None, "", [], {}) and k not in SKIP_FIELDS
    ]


def deletion_changes(before: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [
        {"field": k, "old_value": v, "new_value": None}
        for k, v in before.items()
        if v not in (None, "", [], {}) and k not in SKIP_FIELDS
    ]


def remark_change(remark: Any, removed: bool = False) -> List[Dict[str, Any]]:
    data = {
        "id": remark.id,
        "type": remark.type,
        "content": remark.content or remark.file_url or remark.voice_url,
        "author_name": remark.author_name,
    }
    if removed:
        return [{"field": "remark", "old_value": data, "new_value": None}]
    return [{"field": "remark", "old_value": None, "new_value": data}]


def record_activity(
    db: Session,
    *,
    entity: str,
    entity_id: Any,
    action: str,
    entity_name: Optional[str] = None,
    changes: Optional[List[Dict[str, Any]]] = None,
    lead_id: Optional[int] = None,
    user_id: Optional[str] = None,
) -> Optional[ActivityLog]:
    """
    Append one audit row in its own commit, after the business write has
    already been committed. A failure here is logged and rolled back without
    touching the business write.
    """
    try:
        entry = ActivityLog(
            entity=getattr(entity, "value", entity),
            entity_id=str(entity_id),
            entity_name=entity_name,
            action=getattr(action, "value", action),
            changes=changes or [],
            lead_id=lead_id,
            user_id=user_id,
        )
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to record {action} activity for {entity} {entity_id}: {e}")
        return None
