"""Fire-and-forget audit trail for lifecycle and cost events."""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.activity_log import ActivityLog
from app.services.common import coerce_uuid

logger = logging.getLogger(__name__)

ACTION_LIFECYCLE_CHANGE = "file_lifecycle_change"
ACTION_COST_OPTIMIZATION = "cost_optimization"
ACTION_COST_ALERT = "cost_alert"


def _normalize_value(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {key: _normalize_value(item) for key, item in value.items()}
    return value


def record_activity(
    db: Session,
    *,
    user_id,
    action: str,
    details: dict,
    resource_type: str | None = None,
    resource_id=None,
) -> bool:
    """Append one activity entry.

    Failures are logged and swallowed so auditing never blocks the caller.
    Returns True when the entry was committed.
    """
    entry = ActivityLog(
        user_id=coerce_uuid(user_id),
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=_normalize_value(details),
    )
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning(
            "activity_log_write_failed action=%s resource_id=%s error=%s",
            action,
            resource_id,
            exc,
        )
        return False
    return True
