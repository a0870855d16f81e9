"""Audit trail for project transitions, amendments, imports, uploads and people changes."""

import logging
import uuid
from typing import Any, Optional

from sqlalchemy.orm import Session

from bizops.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


def _uuid_or_none(value: Any) -> Optional[uuid.UUID]:
    if value is None or isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        logger.warning("Audit actor id %r is not a UUID; stored as anonymous", value)
        return None


def log_action(
    db: Session,
    org_id,
    user_id,
    action: str,
    resource_type: str,
    resource_id: Any = None,
    details: Optional[dict] = None,
    *,
    commit: bool = True,
) -> AuditLog:
    """Add an audit row. Pass commit=False to keep it in the caller's transaction."""
    row = AuditLog(
        org_id=_uuid_or_none(org_id),
        user_id=_uuid_or_none(user_id),
        action=action,
        resource_type=resource_type,
        resource_id=None if resource_id is None else str(resource_id),
        details=dict(details or {}),
    )
    db.add(row)
    if commit:
        db.commit()
    logger.debug("audit: %s on %s %s by %s", action, resource_type, resource_id, user_id)
    return row
