import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fieldtrack.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


def log_action(
    db: Session,
    user_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: int = None,
    details: str = None
):
    try:
        log = AuditLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details
        )

        db.add(log)
        db.commit()
    except SQLAlchemyError:
        # Audit logging must never block primary application flows.
        logger.exception("Failed to write audit entry %s for %s %s", action, entity_type, entity_id)
        db.rollback()


def log_auth_event(
    db: Session,
    action: str,
    username: str,
    user_id: Optional[int] = None,
    details: str = None
):
    message = f"Username: {username}"
    if details:
        message = f"{message} | {details}"

    log_action(
        db=db,
        user_id=user_id,
        action=action,
        entity_type="Auth",
        entity_id=user_id,
        details=message
    )
