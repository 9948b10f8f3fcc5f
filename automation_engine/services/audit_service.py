"""Audit logging service - decisions and delivery gaps operators need to see.

Guidelines:
- NEVER log secrets or message bodies
- Use IDs instead of raw data where possible
- Callers own the transaction; entries are flushed, not committed
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from automation_engine.db.enums import AuditEventType
from automation_engine.db.models import AuditLog

logger = logging.getLogger(__name__)


def log_event(
    db: Session,
    event_type: AuditEventType,
    actor_user_id: UUID | None = None,
    target_type: str | None = None,
    target_id: UUID | None = None,
    details: dict[str, Any] | None = None,
) -> AuditLog:
    """
    Append an audit event.

    Args:
        db: Database session
        event_type: Type of event (from AuditEventType)
        actor_user_id: User who performed the action (None for system)
        target_type: Type of entity affected (e.g., 'ai_action', 'reminder')
        target_id: ID of the affected entity
        details: Additional context (ids, codes, counts)
    """
    entry = AuditLog(
        actor_user_id=actor_user_id,
        event_type=event_type.value,
        target_type=target_type,
        target_id=target_id,
        details=details,
    )
    db.add(entry)
    db.flush()
    return entry


def list_events(
    db: Session,
    event_type: AuditEventType | None = None,
    target_type: str | None = None,
    target_id: UUID | None = None,
    limit: int = 100,
) -> list[AuditLog]:
    query = db.query(AuditLog)
    if event_type:
        query = query.filter(AuditLog.event_type == event_type.value)
    if target_type:
        query = query.filter(AuditLog.target_type == target_type)
    if target_id:
        query = query.filter(AuditLog.target_id == target_id)
    return query.order_by(AuditLog.created_at.desc()).limit(limit).all()


# =============================================================================
# AI action decisions
# =============================================================================

def log_ai_action_approved(
    db: Session, user_id: UUID, action_id: UUID, action_type: str
) -> AuditLog:
    """Log AI action approval (executed successfully)."""
    return log_event(
        db,
        AuditEventType.AI_ACTION_APPROVED,
        actor_user_id=user_id,
        target_type="ai_action",
        target_id=action_id,
        details={"action_type": action_type},
    )


def log_ai_action_rejected(
    db: Session, user_id: UUID, action_id: UUID, action_type: str
) -> AuditLog:
    """Log AI action rejection."""
    return log_event(
        db,
        AuditEventType.AI_ACTION_REJECTED,
        actor_user_id=user_id,
        target_type="ai_action",
        target_id=action_id,
        details={"action_type": action_type},
    )


def log_ai_action_failed(
    db: Session,
    user_id: UUID,
    action_id: UUID,
    action_type: str,
    error_code: str,
) -> AuditLog:
    """Log AI action approved but failed at execution."""
    return log_event(
        db,
        AuditEventType.AI_ACTION_FAILED,
        actor_user_id=user_id,
        target_type="ai_action",
        target_id=action_id,
        details={"action_type": action_type, "error_code": error_code},
    )


# =============================================================================
# Best-effort side effects
# =============================================================================

def log_side_effect_failure(
    db: Session,
    event_type: AuditEventType,
    target_type: str,
    target_id: UUID,
    error: Exception,
    actor_user_id: UUID | None = None,
) -> AuditLog:
    """Record a failed best-effort side effect instead of dropping it."""
    logger.warning(
        "Side effect %s failed for %s %s: %s",
        event_type.value,
        target_type,
        target_id,
        type(error).__name__,
    )
    return log_event(
        db,
        event_type,
        actor_user_id=actor_user_id,
        target_type=target_type,
        target_id=target_id,
        details={"error_type": type(error).__name__, "error": str(error)[:500]},
    )
