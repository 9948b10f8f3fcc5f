"""Approval-gated AI actions: propose, decide, execute.

State machine: proposed -> approved -> executed, proposed -> rejected.
A dispatch failure after approval ends in rejected with the reason in
results. Nothing is retried.
"""

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from automation_engine.core.errors import (
    AlreadyDecided,
    EngineError,
    Forbidden,
    InvalidPayload,
    NotFound,
)
from automation_engine.db.enums import (
    ROLES_CAN_DECIDE_AI_ACTIONS,
    ROLES_CAN_PROPOSE_AI_ACTIONS,
    AIActionStatus,
    Role,
    is_privileged,
)
from automation_engine.db.models import AIAction, User
from automation_engine.services import audit_service
from automation_engine.services.ai_action_dispatcher import ActionDispatcher, default_dispatcher

logger = logging.getLogger(__name__)


def _role(user: User) -> Role | None:
    return Role(user.role) if Role.has_value(user.role) else None


def propose(db: Session, actor: User, payload: dict[str, Any]) -> AIAction:
    """Store a machine-proposed action awaiting a human decision."""
    if _role(actor) not in ROLES_CAN_PROPOSE_AI_ACTIONS:
        raise Forbidden(f"Role '{actor.role}' cannot propose AI actions")
    if not isinstance(payload, dict):
        raise InvalidPayload("Payload must be an object")
    action_type = payload.get("type")
    if not isinstance(action_type, str) or not action_type.strip():
        raise InvalidPayload("Payload 'type' is required")

    action = AIAction(
        proposed_by_user_id=actor.id,
        action_type=action_type.strip(),
        payload=payload,
        status=AIActionStatus.PROPOSED.value,
    )
    db.add(action)
    db.commit()
    db.refresh(action)
    return action


def get_action(db: Session, action_id: UUID) -> AIAction | None:
    return db.query(AIAction).filter(AIAction.id == action_id).first()


def get_action_for_viewer(db: Session, action_id: UUID, viewer: User) -> AIAction:
    action = get_action(db, action_id)
    if not action:
        raise NotFound(f"AI action {action_id} not found")
    if action.proposed_by_user_id != viewer.id and not is_privileged(viewer.role):
        raise Forbidden("Not allowed to view this action")
    return action


def list_actions(
    db: Session,
    viewer: User,
    status: AIActionStatus | None = None,
    limit: int = 50,
) -> list[AIAction]:
    """Privileged viewers see every action; others only their own proposals."""
    query = db.query(AIAction)
    if not is_privileged(viewer.role):
        query = query.filter(AIAction.proposed_by_user_id == viewer.id)
    if status:
        query = query.filter(AIAction.status == status.value)
    return query.order_by(AIAction.created_at.desc()).limit(limit).all()


def decide(
    db: Session,
    action_id: UUID,
    approver: User,
    approve: bool,
    dispatcher: ActionDispatcher | None = None,
    now: datetime | None = None,
) -> AIAction:
    """
    Approve or reject a proposed action.

    The proposed -> approved/rejected flip is a conditional update, so two
    concurrent decisions cannot both win. On approval the payload is
    dispatched; success ends in executed, any failure ends in rejected
    with {"success": False, "error": <code>, "message": ...} in results.

    Raises:
        Forbidden: approver lacks a deciding role
        NotFound: no such action
        AlreadyDecided: action is no longer proposed
    """
    dispatcher = dispatcher or default_dispatcher
    now = now or datetime.now(timezone.utc)

    if _role(approver) not in ROLES_CAN_DECIDE_AI_ACTIONS:
        raise Forbidden(f"Role '{approver.role}' cannot approve AI actions")

    action = get_action(db, action_id)
    if not action:
        raise NotFound(f"AI action {action_id} not found")

    decided_status = AIActionStatus.APPROVED if approve else AIActionStatus.REJECTED
    result = db.execute(
        update(AIAction)
        .where(
            AIAction.id == action_id,
            AIAction.status == AIActionStatus.PROPOSED.value,
        )
        .values(
            status=decided_status.value,
            approved_by_user_id=approver.id,
            approved_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        db.refresh(action)
        raise AlreadyDecided(f"Action already processed (status: {action.status})")

    if not approve:
        audit_service.log_ai_action_rejected(db, approver.id, action.id, action.action_type)
        db.commit()
        db.refresh(action)
        logger.info("AI action %s rejected by %s", action.id, approver.id)
        return action

    # Decision is durable before any side effect runs
    db.commit()
    db.refresh(action)
    payload = dict(action.payload)

    try:
        results = dispatcher.dispatch(db, payload, approver)
    except EngineError as e:
        db.rollback()
        return _record_failure(db, action, approver, e.code, e.message, type(e).__name__)
    except Exception as e:
        db.rollback()
        logger.exception("AI action %s failed during execution", action.id)
        return _record_failure(
            db, action, approver, "execution_failed", str(e)[:500], type(e).__name__
        )

    action.status = AIActionStatus.EXECUTED.value
    action.executed_at = now
    action.results = {"success": True, **results}
    audit_service.log_ai_action_approved(db, approver.id, action.id, action.action_type)
    db.commit()
    db.refresh(action)
    logger.info("AI action %s (%s) executed", action.id, action.action_type)
    return action


def _record_failure(
    db: Session,
    action: AIAction,
    approver: User,
    error_code: str,
    message: str,
    error_type: str,
) -> AIAction:
    action.status = AIActionStatus.REJECTED.value
    action.executed_at = None
    action.results = {
        "success": False,
        "error": error_code,
        "error_type": error_type,
        "message": message,
    }
    audit_service.log_ai_action_failed(
        db, approver.id, action.id, action.action_type, error_code
    )
    db.commit()
    db.refresh(action)
    logger.warning("AI action %s not executed: %s", action.id, error_code)
    return action
