"""AI actions router - propose, review, approve/reject."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from automation_engine.core.deps import (
    get_current_user,
    get_db,
    require_csrf_header,
    require_roles,
)
from automation_engine.db.enums import (
    ROLES_CAN_DECIDE_AI_ACTIONS,
    ROLES_CAN_PROPOSE_AI_ACTIONS,
    AIActionStatus,
)
from automation_engine.db.models import User
from automation_engine.schemas.ai_action import (
    AIActionDecision,
    AIActionPropose,
    AIActionRead,
    AIActionTypesResponse,
)
from automation_engine.services import ai_action_service
from automation_engine.services.ai_action_dispatcher import default_dispatcher

router = APIRouter()


@router.get("", response_model=list[AIActionRead])
def list_actions(
    status: AIActionStatus | None = None,
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ai_action_service.list_actions(db, user, status=status, limit=limit)


@router.get("/types", response_model=AIActionTypesResponse)
def list_action_types(user: User = Depends(get_current_user)):
    """Action types the executor can run."""
    return AIActionTypesResponse(action_types=default_dispatcher.action_types)


@router.post(
    "",
    response_model=AIActionRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def propose(
    data: AIActionPropose,
    user: User = Depends(require_roles(ROLES_CAN_PROPOSE_AI_ACTIONS)),
    db: Session = Depends(get_db),
):
    return ai_action_service.propose(db, user, data.payload)


@router.get("/{action_id}", response_model=AIActionRead)
def get_action(
    action_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ai_action_service.get_action_for_viewer(db, action_id, user)


@router.post(
    "/{action_id}/decision",
    response_model=AIActionRead,
    dependencies=[Depends(require_csrf_header)],
)
def decide(
    action_id: UUID,
    data: AIActionDecision,
    user: User = Depends(require_roles(ROLES_CAN_DECIDE_AI_ACTIONS)),
    db: Session = Depends(get_db),
):
    """
    Approve (and execute) or reject a proposed action.

    Execution failures do not raise; the action comes back rejected with
    the error in results.
    """
    return ai_action_service.decide(db, action_id, user, data.approve)
