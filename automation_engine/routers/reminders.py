"""Reminders router - schedule and inspect reminders for an entity."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from automation_engine.core.deps import get_db, require_csrf_header, require_roles
from automation_engine.db.enums import ROLES_CAN_MANAGE_PIPELINE, ReminderEntityType
from automation_engine.db.models import User
from automation_engine.schemas.reminder import CancelResponse, ReminderRead, ScheduleRequest
from automation_engine.services import reminder_service

router = APIRouter()

# Founders, admins and interns run scheduling
can_schedule = require_roles(ROLES_CAN_MANAGE_PIPELINE)


@router.post(
    "",
    response_model=list[ReminderRead],
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def schedule(
    data: ScheduleRequest,
    user: User = Depends(can_schedule),
    db: Session = Depends(get_db),
):
    """Create missing reminders for the entity. Returns only new rows."""
    return reminder_service.schedule(db, data.entity_type, data.entity_id)


@router.post(
    "/{entity_type}/{entity_id}/reschedule",
    response_model=list[ReminderRead],
    dependencies=[Depends(require_csrf_header)],
)
def reschedule(
    entity_type: ReminderEntityType,
    entity_id: UUID,
    user: User = Depends(can_schedule),
    db: Session = Depends(get_db),
):
    return reminder_service.reschedule(db, entity_type, entity_id)


@router.delete(
    "/{entity_type}/{entity_id}",
    response_model=CancelResponse,
    dependencies=[Depends(require_csrf_header)],
)
def cancel(
    entity_type: ReminderEntityType,
    entity_id: UUID,
    user: User = Depends(can_schedule),
    db: Session = Depends(get_db),
):
    return CancelResponse(
        cancelled=reminder_service.cancel_for_entity(db, entity_type, entity_id)
    )


@router.get("/{entity_type}/{entity_id}", response_model=list[ReminderRead])
def list_for_entity(
    entity_type: ReminderEntityType,
    entity_id: UUID,
    user: User = Depends(can_schedule),
    db: Session = Depends(get_db),
):
    return reminder_service.list_for_entity(db, entity_type, entity_id)
