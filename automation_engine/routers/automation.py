"""Automation router - generated tasks and volunteer onboarding."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from automation_engine.core.deps import get_db, require_csrf_header, require_roles
from automation_engine.core.errors import NotFound
from automation_engine.db.enums import ROLES_CAN_MANAGE_PIPELINE
from automation_engine.db.models import User
from automation_engine.schemas.action_item import ActionItemRead
from automation_engine.schemas.automation import InternTaskGenerate, OnboardingPacketRead
from automation_engine.services import onboarding_service, task_generation_service

router = APIRouter()

can_automate = require_roles(ROLES_CAN_MANAGE_PIPELINE)


@router.post(
    "/presentations/{presentation_id}/tasks",
    response_model=list[ActionItemRead],
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def generate_presentation_tasks(
    presentation_id: UUID,
    user: User = Depends(can_automate),
    db: Session = Depends(get_db),
):
    """Prep and follow-up tasks for a presentation. Returns only new items."""
    return task_generation_service.generate_for_presentation(db, presentation_id, actor=user)


@router.post(
    "/teacher-requests/{request_id}/tasks",
    response_model=list[ActionItemRead],
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def generate_teacher_request_tasks(
    request_id: UUID,
    user: User = Depends(can_automate),
    db: Session = Depends(get_db),
):
    return task_generation_service.generate_for_teacher_request(db, request_id, actor=user)


@router.post(
    "/action-items/{item_id}/intern-tasks",
    response_model=list[ActionItemRead],
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def generate_intern_tasks(
    item_id: UUID,
    data: InternTaskGenerate,
    user: User = Depends(can_automate),
    db: Session = Depends(get_db),
):
    return task_generation_service.generate_for_intern_task(
        db,
        item_id,
        supervisor_id=data.supervisor_id,
        coordinating_department=data.coordinating_department,
        actor=user,
    )


@router.post(
    "/onboarding/{volunteer_id}",
    response_model=OnboardingPacketRead,
    dependencies=[Depends(require_csrf_header)],
)
def send_onboarding_packet(
    volunteer_id: UUID,
    user: User = Depends(can_automate),
    db: Session = Depends(get_db),
):
    """Generate and send the welcome packet (no-op if it already exists)."""
    return onboarding_service.send_onboarding_packet(db, volunteer_id)


@router.get("/onboarding/{volunteer_id}", response_model=OnboardingPacketRead)
def get_onboarding_packet(
    volunteer_id: UUID,
    user: User = Depends(can_automate),
    db: Session = Depends(get_db),
):
    packet = onboarding_service.get_packet(db, volunteer_id)
    if not packet:
        raise NotFound(f"No onboarding packet for {volunteer_id}")
    return packet
