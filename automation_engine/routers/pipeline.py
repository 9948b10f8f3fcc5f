"""Recruitment pipeline router - stages and applicant entries."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from automation_engine.core.deps import get_db, require_csrf_header, require_roles
from automation_engine.db.enums import (
    ROLES_CAN_MANAGE_PIPELINE,
    ROLES_PRIVILEGED,
    ApplicantType,
    PipelineEntryStatus,
)
from automation_engine.db.models import User
from automation_engine.schemas.pipeline import (
    AdvanceRequest,
    EnrollRequest,
    EntryAssign,
    EntryRead,
    EntryStatusUpdate,
    StageChangeRead,
    StageRead,
    StageUpsert,
)
from automation_engine.services import pipeline_service

router = APIRouter()

can_manage = require_roles(ROLES_CAN_MANAGE_PIPELINE)
privileged = require_roles(ROLES_PRIVILEGED)


# =============================================================================
# Stages
# =============================================================================


@router.get("/stages/{applicant_type}", response_model=list[StageRead])
def list_stages(
    applicant_type: ApplicantType,
    include_inactive: bool = False,
    user: User = Depends(can_manage),
    db: Session = Depends(get_db),
):
    return pipeline_service.list_stages(
        db, applicant_type.value, include_inactive=include_inactive
    )


@router.put(
    "/stages/{applicant_type}",
    response_model=StageRead,
    dependencies=[Depends(require_csrf_header)],
)
def upsert_stage(
    applicant_type: ApplicantType,
    data: StageUpsert,
    user: User = Depends(privileged),
    db: Session = Depends(get_db),
):
    return pipeline_service.upsert_stage(
        db,
        applicant_type.value,
        data.stage_name,
        data.stage_order,
        auto_actions=data.auto_actions,
        requirements=data.requirements,
        is_active=data.is_active,
    )


@router.post(
    "/stages/{applicant_type}/seed",
    response_model=list[StageRead],
    dependencies=[Depends(require_csrf_header)],
)
def seed_default_stages(
    applicant_type: ApplicantType,
    user: User = Depends(privileged),
    db: Session = Depends(get_db),
):
    pipeline_service.seed_default_stages(db, applicant_type.value)
    return pipeline_service.list_stages(db, applicant_type.value)


# =============================================================================
# Entries
# =============================================================================


@router.get("/entries", response_model=list[EntryRead])
def list_entries(
    applicant_type: ApplicantType | None = None,
    stage: str | None = None,
    status: PipelineEntryStatus | None = None,
    user: User = Depends(can_manage),
    db: Session = Depends(get_db),
):
    return pipeline_service.list_entries(
        db,
        applicant_type=applicant_type.value if applicant_type else None,
        stage_name=stage,
        status=status,
    )


@router.post(
    "/entries",
    response_model=EntryRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def enroll(
    data: EnrollRequest,
    user: User = Depends(can_manage),
    db: Session = Depends(get_db),
):
    return pipeline_service.enroll(
        db,
        data.applicant_id,
        data.applicant_type.value,
        priority=data.priority,
        notes=data.notes,
        actor=user,
    )


@router.get("/entries/{entry_id}", response_model=EntryRead)
def get_entry(
    entry_id: UUID,
    user: User = Depends(can_manage),
    db: Session = Depends(get_db),
):
    return pipeline_service.require_entry(db, entry_id)


@router.get("/entries/{entry_id}/history", response_model=list[StageChangeRead])
def get_stage_history(
    entry_id: UUID,
    user: User = Depends(can_manage),
    db: Session = Depends(get_db),
):
    pipeline_service.require_entry(db, entry_id)
    return pipeline_service.get_stage_changes(db, entry_id)


@router.post(
    "/entries/{entry_id}/advance",
    response_model=EntryRead,
    dependencies=[Depends(require_csrf_header)],
)
def advance(
    entry_id: UUID,
    data: AdvanceRequest,
    user: User = Depends(can_manage),
    db: Session = Depends(get_db),
):
    if data.stage:
        return pipeline_service.advance(db, entry_id, data.stage, user)
    return pipeline_service.advance_to_next(db, entry_id, user)


@router.patch(
    "/entries/{entry_id}/status",
    response_model=EntryRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_status(
    entry_id: UUID,
    data: EntryStatusUpdate,
    user: User = Depends(can_manage),
    db: Session = Depends(get_db),
):
    return pipeline_service.update_status(db, entry_id, data.status, user)


@router.patch(
    "/entries/{entry_id}/assignee",
    response_model=EntryRead,
    dependencies=[Depends(require_csrf_header)],
)
def assign(
    entry_id: UUID,
    data: EntryAssign,
    user: User = Depends(can_manage),
    db: Session = Depends(get_db),
):
    return pipeline_service.assign(db, entry_id, data.assignee_id)
