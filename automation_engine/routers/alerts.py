"""Alerts router - department alerts."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from automation_engine.core.deps import (
    get_current_user,
    get_db,
    require_csrf_header,
    require_roles,
)
from automation_engine.db.enums import ROLES_CAN_MANAGE_PIPELINE, AlertStatus
from automation_engine.db.models import User
from automation_engine.schemas.alert import AlertCreate, AlertRead
from automation_engine.services import alert_service

router = APIRouter()


@router.get("", response_model=list[AlertRead])
def list_alerts(
    department: str | None = Query(None, description="Department name or 'all'"),
    status: AlertStatus | None = AlertStatus.ACTIVE,
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Alerts for my department by default."""
    return alert_service.list_for_department(
        db, user, department=department, status=status, limit=limit
    )


@router.post(
    "",
    response_model=AlertRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_alert(
    data: AlertCreate,
    user: User = Depends(require_roles(ROLES_CAN_MANAGE_PIPELINE)),
    db: Session = Depends(get_db),
):
    return alert_service.create_alert(
        db,
        department=data.department,
        severity=data.severity,
        message=data.message,
        triggered_by=str(user.id),
        title=data.title,
        action_required=data.action_required,
        deadline=data.deadline,
        related_entity_type=data.related_entity_type,
        related_entity_id=data.related_entity_id,
    )


@router.post(
    "/{alert_id}/acknowledge",
    response_model=AlertRead,
    dependencies=[Depends(require_csrf_header)],
)
def acknowledge(
    alert_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return alert_service.acknowledge_alert(db, alert_id, user)


@router.post(
    "/{alert_id}/resolve",
    response_model=AlertRead,
    dependencies=[Depends(require_csrf_header)],
)
def resolve(
    alert_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return alert_service.resolve_alert(db, alert_id, user)
