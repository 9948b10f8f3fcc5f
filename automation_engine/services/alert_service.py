"""Cross-department alert service."""

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from automation_engine.core.errors import (
    AlreadyAcknowledged,
    Forbidden,
    InvalidPayload,
    InvalidTransition,
    NotFound,
)
from automation_engine.db.enums import (
    ALL_DEPARTMENTS,
    AlertSeverity,
    AlertStatus,
    Department,
    NotificationType,
    is_privileged,
)
from automation_engine.db.models import Alert, User
from automation_engine.services import identity_service, notification_service
from automation_engine.services.audience_service import Audience

logger = logging.getLogger(__name__)

SCHEDULING_CONFLICT_DEADLINE_HOURS = 4


def _parse_severity(severity: AlertSeverity | str) -> AlertSeverity:
    try:
        return AlertSeverity(severity)
    except ValueError:
        raise InvalidPayload(f"Invalid severity '{severity}'")


def create_alert(
    db: Session,
    department: str,
    severity: AlertSeverity | str,
    message: str,
    triggered_by: str,
    title: str | None = None,
    action_required: bool = False,
    deadline: datetime | None = None,
    related_entity_type: str | None = None,
    related_entity_id: UUID | None = None,
    notify: bool = True,
) -> Alert:
    """
    Create an active alert and notify the department's current members.

    Notification is best-effort; a failure is audited and the alert still
    stands.
    """
    if not department or department == ALL_DEPARTMENTS:
        raise InvalidPayload("A specific department is required")
    if not message or not message.strip():
        raise InvalidPayload("Alert message is required")
    level = _parse_severity(severity)

    alert = Alert(
        department=department,
        severity=level.value,
        title=(title or message)[:255],
        message=message,
        action_required=action_required,
        deadline=deadline,
        related_entity_type=related_entity_type,
        related_entity_id=related_entity_id,
        triggered_by=triggered_by,
        status=AlertStatus.ACTIVE.value,
    )
    db.add(alert)
    db.flush()

    if notify:
        notification_service.fan_out_best_effort(
            db,
            target_type="alert",
            target_id=alert.id,
            type=NotificationType.ALERT,
            title=f"[{level.value.upper()}] {alert.title}",
            message=message,
            audience=Audience.department(department),
            action_url="/admin/alerts",
            entity_type="alert",
            entity_id=alert.id,
        )

    db.commit()
    db.refresh(alert)
    logger.info("Alert %s created for %s (%s)", alert.id, department, level.value)
    return alert


def get_alert(db: Session, alert_id: UUID) -> Alert | None:
    return db.query(Alert).filter(Alert.id == alert_id).first()


def _require_visible_alert(db: Session, alert_id: UUID, actor: User) -> Alert:
    alert = get_alert(db, alert_id)
    if not alert:
        raise NotFound(f"Alert {alert_id} not found")
    if not is_privileged(actor.role) and alert.department != identity_service.department_of(actor):
        raise Forbidden("Alert belongs to another department")
    return alert


def acknowledge_alert(db: Session, alert_id: UUID, actor: User) -> Alert:
    """
    Stamp acknowledged_by/at exactly once.

    Raises:
        NotFound, Forbidden, AlreadyAcknowledged
    """
    alert = _require_visible_alert(db, alert_id, actor)
    now = datetime.now(timezone.utc)
    result = db.execute(
        update(Alert)
        .where(Alert.id == alert.id, Alert.acknowledged_at.is_(None))
        .values(
            acknowledged_by_user_id=actor.id,
            acknowledged_at=now,
            status=AlertStatus.ACKNOWLEDGED.value,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise AlreadyAcknowledged(f"Alert {alert_id} was already acknowledged")
    db.commit()
    db.refresh(alert)
    return alert


def resolve_alert(db: Session, alert_id: UUID, actor: User) -> Alert:
    """Close an alert. Resolving implies acknowledgment if none was recorded."""
    alert = _require_visible_alert(db, alert_id, actor)
    if alert.status == AlertStatus.RESOLVED.value:
        raise InvalidTransition("Alert is already resolved")
    now = datetime.now(timezone.utc)
    if alert.acknowledged_at is None:
        alert.acknowledged_at = now
        alert.acknowledged_by_user_id = actor.id
    alert.status = AlertStatus.RESOLVED.value
    alert.resolved_at = now
    db.commit()
    db.refresh(alert)
    return alert


def list_for_department(
    db: Session,
    viewer: User,
    department: str | None = None,
    status: AlertStatus | None = AlertStatus.ACTIVE,
    limit: int = 50,
) -> list[Alert]:
    """
    Alerts for one department, or every department ("all").

    "all" is privileged-only. Other viewers see their own resolved
    department; asking for another department is Forbidden.
    """
    own_department = identity_service.department_of(viewer)
    privileged = is_privileged(viewer.role)
    target = department or own_department

    if target == ALL_DEPARTMENTS:
        if not privileged:
            raise Forbidden("Only founders and admins can view all departments")
    elif target != own_department and not privileged:
        raise Forbidden("You can only view alerts for your department")

    query = db.query(Alert)
    if target != ALL_DEPARTMENTS:
        query = query.filter(Alert.department == target)
    if status:
        query = query.filter(Alert.status == status.value)
    return query.order_by(Alert.created_at.desc()).limit(limit).all()


def count_created_between(db: Session, since: datetime, until: datetime) -> int:
    return db.query(Alert).filter(Alert.created_at >= since, Alert.created_at < until).count()


# =============================================================================
# Trigger helpers
# =============================================================================


def alert_volunteer_approval(
    db: Session,
    volunteer_id: UUID,
    volunteer_name: str,
    approved_by: User,
) -> list[Alert]:
    """Volunteer approved: Volunteer Development onboards, Operations schedules."""
    return [
        create_alert(
            db,
            department=Department.VOLUNTEER_DEVELOPMENT.value,
            severity=AlertSeverity.MEDIUM,
            title=f"New volunteer approved: {volunteer_name}",
            message=f"{volunteer_name} has been approved. Start onboarding and training.",
            triggered_by=str(approved_by.id),
            action_required=True,
            related_entity_type="volunteer",
            related_entity_id=volunteer_id,
        ),
        create_alert(
            db,
            department=Department.OPERATIONS.value,
            severity=AlertSeverity.LOW,
            title=f"Volunteer available for scheduling: {volunteer_name}",
            message=f"{volunteer_name} can be added to presentation teams once onboarded.",
            triggered_by=str(approved_by.id),
            related_entity_type="volunteer",
            related_entity_id=volunteer_id,
        ),
    ]


def alert_scheduling_conflict(
    db: Session,
    presentation_id: UUID,
    details: str,
    triggered_by: str = "scheduler",
) -> Alert:
    """Urgent Operations alert with a 4 hour resolution window."""
    return create_alert(
        db,
        department=Department.OPERATIONS.value,
        severity=AlertSeverity.URGENT,
        title="Scheduling conflict detected",
        message=details,
        triggered_by=triggered_by,
        action_required=True,
        deadline=datetime.now(timezone.utc) + timedelta(hours=SCHEDULING_CONFLICT_DEADLINE_HOURS),
        related_entity_type="presentation",
        related_entity_id=presentation_id,
    )
