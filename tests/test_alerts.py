"""Tests for cross-department alerts."""

import uuid

import pytest

from automation_engine.core.errors import AlreadyAcknowledged, Forbidden, InvalidPayload, InvalidTransition
from automation_engine.db.enums import AlertStatus, Role
from automation_engine.db.models import Notification
from automation_engine.services import alert_service
from tests.conftest import make_user


def test_create_notifies_current_department_members(db, founder):
    tech_a = make_user(db, Role.INTERN)  # Technology by default
    tech_b = make_user(db, Role.VOLUNTEER, department="Technology")
    make_user(db, Role.VOLUNTEER)
    make_user(db, Role.INTERN, is_active=False)

    alert = alert_service.create_alert(
        db, department="Technology", severity="high", message="Projector broken", triggered_by=str(founder.id)
    )

    assert alert.status == AlertStatus.ACTIVE.value
    assert alert.title == "Projector broken"
    recipients = {n.user_id for n in db.query(Notification).filter(Notification.entity_id == alert.id)}
    assert recipients == {tech_a.id, tech_b.id}


def test_create_rejects_all_and_bad_severity(db):
    with pytest.raises(InvalidPayload):
        alert_service.create_alert(db, department="all", severity="low", message="x", triggered_by="system")
    with pytest.raises(InvalidPayload):
        alert_service.create_alert(db, department="Outreach", severity="meh", message="x", triggered_by="system")


def test_acknowledge_once(db, founder, intern):
    alert = alert_service.create_alert(
        db, department="Technology", severity="medium", message="Update laptops", triggered_by="system"
    )

    acked = alert_service.acknowledge_alert(db, alert.id, intern)
    assert acked.status == AlertStatus.ACKNOWLEDGED.value
    assert acked.acknowledged_by_user_id == intern.id
    assert acked.acknowledged_at is not None

    with pytest.raises(AlreadyAcknowledged):
        alert_service.acknowledge_alert(db, alert.id, founder)
    assert alert_service.get_alert(db, alert.id).acknowledged_by_user_id == intern.id


def test_acknowledge_other_department_is_forbidden(db, volunteer):
    alert = alert_service.create_alert(
        db, department="Technology", severity="low", message="Rotate passwords", triggered_by="system"
    )

    with pytest.raises(Forbidden):
        alert_service.acknowledge_alert(db, alert.id, volunteer)


def test_resolve_implies_acknowledgment(db, founder):
    alert = alert_service.create_alert(
        db, department="Operations", severity="urgent", message="Bus cancelled", triggered_by="system"
    )

    resolved = alert_service.resolve_alert(db, alert.id, founder)
    assert resolved.status == AlertStatus.RESOLVED.value
    assert resolved.acknowledged_by_user_id == founder.id
    assert resolved.resolved_at is not None

    with pytest.raises(InvalidTransition):
        alert_service.resolve_alert(db, alert.id, founder)


def test_list_scopes_to_own_department(db, founder, intern):
    tech = alert_service.create_alert(
        db, department="Technology", severity="low", message="a", triggered_by="system"
    )
    ops = alert_service.create_alert(
        db, department="Operations", severity="low", message="b", triggered_by="system"
    )

    assert [a.id for a in alert_service.list_for_department(db, intern)] == [tech.id]
    with pytest.raises(Forbidden):
        alert_service.list_for_department(db, intern, department="Operations")
    with pytest.raises(Forbidden):
        alert_service.list_for_department(db, intern, department="all")

    everything = {a.id for a in alert_service.list_for_department(db, founder, department="all")}
    assert everything == {tech.id, ops.id}


def test_list_filters_by_status(db, intern):
    alert = alert_service.create_alert(
        db, department="Technology", severity="low", message="a", triggered_by="system"
    )
    alert_service.acknowledge_alert(db, alert.id, intern)

    assert alert_service.list_for_department(db, intern) == []
    acked = alert_service.list_for_department(db, intern, status=AlertStatus.ACKNOWLEDGED)
    assert [a.id for a in acked] == [alert.id]
    assert len(alert_service.list_for_department(db, intern, status=None)) == 1


def test_volunteer_approval_raises_two_alerts(db, founder):
    alerts = alert_service.alert_volunteer_approval(db, uuid.uuid4(), "Sam Lee", founder)

    assert [a.department for a in alerts] == ["Volunteer Development", "Operations"]
    assert alerts[0].action_required
    assert not alerts[1].action_required


def test_scheduling_conflict_has_deadline(db):
    alert = alert_service.alert_scheduling_conflict(db, uuid.uuid4(), "Two teams booked")

    assert alert.severity == "urgent"
    assert alert.department == "Operations"
    assert alert.deadline is not None
