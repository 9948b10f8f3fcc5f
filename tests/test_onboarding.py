"""Tests for volunteer onboarding packets."""

import uuid

import pytest

from automation_engine.core.errors import NotFound
from automation_engine.db.enums import AuditEventType, Role
from automation_engine.db.models import Alert, AuditLog, Notification, OnboardingPacket
from automation_engine.services import onboarding_service
from tests.conftest import make_team, make_user


def test_packet_is_generated_and_emailed(db, volunteer, mail_sender):
    team = make_team(db, volunteer)

    packet = onboarding_service.send_onboarding_packet(db, volunteer.id, mail_sender=mail_sender)

    assert packet.status == "sent"
    assert packet.sent_at is not None
    assert packet.includes == onboarding_service.PACKET_INCLUDES
    assert packet.content["teams"] == [team.name]
    assert packet.content["welcome"] == f"Welcome aboard, {volunteer.display_name}!"

    [mail] = mail_sender.sent
    assert mail["to"] == volunteer.email
    assert mail["idempotency_key"] == f"onboarding/{volunteer.id}"
    assert f"Your team: {team.name}" in mail["body"]
    assert "- Attend your first team meeting" in mail["body"]

    note = db.query(Notification).filter(Notification.entity_id == packet.id).one()
    assert note.user_id == volunteer.id
    assert note.title == "Welcome to the team!"


def test_packet_is_sent_once(db, volunteer, mail_sender):
    first = onboarding_service.send_onboarding_packet(db, volunteer.id, mail_sender=mail_sender)
    second = onboarding_service.send_onboarding_packet(db, volunteer.id, mail_sender=mail_sender)

    assert first.id == second.id
    assert len(mail_sender.sent) == 1
    assert db.query(OnboardingPacket).count() == 1


def test_volunteer_without_email_needs_manual_follow_up(db, mail_sender):
    volunteer = make_user(db, Role.VOLUNTEER, email=None)

    packet = onboarding_service.send_onboarding_packet(db, volunteer.id, mail_sender=mail_sender)

    assert packet.status == "delivery_failed"
    assert "manual follow-up" in packet.notes
    assert packet.sent_at is None
    assert mail_sender.sent == []
    # The in-app welcome still goes out
    assert db.query(Notification).filter(Notification.user_id == volunteer.id).count() == 1


def test_failed_email_is_recorded_not_retried(db, volunteer, mail_sender):
    mail_sender.fail_for.add(volunteer.email)

    packet = onboarding_service.send_onboarding_packet(db, volunteer.id, mail_sender=mail_sender)

    assert packet.status == "delivery_failed"
    assert packet.notes == "Email delivery failed - manual follow-up required"
    audit = db.query(AuditLog).filter(
        AuditLog.event_type == AuditEventType.ONBOARDING_EMAIL_FAILED.value
    ).one()
    assert audit.target_id == packet.id
    assert audit.details["error_type"] == "DeliveryFailed"

    mail_sender.fail_for.clear()
    again = onboarding_service.send_onboarding_packet(db, volunteer.id, mail_sender=mail_sender)
    assert again.status == "delivery_failed"
    assert mail_sender.sent == []


def test_unknown_volunteer_is_not_found(db, founder):
    with pytest.raises(NotFound):
        onboarding_service.send_onboarding_packet(db, uuid.uuid4())
    with pytest.raises(NotFound):
        onboarding_service.on_volunteer_approved(db, uuid.uuid4(), founder)


def test_approval_alerts_departments_once(db, founder, volunteer, mail_sender):
    packet = onboarding_service.on_volunteer_approved(db, volunteer.id, founder, mail_sender=mail_sender)
    again = onboarding_service.on_volunteer_approved(db, volunteer.id, founder, mail_sender=mail_sender)

    assert packet.id == again.id
    alerts = db.query(Alert).filter(Alert.related_entity_id == volunteer.id).all()
    assert sorted(a.department for a in alerts) == ["Operations", "Volunteer Development"]
    assert {a.triggered_by for a in alerts} == {str(founder.id)}
    assert len(mail_sender.sent) == 1
