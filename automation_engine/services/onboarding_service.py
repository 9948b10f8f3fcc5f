"""Onboarding automation for approved volunteers.

An approved volunteer gets one onboarding packet: a stored record of what
the welcome kit covers, an in-app welcome and a welcome email. The packet
row is committed before the email goes out, so concurrent approvals send
at most one packet.
"""

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from automation_engine.core.errors import DeliveryFailed, NotFound
from automation_engine.db.enums import AuditEventType, NotificationType, OnboardingPacketStatus
from automation_engine.db.models import OnboardingPacket, Team, TeamMember, User
from automation_engine.services import alert_service, audit_service, identity_service, notification_service
from automation_engine.services.email_sender import MailSender, get_mail_sender

logger = logging.getLogger(__name__)

PACKET_INCLUDES = [
    "Welcome letter and organization overview",
    "Team assignment and contact information",
    "Presentation preparation checklist",
    "Key policies and procedures",
    "Training schedule and resources",
    "File hub access instructions",
    "Contact information for support",
]

NEXT_STEPS = [
    "Complete your volunteer profile in the portal",
    "Upload any required documents to the file hub",
    "Attend your first team meeting",
    "Review presentation templates and materials",
    "Sign up for your first presentation",
]


def get_packet(db: Session, volunteer_id: UUID) -> OnboardingPacket | None:
    return db.query(OnboardingPacket).filter(OnboardingPacket.volunteer_id == volunteer_id).first()


def build_packet_content(db: Session, volunteer: User) -> dict[str, Any]:
    teams = [
        name
        for (name,) in db.query(Team.name)
        .join(TeamMember, TeamMember.team_id == Team.id)
        .filter(TeamMember.user_id == volunteer.id)
        .order_by(Team.name)
        .all()
    ]
    return {
        "welcome": f"Welcome aboard, {volunteer.display_name}!",
        "teams": teams,
        "next_steps": NEXT_STEPS,
    }


def _welcome_body(volunteer: User, content: dict[str, Any]) -> str:
    lines = [content["welcome"], ""]
    if content["teams"]:
        lines.append(f"Your team: {', '.join(content['teams'])}")
    else:
        lines.append("We will assign you to a presentation team shortly.")
    lines += ["", "Next steps:"]
    lines += [f"- {step}" for step in content["next_steps"]]
    return "\n".join(lines)


def send_onboarding_packet(
    db: Session,
    volunteer_id: UUID,
    mail_sender: MailSender | None = None,
) -> OnboardingPacket:
    """
    Generate and send the volunteer's packet. Returns the existing packet
    if one was already generated.

    A failed or impossible welcome email marks the packet delivery_failed
    with a note and an audit entry; it is not retried.

    Raises:
        NotFound: unknown volunteer
    """
    existing = get_packet(db, volunteer_id)
    if existing:
        return existing

    volunteer = identity_service.get_user(db, volunteer_id)
    if not volunteer:
        raise NotFound(f"User {volunteer_id} not found")

    content = build_packet_content(db, volunteer)
    packet = OnboardingPacket(
        volunteer_id=volunteer.id,
        includes=list(PACKET_INCLUDES),
        content=content,
        status=OnboardingPacketStatus.GENERATED.value,
    )
    try:
        with db.begin_nested():
            db.add(packet)
    except IntegrityError:
        # Another approval generated it first
        return get_packet(db, volunteer_id)

    notification_service.fan_out_best_effort(
        db,
        target_type="onboarding_packet",
        target_id=packet.id,
        type=NotificationType.GENERAL,
        title="Welcome to the team!",
        message="Your onboarding packet is ready. Check your email for next steps.",
        recipients=[volunteer.id],
        entity_type="onboarding_packet",
        entity_id=packet.id,
    )
    db.commit()

    mail_sender = mail_sender or get_mail_sender()
    if not volunteer.email:
        packet.status = OnboardingPacketStatus.DELIVERY_FAILED.value
        packet.notes = "No email address on file - manual follow-up required"
    else:
        try:
            mail_sender.send(
                volunteer.email,
                "Welcome to the volunteer team",
                _welcome_body(volunteer, content),
                idempotency_key=f"onboarding/{volunteer.id}",
            )
        except DeliveryFailed as e:
            packet.status = OnboardingPacketStatus.DELIVERY_FAILED.value
            packet.notes = "Email delivery failed - manual follow-up required"
            audit_service.log_side_effect_failure(
                db,
                AuditEventType.ONBOARDING_EMAIL_FAILED,
                target_type="onboarding_packet",
                target_id=packet.id,
                error=e,
            )
        else:
            packet.status = OnboardingPacketStatus.SENT.value
            packet.sent_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(packet)
    logger.info("Onboarding packet for %s: %s", volunteer.id, packet.status)
    return packet


def on_volunteer_approved(
    db: Session,
    volunteer_id: UUID,
    approved_by: User,
    mail_sender: MailSender | None = None,
) -> OnboardingPacket:
    """
    Volunteer approved: alert Volunteer Development and Operations, then
    send the packet. A volunteer who already has a packet gets neither again.
    """
    existing = get_packet(db, volunteer_id)
    if existing:
        return existing

    volunteer = identity_service.get_user(db, volunteer_id)
    if not volunteer:
        raise NotFound(f"User {volunteer_id} not found")

    alert_service.alert_volunteer_approval(db, volunteer.id, volunteer.display_name, approved_by)
    return send_onboarding_packet(db, volunteer.id, mail_sender=mail_sender)
