"""Tests for the recruitment pipeline: enrollment, stage moves, auto-actions."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from automation_engine.core.config import settings
from automation_engine.core.errors import InvalidPayload, InvalidTransition, UnknownStage
from automation_engine.db.enums import ActionItemType, Role
from automation_engine.db.models import (
    ActionItem,
    Alert,
    OnboardingPacket,
    PipelineStageChange,
    StageActionFiring,
)
from automation_engine.services import (
    action_item_service,
    notification_service,
    onboarding_service,
    pipeline_service,
)
from tests.conftest import make_user


BOTH_ACTIONS = {
    "send_notification": True,
    "notification_template_id": "screening-invite",
    "create_followup": True,
    "followup_days": 3,
}


@pytest.fixture
def board(db):
    """New -> Screening (both auto-actions) -> Interview (no actions)."""
    pipeline_service.upsert_stage(db, "volunteer", "New", 1)
    pipeline_service.upsert_stage(db, "volunteer", "Screening", 2, auto_actions=BOTH_ACTIONS)
    pipeline_service.upsert_stage(db, "volunteer", "Interview", 3)
    return pipeline_service.list_stages(db, "volunteer")


def _items(db, entry_id, item_type=None):
    query = db.query(ActionItem).filter(
        ActionItem.related_entity_type == "pipeline_entry",
        ActionItem.related_entity_id == entry_id,
    )
    if item_type:
        query = query.filter(ActionItem.item_type == item_type)
    return query.order_by(ActionItem.created_at).all()


# =============================================================================
# Stage configuration
# =============================================================================

def test_stages_listed_in_order(db, board):
    assert [s.stage_name for s in board] == ["New", "Screening", "Interview"]
    assert board[1].auto_actions["followup_days"] == 3


def test_upsert_rejects_negative_followup_days(db):
    with pytest.raises(InvalidPayload):
        pipeline_service.upsert_stage(
            db, "volunteer", "New", 1, auto_actions={"create_followup": True, "followup_days": -1}
        )


def test_cannot_deactivate_occupied_stage(db, board):
    pipeline_service.enroll(db, uuid.uuid4(), "volunteer")

    with pytest.raises(InvalidTransition):
        pipeline_service.upsert_stage(db, "volunteer", "New", 1, is_active=False)


def test_seed_default_stages_is_idempotent(db):
    created = pipeline_service.seed_default_stages(db, "intern")
    assert [s.stage_name for s in created] == ["New", "Screening", "Interview", "Accepted", "Onboarded"]
    assert pipeline_service.seed_default_stages(db, "intern") == []


# =============================================================================
# Enrollment
# =============================================================================

def test_enroll_places_entry_and_opens_one_review(db, board, founder):
    applicant_id = uuid.uuid4()

    entry = pipeline_service.enroll(db, applicant_id, "volunteer")

    assert entry.current_stage == "New"
    assert entry.status == "new"
    reviews = _items(db, entry.id, ActionItemType.RECRUITMENT_REVIEW)
    assert len(reviews) == 1
    review = reviews[0]
    assert review.assignee_ids == []
    assert review.audience == f"role:{settings.REVIEWER_ROLE}"
    assert review.priority == "high"
    assert review.due_date > datetime.now(timezone.utc) + timedelta(days=2)

    # Reviewers see the unassigned review in their queue
    assert review.id in [i.id for i in action_item_service.list_assigned_to(db, founder)]


def test_enroll_twice_returns_existing_entry(db, board):
    applicant_id = uuid.uuid4()
    first = pipeline_service.enroll(db, applicant_id, "volunteer")
    second = pipeline_service.enroll(db, applicant_id, "volunteer")

    assert first.id == second.id
    assert len(_items(db, first.id, ActionItemType.RECRUITMENT_REVIEW)) == 1


def test_enroll_without_stages_raises(db):
    with pytest.raises(UnknownStage):
        pipeline_service.enroll(db, uuid.uuid4(), "teacher")


# =============================================================================
# Stage moves
# =============================================================================

def test_advance_fires_notification_then_followup(db, board, founder):
    entry = pipeline_service.enroll(db, uuid.uuid4(), "volunteer")
    now = datetime.now(timezone.utc)

    moved = pipeline_service.advance(db, entry.id, "Screening", founder, now=now)

    assert moved.current_stage == "Screening"
    assert moved.status == "in_progress"

    notification = _items(db, entry.id, ActionItemType.NOTIFICATION)
    followup = _items(db, entry.id, ActionItemType.FOLLOW_UP)
    assert len(notification) == 1
    assert len(followup) == 1
    assert notification[0].created_at <= followup[0].created_at
    assert notification[0].item_metadata["template_id"] == "screening-invite"
    assert followup[0].assignee_ids == [founder.id]
    assert followup[0].due_date == now + timedelta(days=3)


def test_followup_goes_to_entry_owner(db, board, founder, intern):
    entry = pipeline_service.enroll(db, uuid.uuid4(), "volunteer")
    pipeline_service.assign(db, entry.id, intern.id)

    pipeline_service.advance(db, entry.id, "Screening", founder)

    followup = _items(db, entry.id, ActionItemType.FOLLOW_UP)[0]
    assert followup.assignee_ids == [intern.id]


def test_reentering_stage_does_not_refire(db, board, founder):
    entry = pipeline_service.enroll(db, uuid.uuid4(), "volunteer")
    pipeline_service.advance(db, entry.id, "Screening", founder)
    pipeline_service.advance(db, entry.id, "New", founder)
    pipeline_service.advance(db, entry.id, "Screening", founder)

    assert len(_items(db, entry.id, ActionItemType.NOTIFICATION)) == 1
    assert len(_items(db, entry.id, ActionItemType.FOLLOW_UP)) == 1
    assert db.query(StageActionFiring).filter(StageActionFiring.entry_id == entry.id).count() == 2

    changes = pipeline_service.get_stage_changes(db, entry.id)
    assert [c.to_stage for c in changes] == ["New", "Screening", "New", "Screening"]


def test_refire_when_dedupe_disabled(db, board, founder, monkeypatch):
    monkeypatch.setattr(settings, "PIPELINE_DEDUPE_AUTO_ACTIONS", False)
    entry = pipeline_service.enroll(db, uuid.uuid4(), "volunteer")
    pipeline_service.advance(db, entry.id, "Screening", founder)
    pipeline_service.advance(db, entry.id, "Screening", founder)

    assert len(_items(db, entry.id, ActionItemType.FOLLOW_UP)) == 2


def test_unknown_stage_leaves_entry_unchanged(db, board, founder):
    entry = pipeline_service.enroll(db, uuid.uuid4(), "volunteer")

    with pytest.raises(UnknownStage):
        pipeline_service.advance(db, entry.id, "Orientation", founder)

    db.expire_all()
    refreshed = pipeline_service.get_entry(db, entry.id)
    assert refreshed.current_stage == "New"
    assert db.query(PipelineStageChange).filter(PipelineStageChange.entry_id == entry.id).count() == 1


def test_inactive_stage_is_not_a_target(db, board, founder):
    pipeline_service.upsert_stage(db, "volunteer", "Interview", 3, is_active=False)
    entry = pipeline_service.enroll(db, uuid.uuid4(), "volunteer")

    with pytest.raises(UnknownStage):
        pipeline_service.advance(db, entry.id, "Interview", founder)


def test_advance_to_next_walks_the_board(db, board, founder):
    entry = pipeline_service.enroll(db, uuid.uuid4(), "volunteer")

    assert pipeline_service.advance_to_next(db, entry.id, founder).current_stage == "Screening"
    assert pipeline_service.advance_to_next(db, entry.id, founder).current_stage == "Interview"
    with pytest.raises(InvalidTransition):
        pipeline_service.advance_to_next(db, entry.id, founder)


# =============================================================================
# Status
# =============================================================================

def test_decision_closes_the_review(db, board, founder):
    entry = pipeline_service.enroll(db, uuid.uuid4(), "volunteer")
    pipeline_service.update_status(db, entry.id, "in_progress", founder)

    decided = pipeline_service.update_status(db, entry.id, "accepted", founder)

    assert decided.status == "accepted"
    review = _items(db, entry.id, ActionItemType.RECRUITMENT_REVIEW)[0]
    assert review.status == "completed"
    assert review.completed_by_user_id == founder.id
    notes = action_item_service.list_comments(db, review.id, founder)
    assert [c.body for c in notes] == ["Application status changed to accepted"]
    assert notes[0].is_internal


def test_status_machine_rejects_illegal_moves(db, board, founder):
    entry = pipeline_service.enroll(db, uuid.uuid4(), "volunteer")

    with pytest.raises(InvalidTransition):
        pipeline_service.update_status(db, entry.id, "onboarded", founder)
    with pytest.raises(InvalidTransition):
        pipeline_service.update_status(db, entry.id, "hired", founder)


# =============================================================================
# Reviewer broadcast and onboarding
# =============================================================================

def test_enroll_broadcasts_to_reviewer_role(db, board, founder, volunteer):
    entry = pipeline_service.enroll(db, uuid.uuid4(), "volunteer")

    visible = [n for n in notification_service.list_for_user(db, founder) if n.entity_id == entry.id]
    assert len(visible) == 1
    assert visible[0].audience_role == settings.REVIEWER_ROLE
    assert visible[0].title == "New volunteer application"
    assert not [n for n in notification_service.list_for_user(db, volunteer) if n.entity_id == entry.id]


def test_accepting_a_volunteer_sends_onboarding_once(db, board, founder):
    applicant = make_user(db, Role.VOLUNTEER)
    entry = pipeline_service.enroll(db, applicant.id, "volunteer")
    pipeline_service.update_status(db, entry.id, "in_progress", founder)

    pipeline_service.update_status(db, entry.id, "accepted", founder)

    packet = onboarding_service.get_packet(db, applicant.id)
    assert packet is not None
    assert packet.status == "sent"
    alerts = db.query(Alert).filter(Alert.related_entity_id == applicant.id).all()
    assert sorted(a.department for a in alerts) == ["Operations", "Volunteer Development"]

    # A second acceptance path does not repeat the packet or the alerts
    onboarding_service.on_volunteer_approved(db, applicant.id, founder)
    assert db.query(Alert).filter(Alert.related_entity_id == applicant.id).count() == 2


def test_accepting_an_unknown_applicant_skips_onboarding(db, board, founder):
    entry = pipeline_service.enroll(db, uuid.uuid4(), "volunteer")
    pipeline_service.update_status(db, entry.id, "in_progress", founder)

    decided = pipeline_service.update_status(db, entry.id, "accepted", founder)

    assert decided.status == "accepted"
    assert db.query(OnboardingPacket).count() == 0
