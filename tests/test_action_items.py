"""Tests for the action item store: lifecycle, permissions, history, sweep."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from automation_engine.core.errors import Forbidden, InvalidPayload, InvalidTransition, NotFound
from automation_engine.db.enums import (
    ActionItemHistoryAction,
    ActionItemStatus,
    ActionItemType,
    Role,
)
from automation_engine.db.models import ActionItemHistory, Notification
from automation_engine.services import action_item_service
from tests.conftest import make_team, make_user


def _history_actions(db, item_id):
    return [
        h.action
        for h in db.query(ActionItemHistory).filter(ActionItemHistory.action_item_id == item_id)
    ]


def _create(db, assigner, assignees, **kwargs):
    return action_item_service.create_action_item(
        db,
        title=kwargs.pop("title", "Prepare presentation kit"),
        item_type=kwargs.pop("item_type", ActionItemType.TASK),
        assignee_ids=[a.id for a in assignees],
        assigned_by_user_id=assigner.id if assigner else None,
        **kwargs,
    )


# =============================================================================
# Create
# =============================================================================

def test_create_starts_pending_with_one_created_entry(db, founder, volunteer):
    item = _create(db, founder, [volunteer], priority="high")

    assert item.status == ActionItemStatus.PENDING.value
    assert item.priority == "high"
    assert item.assignee_ids == [volunteer.id]
    assert item.completed_at is None
    assert _history_actions(db, item.id) == [ActionItemHistoryAction.CREATED.value]


def test_create_notifies_assignees_except_assigner(db, founder, volunteer):
    item = _create(db, founder, [volunteer, founder])

    recipients = {n.user_id for n in db.query(Notification).filter(Notification.entity_id == item.id)}
    assert recipients == {volunteer.id}


def test_create_without_assignees_defaults_to_reviewer_audience(db, founder):
    item = _create(db, founder, [])

    assert item.assignee_ids == []
    assert item.audience == "role:founder"


def test_create_rejects_blank_title_and_bad_priority(db, founder):
    with pytest.raises(InvalidPayload):
        _create(db, founder, [], title="   ")
    with pytest.raises(InvalidPayload):
        _create(db, founder, [], priority="critical")


def test_create_rejects_malformed_audience(db, founder):
    with pytest.raises(InvalidPayload):
        _create(db, founder, [], audience="role:wizard")


# =============================================================================
# Transitions
# =============================================================================

def test_complete_stamps_and_reopen_clears(db, founder, volunteer):
    item = _create(db, founder, [volunteer])

    action_item_service.transition_status(db, item.id, ActionItemStatus.IN_PROGRESS, volunteer)
    done = action_item_service.transition_status(db, item.id, ActionItemStatus.COMPLETED, volunteer)
    assert done.status == "completed"
    assert done.completed_by_user_id == volunteer.id
    assert done.completed_at is not None

    history = _history_actions(db, item.id)
    assert history.count(ActionItemHistoryAction.STATUS_CHANGED.value) == 2


def test_terminal_states_reject_every_transition(db, founder, volunteer):
    item = _create(db, founder, [volunteer])
    action_item_service.transition_status(db, item.id, ActionItemStatus.CANCELLED, founder)

    for target in ActionItemStatus:
        with pytest.raises(InvalidTransition):
            action_item_service.transition_status(db, item.id, target, founder)

    refreshed = action_item_service.get_action_item(db, item.id)
    assert refreshed.status == "cancelled"
    assert refreshed.completed_at is None


def test_non_assignee_is_forbidden(db, founder, volunteer, other_volunteer):
    item = _create(db, founder, [volunteer])

    with pytest.raises(Forbidden):
        action_item_service.transition_status(db, item.id, "in_progress", other_volunteer)

    assert _history_actions(db, item.id) == [ActionItemHistoryAction.CREATED.value]


def test_audience_member_can_act_on_unassigned_item(db, founder, volunteer, other_volunteer):
    team = make_team(db, volunteer)
    item = _create(db, founder, [], audience=f"team:{team.id}")

    updated = action_item_service.transition_status(db, item.id, "in_progress", volunteer)
    assert updated.status == "in_progress"
    with pytest.raises(Forbidden):
        action_item_service.transition_status(db, item.id, "completed", other_volunteer)


def test_overdue_requires_past_due_date(db, founder, volunteer):
    future = datetime.now(timezone.utc) + timedelta(days=2)
    item = _create(db, founder, [volunteer], due_date=future)

    with pytest.raises(InvalidTransition):
        action_item_service.transition_status(db, item.id, "overdue", founder)


def test_overdue_can_still_be_completed(db, founder, volunteer):
    now = datetime.now(timezone.utc)
    item = _create(db, founder, [volunteer], due_date=now - timedelta(hours=1))
    action_item_service.transition_status(db, item.id, "overdue", None, now=now)

    done = action_item_service.transition_status(db, item.id, "completed", volunteer)
    assert done.status == "completed"
    assert done.completed_by_user_id == volunteer.id


def test_system_actor_can_only_mark_overdue(db, founder, volunteer):
    item = _create(db, founder, [volunteer])

    for target in ("in_progress", "completed", "cancelled"):
        with pytest.raises(InvalidTransition):
            action_item_service.transition_status(db, item.id, target, None)

    refreshed = action_item_service.get_action_item(db, item.id)
    assert refreshed.status == "pending"
    assert refreshed.completed_by_user_id is None
    assert _history_actions(db, item.id) == [ActionItemHistoryAction.CREATED.value]


def test_unknown_item_raises_not_found(db, founder):
    with pytest.raises(NotFound):
        action_item_service.transition_status(db, uuid.uuid4(), "completed", founder)


def test_bulk_transition_reports_per_item_failures(db, founder, volunteer):
    ok = _create(db, founder, [volunteer])
    closed = _create(db, founder, [volunteer])
    action_item_service.transition_status(db, closed.id, "cancelled", founder)

    result = action_item_service.bulk_transition(
        db, [ok.id, closed.id, uuid.uuid4()], "completed", founder
    )

    assert result["processed"] == 1
    assert result["failed"] == 2
    assert {e["error"] for e in result["errors"]} == {"invalid_transition", "not_found"}


# =============================================================================
# Overdue sweep
# =============================================================================

def test_sweep_marks_only_open_past_due_items(db, founder, volunteer):
    now = datetime.now(timezone.utc)
    past_due = _create(db, founder, [volunteer], due_date=now - timedelta(days=1))
    not_due = _create(db, founder, [volunteer], due_date=now + timedelta(days=1))
    finished = _create(db, founder, [volunteer], due_date=now - timedelta(days=1))
    action_item_service.transition_status(db, finished.id, "completed", volunteer)

    result = action_item_service.sweep_overdue(db, now=now)

    assert result == {"processed": 1, "failed": 0}
    assert action_item_service.get_action_item(db, past_due.id).status == "overdue"
    assert action_item_service.get_action_item(db, not_due.id).status == "pending"
    assert action_item_service.get_action_item(db, finished.id).status == "completed"

    # Second pass has nothing left to do
    assert action_item_service.sweep_overdue(db, now=now) == {"processed": 0, "failed": 0}


def test_list_overdue_includes_unswept_items(db, founder, volunteer):
    now = datetime.now(timezone.utc)
    item = _create(db, founder, [volunteer], due_date=now - timedelta(minutes=5))

    assert [i.id for i in action_item_service.list_overdue(db, now=now)] == [item.id]


# =============================================================================
# Comments, delegation, reads
# =============================================================================

def test_comment_history_truncates_to_100_chars(db, founder, volunteer):
    item = _create(db, founder, [volunteer])
    body = "x" * 250

    action_item_service.add_comment(db, item.id, volunteer, body)

    entry = db.query(ActionItemHistory).filter(
        ActionItemHistory.action_item_id == item.id,
        ActionItemHistory.action == ActionItemHistoryAction.COMMENTED.value,
    ).one()
    assert entry.new_value == "x" * 100


def test_comment_requires_relationship(db, founder, volunteer, other_volunteer):
    item = _create(db, founder, [volunteer])
    with pytest.raises(Forbidden):
        action_item_service.add_comment(db, item.id, other_volunteer, "hello")


def test_internal_comments_hidden_from_assignee(db, founder, volunteer):
    item = _create(db, founder, [volunteer])
    action_item_service.add_comment(db, item.id, founder, "visible")
    action_item_service.add_comment(db, item.id, founder, "reviewer notes", is_internal=True)

    assert [c.body for c in action_item_service.list_comments(db, item.id, volunteer)] == ["visible"]
    assert len(action_item_service.list_comments(db, item.id, founder)) == 2


def test_edit_comment_author_only(db, founder, volunteer, other_volunteer):
    item = _create(db, founder, [volunteer, other_volunteer])
    comment = action_item_service.add_comment(db, item.id, volunteer, "first")

    with pytest.raises(Forbidden):
        action_item_service.edit_comment(db, comment.id, other_volunteer, "hijack")

    edited = action_item_service.edit_comment(db, comment.id, volunteer, "second")
    assert edited.body == "second"
    assert edited.updated_at is not None
    assert ActionItemHistoryAction.COMMENT_EDITED.value in _history_actions(db, item.id)


def test_delegate_replaces_assignees(db, founder, volunteer, other_volunteer):
    item = _create(db, founder, [volunteer])

    with pytest.raises(Forbidden):
        action_item_service.delegate(db, item.id, [other_volunteer.id], volunteer)

    updated = action_item_service.delegate(db, item.id, [other_volunteer.id], founder)
    assert updated.assignee_ids == [other_volunteer.id]
    assert ActionItemHistoryAction.DELEGATED.value in _history_actions(db, item.id)


def test_list_assigned_to_follows_live_role(db, founder, volunteer):
    item = _create(db, founder, [], audience="role:intern")
    assert action_item_service.list_assigned_to(db, volunteer) == []

    volunteer.role = Role.INTERN.value
    db.commit()

    assert [i.id for i in action_item_service.list_assigned_to(db, volunteer)] == [item.id]


def test_list_by_entity(db, founder, volunteer):
    entity_id = uuid.uuid4()
    item = _create(
        db, founder, [volunteer], related_entity_type="presentation", related_entity_id=entity_id
    )
    _create(db, founder, [volunteer])

    assert [i.id for i in action_item_service.list_by_entity(db, "presentation", entity_id)] == [item.id]


def test_dashboard_stats_counts_visible_items(db, founder, volunteer):
    now = datetime.now(timezone.utc)
    _create(db, founder, [volunteer], priority="urgent")
    _create(db, founder, [volunteer], due_date=now - timedelta(days=1))
    done = _create(db, founder, [volunteer])
    action_item_service.transition_status(db, done.id, "completed", volunteer)
    _create(db, founder, [make_user(db, Role.VOLUNTEER)])

    stats = action_item_service.dashboard_stats(db, volunteer, now=now)

    assert stats["total"] == 3
    assert stats["pending"] == 2
    assert stats["completed"] == 1
    assert stats["overdue"] == 1
    assert stats["urgent"] == 1
