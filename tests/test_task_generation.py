"""Tests for generated tasks: presentations, teacher requests, intern work."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from automation_engine.core.config import settings
from automation_engine.core.errors import InvalidPayload, NotFound
from automation_engine.db.enums import ActionItemType, Role
from automation_engine.db.models import ActionItem, Alert, Presentation, TeacherRequest
from automation_engine.services import action_item_service, task_generation_service
from tests.conftest import make_team, make_user

NOW = datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)


def _presentation(db, team=None, captain=None, at=None, status="scheduled"):
    presentation = Presentation(
        id=uuid.uuid4(),
        team_id=team.id if team else None,
        captain_user_id=captain.id if captain else None,
        school_name="Lincoln Middle School",
        topic="Healthy habits",
        scheduled_at=at or NOW + timedelta(days=14),
        teacher_email="teacher@school.org",
        status=status,
    )
    db.add(presentation)
    db.commit()
    return presentation


def _teacher_request(db, special_requirements=None):
    request = TeacherRequest(
        id=uuid.uuid4(),
        school_name="Roosevelt Elementary",
        contact_name="Ms. Rivera",
        contact_email="rivera@school.org",
        grade_level="5th",
        subject="Science",
        student_count=28,
        preferred_dates=["2026-03-20", "2026-03-27"],
        special_requirements=special_requirements,
    )
    db.add(request)
    db.commit()
    return request


def _alerts(db, entity_id):
    return db.query(Alert).filter(Alert.related_entity_id == entity_id).all()


def _by_kind(items):
    return {item.item_metadata["task_kind"]: item for item in items}


# =============================================================================
# Presentations
# =============================================================================

def test_presentation_tasks_are_due_around_the_date(db, volunteer):
    presentation = _presentation(db, make_team(db, volunteer), captain=volunteer)

    created = task_generation_service.generate_for_presentation(db, presentation.id)

    tasks = _by_kind(created)
    assert set(tasks) == {"checklist", "follow_up_email", "impact_assessment"}
    at = presentation.scheduled_at
    assert tasks["checklist"].due_date == at - timedelta(days=7)
    assert tasks["checklist"].priority == "high"
    assert tasks["checklist"].item_type == ActionItemType.CHECKLIST
    assert tasks["follow_up_email"].due_date == at + timedelta(days=1)
    assert tasks["follow_up_email"].item_metadata["contact_email"] == "teacher@school.org"
    assert tasks["impact_assessment"].due_date == at + timedelta(days=7)
    assert all(item.assignee_ids == [volunteer.id] for item in created)
    assert all(item.is_system_generated for item in created)
    assert tasks["checklist"].generation_key == f"presentation:{presentation.id}:checklist"


def test_presentation_without_captain_goes_to_team(db, volunteer):
    team = make_team(db, volunteer)
    presentation = _presentation(db, team)

    created = task_generation_service.generate_for_presentation(db, presentation.id)

    assert all(item.assignee_ids == [] for item in created)
    assert {item.audience for item in created} == {f"team:{team.id}"}
    assert created[0].id in [i.id for i in action_item_service.list_assigned_to(db, volunteer)]


def test_presentation_without_team_goes_to_reviewers(db):
    presentation = _presentation(db)

    created = task_generation_service.generate_for_presentation(db, presentation.id)

    assert {item.audience for item in created} == {f"role:{settings.REVIEWER_ROLE}"}


def test_presentation_generation_is_idempotent(db, volunteer):
    presentation = _presentation(db, make_team(db, volunteer))
    task_generation_service.generate_for_presentation(db, presentation.id)

    again = task_generation_service.generate_for_presentation(db, presentation.id)

    assert again == []
    count = db.query(ActionItem).filter(ActionItem.related_entity_id == presentation.id).count()
    assert count == 3


def test_team_double_booking_raises_conflict_alert(db, volunteer):
    team = make_team(db, volunteer)
    first = _presentation(db, team)
    second = _presentation(db, team, at=first.scheduled_at + timedelta(hours=2))
    _presentation(db, team, at=first.scheduled_at + timedelta(days=1))

    task_generation_service.generate_for_presentation(db, second.id)

    alerts = _alerts(db, second.id)
    assert len(alerts) == 1
    assert alerts[0].department == "Operations"
    assert alerts[0].severity == "urgent"
    assert "Lincoln Middle School" in alerts[0].message

    # Regenerating creates nothing, so no second alert
    task_generation_service.generate_for_presentation(db, second.id)
    assert len(_alerts(db, second.id)) == 1


def test_cancelled_presentations_do_not_conflict(db, volunteer):
    team = make_team(db, volunteer)
    first = _presentation(db, team, status="cancelled")
    second = _presentation(db, team, at=first.scheduled_at + timedelta(hours=1))

    task_generation_service.generate_for_presentation(db, second.id)

    assert _alerts(db, second.id) == []


def test_cancelled_presentation_rejected(db):
    presentation = _presentation(db, status="cancelled")

    with pytest.raises(InvalidPayload):
        task_generation_service.generate_for_presentation(db, presentation.id)
    with pytest.raises(NotFound):
        task_generation_service.generate_for_presentation(db, uuid.uuid4())


# =============================================================================
# Teacher requests
# =============================================================================

def test_teacher_request_tasks_and_coordination_alerts(db):
    request = _teacher_request(db)

    created = task_generation_service.generate_for_teacher_request(db, request.id, now=NOW)

    tasks = _by_kind(created)
    assert set(tasks) == {"outreach", "curriculum_review", "team_assignment"}
    assert tasks["outreach"].due_date == NOW + timedelta(days=2)
    assert tasks["outreach"].priority == "high"
    assert tasks["outreach"].audience == "department:Outreach"
    assert tasks["outreach"].item_metadata["preferred_dates"] == ["2026-03-20", "2026-03-27"]
    assert tasks["curriculum_review"].due_date == NOW + timedelta(days=3)
    assert tasks["team_assignment"].due_date == NOW + timedelta(days=5)
    assert tasks["team_assignment"].audience == "department:Operations"

    alerts = {a.department: a for a in _alerts(db, request.id)}
    assert set(alerts) == {"Outreach", "Operations"}
    assert alerts["Outreach"].severity == "high"
    assert alerts["Operations"].severity == "medium"
    assert alerts["Outreach"].action_required
    assert alerts["Outreach"].deadline == NOW + timedelta(days=2)


def test_supplies_task_only_with_special_requirements(db):
    plain = _teacher_request(db)
    needs_kit = _teacher_request(db, special_requirements="Projector and 30 lab kits")

    plain_kinds = _by_kind(task_generation_service.generate_for_teacher_request(db, plain.id, now=NOW))
    kit_kinds = _by_kind(task_generation_service.generate_for_teacher_request(db, needs_kit.id, now=NOW))

    assert "supplies" not in plain_kinds
    assert kit_kinds["supplies"].description == "Projector and 30 lab kits"
    assert kit_kinds["supplies"].item_type == ActionItemType.SUPPLY_REQUEST


def test_teacher_request_generation_is_idempotent(db):
    request = _teacher_request(db)
    task_generation_service.generate_for_teacher_request(db, request.id, now=NOW)

    again = task_generation_service.generate_for_teacher_request(db, request.id, now=NOW)

    assert again == []
    assert len(_alerts(db, request.id)) == 2


# =============================================================================
# Intern tasks
# =============================================================================

def test_intern_task_with_coordinating_department(db, founder, intern):
    item = action_item_service.create_action_item(
        db,
        title="Build volunteer FAQ",
        item_type="task",
        assignee_ids=[intern.id],
        assigned_by_user_id=founder.id,
        due_date=NOW + timedelta(days=10),
    )

    created = task_generation_service.generate_for_intern_task(
        db, item.id, supervisor_id=founder.id, coordinating_department="Outreach"
    )

    tasks = _by_kind(created)
    assert set(tasks) == {"coordination", "review"}
    assert tasks["coordination"].audience == "department:Outreach"
    assert tasks["coordination"].due_date == item.created_at + timedelta(days=3)
    assert tasks["review"].assignee_ids == [founder.id]
    assert tasks["review"].due_date == item.due_date
    assert tasks["review"].item_metadata["interns"] == [str(intern.id)]

    alerts = _alerts(db, item.id)
    assert [a.department for a in alerts] == ["Outreach"]
    assert alerts[0].severity == "high"


def test_intern_task_without_department_only_reviews(db, founder, intern):
    item = action_item_service.create_action_item(
        db, title="Sort donations", item_type="task", assignee_ids=[intern.id]
    )

    created = task_generation_service.generate_for_intern_task(db, item.id)

    assert [i.item_metadata["task_kind"] for i in created] == ["review"]
    assert created[0].audience == f"role:{settings.REVIEWER_ROLE}"
    assert _alerts(db, item.id) == []


def test_intern_task_rejects_unknown_department(db, intern):
    item = action_item_service.create_action_item(
        db, title="Sort donations", item_type="task", assignee_ids=[intern.id]
    )

    with pytest.raises(InvalidPayload):
        task_generation_service.generate_for_intern_task(db, item.id, coordinating_department="Marketing")

    assert db.query(ActionItem).count() == 1


def test_department_members_see_coordination_tasks(db, founder):
    outreach = make_user(db, Role.VOLUNTEER, department="Outreach")
    request = _teacher_request(db)

    task_generation_service.generate_for_teacher_request(db, request.id, actor=founder, now=NOW)

    items = db.query(ActionItem).filter(ActionItem.related_entity_id == request.id).all()
    assert {i.assigned_by_user_id for i in items} == {founder.id}
    visible = action_item_service.list_assigned_to(db, outreach)
    assert {i.item_metadata["task_kind"] for i in visible} == {"outreach", "curriculum_review"}
