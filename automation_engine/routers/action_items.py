"""Action items router - create, transition, comment, delegate."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from automation_engine.core.deps import get_current_user, get_db, require_csrf_header
from automation_engine.core.errors import Forbidden
from automation_engine.db.enums import ActionItemStatus, is_privileged
from automation_engine.db.models import User
from automation_engine.schemas.action_item import (
    ActionItemBulkStatusUpdate,
    ActionItemCreate,
    ActionItemDelegate,
    ActionItemRead,
    ActionItemStatusUpdate,
    BulkResult,
    CommentCreate,
    CommentRead,
    CommentUpdate,
    DashboardStats,
    HistoryRead,
)
from automation_engine.services import action_item_service

router = APIRouter()


@router.get("", response_model=list[ActionItemRead])
def list_my_action_items(
    status: ActionItemStatus | None = None,
    include_closed: bool = False,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Items assigned to me, plus unassigned items for audiences I belong to."""
    return action_item_service.list_assigned_to(
        db, user, status=status, include_closed=include_closed
    )


@router.get("/stats", response_model=DashboardStats)
def get_dashboard_stats(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return action_item_service.dashboard_stats(db, user)


@router.get("/overdue", response_model=list[ActionItemRead])
def list_overdue(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not is_privileged(user.role):
        raise Forbidden("Only founders and admins can list all overdue items")
    return action_item_service.list_overdue(db)


@router.get("/by-entity", response_model=list[ActionItemRead])
def list_by_entity(
    entity_type: str = Query(..., min_length=1),
    entity_id: UUID = Query(...),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items = action_item_service.list_by_entity(db, entity_type, entity_id)
    if is_privileged(user.role):
        return items
    return [item for item in items if action_item_service.can_act_on(db, item, user)]


@router.post(
    "",
    response_model=ActionItemRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_action_item(
    data: ActionItemCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return action_item_service.create_action_item(
        db,
        title=data.title,
        item_type=data.item_type,
        priority=data.priority,
        assignee_ids=data.assignee_ids,
        due_date=data.due_date,
        metadata=data.metadata,
        description=data.description,
        related_entity_type=data.related_entity_type,
        related_entity_id=data.related_entity_id,
        audience=data.audience,
        assigned_by_user_id=user.id,
    )


@router.post(
    "/bulk-status",
    response_model=BulkResult,
    dependencies=[Depends(require_csrf_header)],
)
def bulk_update_status(
    data: ActionItemBulkStatusUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Per-item failures are reported, not raised."""
    return action_item_service.bulk_transition(db, data.ids, data.status, user)


@router.get("/{item_id}", response_model=ActionItemRead)
def get_action_item(
    item_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    item = action_item_service.require_action_item(db, item_id)
    if not action_item_service.can_act_on(db, item, user):
        raise Forbidden("Not allowed to view this item")
    return item


@router.patch(
    "/{item_id}/status",
    response_model=ActionItemRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_status(
    item_id: UUID,
    data: ActionItemStatusUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return action_item_service.transition_status(db, item_id, data.status, user)


@router.put(
    "/{item_id}/assignees",
    response_model=ActionItemRead,
    dependencies=[Depends(require_csrf_header)],
)
def delegate(
    item_id: UUID,
    data: ActionItemDelegate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return action_item_service.delegate(db, item_id, data.assignee_ids, user)


@router.get("/{item_id}/comments", response_model=list[CommentRead])
def list_comments(
    item_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return action_item_service.list_comments(db, item_id, user)


@router.post(
    "/{item_id}/comments",
    response_model=CommentRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def add_comment(
    item_id: UUID,
    data: CommentCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return action_item_service.add_comment(db, item_id, user, data.body, data.is_internal)


@router.patch(
    "/comments/{comment_id}",
    response_model=CommentRead,
    dependencies=[Depends(require_csrf_header)],
)
def edit_comment(
    comment_id: UUID,
    data: CommentUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return action_item_service.edit_comment(db, comment_id, user, data.body)


@router.get("/{item_id}/history", response_model=list[HistoryRead])
def get_history(
    item_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    item = action_item_service.require_action_item(db, item_id)
    if not action_item_service.can_act_on(db, item, user):
        raise Forbidden("Not allowed to view this item")
    return action_item_service.get_history(db, item_id)
