"""AI action dispatcher.

Maps an action type string to the handler that performs it once a human
has approved. Handlers validate first, then execute; both raise
EngineError subclasses so the approval flow can record the outcome.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable

from sqlalchemy.orm import Session

from automation_engine.core.errors import InvalidPayload, UnsupportedAction
from automation_engine.db.enums import (
    ActionItemType,
    AIActionType,
    AlertSeverity,
    NotificationType,
)
from automation_engine.db.models import User
from automation_engine.services import (
    action_item_service,
    alert_service,
    notification_service,
    pipeline_service,
    summary_service,
)
from automation_engine.services.email_sender import MailSender, get_mail_sender

logger = logging.getLogger(__name__)


def _parse_uuid(value: Any, field: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise InvalidPayload(f"'{field}' must be a UUID")


def _parse_datetime(value: Any, field: str) -> datetime | None:
    if value in (None, ""):
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        raise InvalidPayload(f"'{field}' must be an ISO 8601 datetime")


def _require_text(payload: dict[str, Any], field: str) -> str:
    value = payload.get(field)
    if not isinstance(value, str) or not value.strip():
        raise InvalidPayload(f"'{field}' is required")
    return value.strip()


# ============================================================================
# Base Handler
# ============================================================================

class ActionHandler(ABC):
    """Base class for action handlers."""

    action_type: str = ""

    @abstractmethod
    def validate(self, payload: dict[str, Any], db: Session, actor: User) -> None:
        """Raise InvalidPayload if the payload cannot be executed."""

    @abstractmethod
    def execute(self, payload: dict[str, Any], db: Session, actor: User) -> dict[str, Any]:
        """Perform the action. Returns a JSON-serializable result dict."""


# ============================================================================
# Handlers
# ============================================================================

class CreateActionItemHandler(ActionHandler):
    """Create an action item."""

    action_type = AIActionType.CREATE_ACTION_ITEM.value

    def validate(self, payload: dict[str, Any], db: Session, actor: User) -> None:
        _require_text(payload, "title")
        for raw in payload.get("assignee_ids") or []:
            _parse_uuid(raw, "assignee_ids")
        _parse_datetime(payload.get("due_date"), "due_date")

    def execute(self, payload: dict[str, Any], db: Session, actor: User) -> dict[str, Any]:
        item = action_item_service.create_action_item(
            db,
            title=_require_text(payload, "title"),
            item_type=payload.get("item_type") or ActionItemType.TASK,
            priority=payload.get("priority") or "medium",
            assignee_ids=[_parse_uuid(v, "assignee_ids") for v in payload.get("assignee_ids") or []],
            due_date=_parse_datetime(payload.get("due_date"), "due_date"),
            description=payload.get("description"),
            audience=payload.get("audience"),
            assigned_by_user_id=actor.id,
            metadata={"source": "ai_action"},
        )
        return {"action_item_id": str(item.id)}


class SendNotificationHandler(ActionHandler):
    """Fan out an in-app notification to an audience or explicit recipients."""

    action_type = AIActionType.SEND_NOTIFICATION.value

    def validate(self, payload: dict[str, Any], db: Session, actor: User) -> None:
        _require_text(payload, "title")
        if not payload.get("audience") and not payload.get("recipients"):
            raise InvalidPayload("'audience' or 'recipients' is required")
        for raw in payload.get("recipients") or []:
            _parse_uuid(raw, "recipients")

    def execute(self, payload: dict[str, Any], db: Session, actor: User) -> dict[str, Any]:
        count = notification_service.fan_out(
            db,
            type=NotificationType.GENERAL,
            title=_require_text(payload, "title"),
            message=payload.get("message"),
            audience=payload.get("audience"),
            recipients=[_parse_uuid(v, "recipients") for v in payload.get("recipients") or []],
            action_url=payload.get("action_url"),
        )
        db.commit()
        return {"notifications_created": count}


class SendEmailHandler(ActionHandler):
    """Send one email through the mail collaborator."""

    action_type = AIActionType.SEND_EMAIL.value

    def __init__(self, sender_factory: Callable[[], MailSender] = get_mail_sender):
        self.sender_factory = sender_factory

    def validate(self, payload: dict[str, Any], db: Session, actor: User) -> None:
        to = _require_text(payload, "to")
        if "@" not in to:
            raise InvalidPayload("'to' must be an email address")
        _require_text(payload, "subject")
        _require_text(payload, "body")

    def execute(self, payload: dict[str, Any], db: Session, actor: User) -> dict[str, Any]:
        sender = self.sender_factory()
        sender.send(
            _require_text(payload, "to"),
            _require_text(payload, "subject"),
            _require_text(payload, "body"),
        )
        return {"sent": True, "provider": sender.key}


class AdvancePipelineHandler(ActionHandler):
    """Move a pipeline entry to a named stage, or the next one."""

    action_type = AIActionType.ADVANCE_PIPELINE.value

    def validate(self, payload: dict[str, Any], db: Session, actor: User) -> None:
        _parse_uuid(payload.get("entry_id"), "entry_id")

    def execute(self, payload: dict[str, Any], db: Session, actor: User) -> dict[str, Any]:
        entry_id = _parse_uuid(payload.get("entry_id"), "entry_id")
        stage = payload.get("stage")
        if stage:
            entry = pipeline_service.advance(db, entry_id, stage, actor)
        else:
            entry = pipeline_service.advance_to_next(db, entry_id, actor)
        return {"entry_id": str(entry.id), "current_stage": entry.current_stage}


class CreateAlertHandler(ActionHandler):
    """Raise a cross-department alert."""

    action_type = AIActionType.CREATE_ALERT.value

    def validate(self, payload: dict[str, Any], db: Session, actor: User) -> None:
        _require_text(payload, "department")
        _require_text(payload, "message")
        severity = payload.get("severity") or AlertSeverity.MEDIUM.value
        try:
            AlertSeverity(severity)
        except ValueError:
            raise InvalidPayload(f"Invalid severity '{severity}'")

    def execute(self, payload: dict[str, Any], db: Session, actor: User) -> dict[str, Any]:
        alert = alert_service.create_alert(
            db,
            department=_require_text(payload, "department"),
            severity=payload.get("severity") or AlertSeverity.MEDIUM.value,
            message=_require_text(payload, "message"),
            triggered_by=str(actor.id),
            title=payload.get("title"),
            action_required=bool(payload.get("action_required", False)),
        )
        return {"alert_id": str(alert.id)}


class GenerateWeeklySummaryHandler(ActionHandler):
    """Generate (or regenerate) the weekly summary."""

    action_type = AIActionType.GENERATE_WEEKLY_SUMMARY.value

    def validate(self, payload: dict[str, Any], db: Session, actor: User) -> None:
        _parse_datetime(payload.get("as_of"), "as_of")

    def execute(self, payload: dict[str, Any], db: Session, actor: User) -> dict[str, Any]:
        summary = summary_service.generate_weekly_summary(
            db, now=_parse_datetime(payload.get("as_of"), "as_of")
        )
        return {"summary_id": str(summary.id), "week_of": summary.week_of.isoformat()}


# ============================================================================
# Dispatcher
# ============================================================================

class ActionDispatcher:
    """Capability map from action type to handler."""

    def __init__(self, handlers: list[ActionHandler] | None = None):
        self._handlers: dict[str, ActionHandler] = {}
        for handler in handlers or []:
            self.register(handler)

    def register(self, handler: ActionHandler) -> None:
        self._handlers[handler.action_type] = handler

    def get(self, action_type: str) -> ActionHandler | None:
        return self._handlers.get(action_type)

    @property
    def action_types(self) -> list[str]:
        return sorted(self._handlers)

    def dispatch(self, db: Session, payload: dict[str, Any], actor: User) -> dict[str, Any]:
        """
        Validate and execute payload["type"].

        Raises:
            UnsupportedAction: no handler for the type
            InvalidPayload: handler rejected the payload
            DeliveryFailed, NotFound, UnknownStage, ...: raised by the handler
        """
        action_type = payload.get("type")
        handler = self.get(action_type) if isinstance(action_type, str) else None
        if handler is None:
            raise UnsupportedAction(f"Unknown action type: {action_type}")
        handler.validate(payload, db, actor)
        return handler.execute(payload, db, actor)


def build_default_dispatcher() -> ActionDispatcher:
    return ActionDispatcher([
        CreateActionItemHandler(),
        SendNotificationHandler(),
        SendEmailHandler(),
        AdvancePipelineHandler(),
        CreateAlertHandler(),
        GenerateWeeklySummaryHandler(),
    ])


default_dispatcher = build_default_dispatcher()
