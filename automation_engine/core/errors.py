"""Engine error kinds.

Services raise these; the API layer renders them as
``{"error": <code>, "detail": <message>}`` with the matching status code.
"""


class EngineError(Exception):
    """Base exception for workflow engine errors."""

    code = "engine_error"
    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or (self.__class__.__doc__ or self.code).strip()


class NotFound(EngineError):
    """Entity not found."""

    code = "not_found"
    status_code = 404


class Forbidden(EngineError):
    """Actor lacks the required relationship or role."""

    code = "forbidden"
    status_code = 403


class InvalidTransition(EngineError):
    """Status change not allowed from the current state."""

    code = "invalid_transition"
    status_code = 409


class AlreadyDecided(EngineError):
    """Action has already been approved or rejected."""

    code = "already_decided"
    status_code = 409


class AlreadyAcknowledged(EngineError):
    """Alert has already been acknowledged."""

    code = "already_acknowledged"
    status_code = 409


class UnsupportedAction(EngineError):
    """No handler is registered for this action type."""

    code = "unsupported_action"
    status_code = 400


class InvalidPayload(EngineError):
    """Action or request payload failed validation."""

    code = "invalid_payload"
    status_code = 422


class UnknownStage(EngineError):
    """Stage is not an active stage for this applicant type."""

    code = "unknown_stage"
    status_code = 400


class DeliveryFailed(EngineError):
    """Downstream delivery (mail, dispatch) failed."""

    code = "delivery_failed"
    status_code = 502
