"""Structured logging helpers."""

import logging
from typing import Any

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the API process, CLI, or tests."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def build_log_context(
    *,
    user_id: str | None = None,
    job: str | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a log context dict without empty fields (ids only, no message bodies)."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = user_id
    if job:
        context["job"] = job
    if entity_type:
        context["entity_type"] = entity_type
    if entity_id:
        context["entity_id"] = entity_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
