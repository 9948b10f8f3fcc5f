"""Scheduled job responses."""

from pydantic import BaseModel, ConfigDict


class PeriodicJobResult(BaseModel):
    """Counts from one periodic pass; jobs may add their own counters."""
    model_config = ConfigDict(extra="allow")

    processed: int
    failed: int
