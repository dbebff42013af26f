"""Pydantic response models for the event history endpoint."""

from datetime import datetime

from pydantic import BaseModel


class HistoryRecord(BaseModel):
    """A single thing the deployment worker did."""

    timestamp: datetime
    variant: str
    message: str | None = None


class HistoryResponse(BaseModel):
    """Response model for the /events endpoint."""

    events: list[HistoryRecord]
