"""Read-only view of what the deployment worker has done."""

from typing import Annotated

from fastapi import APIRouter, Depends

from deployhook.dependencies import get_history
from deployhook.schemas.events import HistoryResponse
from deployhook.services.history import EventHistory

router = APIRouter(tags=["events"])


@router.get("/events", response_model=HistoryResponse)
async def list_events(history: Annotated[EventHistory, Depends(get_history)]) -> HistoryResponse:
    """Return the retained event history, oldest first."""
    return HistoryResponse(events=history.read())
