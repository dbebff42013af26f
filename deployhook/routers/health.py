"""Health check endpoint reporting the dispatch backlog."""

from typing import Annotated

from fastapi import APIRouter, Depends

from deployhook.dependencies import get_event_queue
from deployhook.schemas.health import HealthResponse
from deployhook.services.dispatch import EventQueue

router = APIRouter()


@router.get("/healthz", response_model=HealthResponse)
async def healthz(event_queue: Annotated[EventQueue, Depends(get_event_queue)]) -> HealthResponse:
    """Report liveness and how many events are waiting for the worker."""
    return HealthResponse(status="ok", queued_events=event_queue.qsize())
