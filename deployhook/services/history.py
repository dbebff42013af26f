"""Bounded in-memory record of what the deployment worker has done."""

from __future__ import annotations

import enum
from collections import deque
from datetime import UTC, datetime

from deployhook.schemas.events import HistoryRecord


class EventVariant(enum.StrEnum):
    PING = "ping"
    PULL = "pull"
    BUILD = "build"
    RESTART = "restart"
    COMMANDS = "commands"
    SKIPPED = "skipped"
    FAILURE = "failure"


class EventHistory:
    """Timestamped events, oldest first, capped at ``maxlen`` entries.

    Only the dispatch consumer writes; readers get a snapshot copy.
    """

    def __init__(self, maxlen: int = 500) -> None:
        self._records: deque[HistoryRecord] = deque(maxlen=maxlen)

    def push(self, variant: EventVariant, message: str | None = None) -> HistoryRecord:
        record = HistoryRecord(
            timestamp=datetime.now(UTC),
            variant=variant.value,
            message=message,
        )
        self._records.append(record)
        return record

    def read(self) -> list[HistoryRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)
