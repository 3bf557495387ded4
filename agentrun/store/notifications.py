"""Notification dispatch for accepted mutations.

Fire-and-forget: callbacks run after the mutation is committed and a
failing callback is logged, never propagated to the caller.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from loguru import logger
from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Events emitted after accepted mutations."""

    RUN_CREATED = "run.created"
    RUN_UPDATED = "run.updated"
    RUN_COMPLETED = "run.completed"
    TASK_CREATED = "task.created"
    TASK_UPDATED = "task.updated"


class RunEvent(BaseModel):
    """Notification payload."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    type: EventType
    workspace_id: str
    run_id: str
    task_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


EventCallback = Callable[[RunEvent], Awaitable[None] | None]


class NotificationDispatcher:
    """
    Fan events out to registered callbacks.

    Example:
        >>> dispatcher = NotificationDispatcher()
        >>> dispatcher.add_callback(lambda event: print(event.type))
        >>> await dispatcher.dispatch(event)
        EventType.TASK_CREATED
    """

    def __init__(self) -> None:
        self.callbacks: list[EventCallback] = []

    def add_callback(self, callback: EventCallback) -> None:
        """Register a callback for run events."""
        self.callbacks.append(callback)

    def remove_callback(self, callback: EventCallback) -> None:
        """Remove a registered callback."""
        if callback in self.callbacks:
            self.callbacks.remove(callback)

    async def dispatch(self, event: RunEvent) -> None:
        """Deliver an event to every callback."""
        logger.debug(f"Dispatching {event.type.value} for run {event.run_id}")
        for callback in self.callbacks:
            try:
                result = callback(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Event callback error for {event.type.value}: {e}")
