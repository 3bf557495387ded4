"""Collaborators - persistence, identity resolution and notifications."""

from agentrun.store.base import AgentDirectory, RunStore
from agentrun.store.memory import InMemoryAgentDirectory, InMemoryRunStore
from agentrun.store.notifications import (
    EventCallback,
    EventType,
    NotificationDispatcher,
    RunEvent,
)

__all__ = [
    # Interfaces
    "AgentDirectory",
    "RunStore",
    # In-memory implementations
    "InMemoryAgentDirectory",
    "InMemoryRunStore",
    # Notifications
    "EventCallback",
    "EventType",
    "NotificationDispatcher",
    "RunEvent",
]
