"""Shared route dependencies."""

from fastapi import Request

from agentrun.orchestration.coordinator import RunCoordinator


def get_coordinator(request: Request) -> RunCoordinator:
    """Coordinator attached to the running app."""
    return request.app.state.coordinator
