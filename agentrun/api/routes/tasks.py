"""
Tasks API Routes.

Create and transition tasks within a run.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from agentrun.api.routes.deps import get_coordinator
from agentrun.decomposition.models import AgentTask, TaskCreate, TaskUpdate
from agentrun.orchestration.coordinator import RunCoordinator

router = APIRouter()


@router.get("/{run_id}/tasks", response_model=list[AgentTask])
async def list_tasks(
    run_id: str,
    coordinator: RunCoordinator = Depends(get_coordinator),
) -> list[AgentTask]:
    """List a run's tasks in creation order."""
    return await coordinator.list_tasks(run_id)


@router.post("/{run_id}/tasks", response_model=AgentTask, status_code=201)
async def create_task(
    run_id: str,
    body: TaskCreate,
    coordinator: RunCoordinator = Depends(get_coordinator),
) -> AgentTask:
    """
    Create a task in a run.

    Raises:
        OrchestrationError: Rendered as 400/404/409 by the app's handler.
    """
    return await coordinator.create_task(run_id, body)


@router.get("/{run_id}/tasks/{task_id}", response_model=AgentTask)
async def get_task(
    run_id: str,
    task_id: str,
    coordinator: RunCoordinator = Depends(get_coordinator),
) -> AgentTask:
    return await coordinator.get_task(run_id, task_id)


@router.patch("/{run_id}/tasks/{task_id}", response_model=AgentTask)
async def update_task(
    run_id: str,
    task_id: str,
    body: TaskUpdate,
    coordinator: RunCoordinator = Depends(get_coordinator),
) -> AgentTask:
    """Update a task's title, assignee, output or status."""
    return await coordinator.update_task(run_id, task_id, body)
