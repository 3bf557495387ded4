"""
Runs API Routes.

Create, list, inspect and transition agent runs.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from agentrun.api.routes.deps import get_coordinator
from agentrun.decomposition.models import AgentRun, RunCreate, RunUpdate
from agentrun.monitoring.board import Board, RunSummary
from agentrun.orchestration.coordinator import RunCoordinator

router = APIRouter()


# ============================================================================
# Response Models
# ============================================================================


class Pagination(BaseModel):
    """Pagination metadata."""

    limit: int
    offset: int
    total: int


class RunListResponse(BaseModel):
    """Page of runs."""

    data: list[AgentRun]
    pagination: Pagination


class RunDetailResponse(BaseModel):
    """Run with per-status task counts."""

    run: AgentRun
    summary: RunSummary


# ============================================================================
# Routes
# ============================================================================


@router.post("", response_model=AgentRun, status_code=201)
async def create_run(
    body: RunCreate,
    coordinator: RunCoordinator = Depends(get_coordinator),
) -> AgentRun:
    """
    Create a run for a document.

    Returns:
        The new run in ``active`` status.
    """
    return await coordinator.create_run(body)


@router.get("", response_model=RunListResponse)
async def list_runs(
    workspace_id: str = Query(..., description="Workspace to list runs for"),
    document_id: str | None = Query(None, description="Filter by document"),
    status: str | None = Query(None, description="Filter by status"),
    limit: int | None = Query(None, description="Page size"),
    offset: int = Query(0, description="Number of results to skip"),
    coordinator: RunCoordinator = Depends(get_coordinator),
) -> RunListResponse:
    """List a workspace's runs, newest first."""
    effective_limit = coordinator.settings.clamp_limit(limit)
    runs, total = await coordinator.list_runs(
        workspace_id,
        document_id=document_id,
        status=status,
        limit=effective_limit,
        offset=offset,
    )
    return RunListResponse(
        data=runs,
        pagination=Pagination(limit=effective_limit, offset=max(0, offset), total=total),
    )


@router.get("/{run_id}", response_model=RunDetailResponse)
async def get_run(
    run_id: str,
    coordinator: RunCoordinator = Depends(get_coordinator),
) -> RunDetailResponse:
    """
    Get a run with task counts.

    Raises:
        NotFoundError: If the run does not exist.
    """
    run, summary = await coordinator.get_summary(run_id)
    return RunDetailResponse(run=run, summary=summary)


@router.patch("/{run_id}", response_model=AgentRun)
async def update_run(
    run_id: str,
    body: RunUpdate,
    coordinator: RunCoordinator = Depends(get_coordinator),
) -> AgentRun:
    """Change a run's status or attributes."""
    return await coordinator.update_run(run_id, body)


@router.get("/{run_id}/board", response_model=Board)
async def get_board(
    run_id: str,
    coordinator: RunCoordinator = Depends(get_coordinator),
) -> Board:
    """Tasks grouped by status with readiness signals."""
    return await coordinator.get_board(run_id)
