"""
Board aggregation for agent runs

Read-only projections used by monitoring views:
- Board: tasks grouped into status columns plus readiness signals
- RunSummary: per-status task counts
"""

from collections.abc import Iterable
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field

from agentrun.decomposition.models import AgentRun, AgentTask, TaskStatus

BOARD_COLUMNS: tuple[str, ...] = tuple(status.value for status in TaskStatus)


def _status_key(task: AgentTask) -> str:
    status = task.status
    return status.value if isinstance(status, TaskStatus) else str(status)


class Readiness(BaseModel):
    """Signals summarizing how close a run is to completion."""

    unresolved_needs_input: int = 0
    open_branch_proposals: int = 0
    tasks_remaining: int = 0


class Board(BaseModel):
    """Monitoring view of a run."""

    run: AgentRun
    columns: dict[str, list[AgentTask]] = Field(
        default_factory=lambda: {column: [] for column in BOARD_COLUMNS}
    )
    readiness: Readiness = Field(default_factory=Readiness)

    def column(self, status: TaskStatus) -> list[AgentTask]:
        return self.columns[status.value]


class RunSummary(BaseModel):
    """Per-status task counts for a run."""

    task_counts: dict[str, int]
    total_tasks: int


def _in_creation_order(tasks: Iterable[AgentTask]) -> list[AgentTask]:
    # sorted() is stable, so ties keep the store's order
    return sorted(tasks, key=lambda task: task.created_at)


def build_board(run: AgentRun, tasks: Iterable[AgentTask]) -> Board:
    """
    Group a run's tasks by status and compute readiness.

    Tasks with an unknown status are left out of the columns.

    Args:
        run: The run being displayed.
        tasks: All tasks of the run.

    Returns:
        Board with four columns in creation order.
    """
    ordered = _in_creation_order(tasks)
    columns: dict[str, list[AgentTask]] = {column: [] for column in BOARD_COLUMNS}

    for task in ordered:
        key = _status_key(task)
        if key in columns:
            columns[key].append(task)
        else:
            logger.warning(f"Task {task.id} has unknown status {key!r}; omitted from board")

    readiness = Readiness(
        unresolved_needs_input=sum(1 for task in ordered if task.output.needs_input_open),
        open_branch_proposals=sum(1 for task in ordered if task.output.has_branch),
        tasks_remaining=sum(
            len(columns[status.value])
            for status in (TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.BLOCKED)
        ),
    )

    return Board(run=run, columns=columns, readiness=readiness)


def summarize_run(tasks: Iterable[AgentTask]) -> RunSummary:
    """Count a run's tasks per status."""
    counts: dict[str, int] = {column: 0 for column in BOARD_COLUMNS}
    total = 0
    for task in tasks:
        total += 1
        key = _status_key(task)
        if key in counts:
            counts[key] += 1
    return RunSummary(task_counts=counts, total_tasks=total)


def board_to_dict(board: Board) -> dict[str, Any]:
    """Serialize a board for transport."""
    return board.model_dump(mode="json")
