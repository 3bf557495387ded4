"""Orchestration facade.

Entry point for the calling layer. Each ``can_*`` method answers whether
a proposed mutation is legal against a snapshot of run and task state and
returns a ``Decision``; the ``prepare_*`` methods return the mutated record
or raise the rejection. Nothing here performs I/O.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from loguru import logger

from agentrun.core.errors import OrchestrationError
from agentrun.decomposition.models import (
    AgentRun,
    AgentTask,
    RunCreate,
    RunStatus,
    RunUpdate,
    TaskCreate,
    TaskStatus,
    TaskUpdate,
)
from agentrun.monitoring.board import Board, build_board
from agentrun.orchestration.run_machine import RunStateMachine
from agentrun.orchestration.task_machine import TaskStateMachine


@dataclass
class Decision:
    """Accept/reject verdict for a proposed mutation."""

    accepted: bool
    error: OrchestrationError | None = None

    def __bool__(self) -> bool:
        return self.accepted

    @property
    def reason(self) -> str | None:
        return self.error.reason.value if self.error else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "accepted": self.accepted,
            "error": self.error.to_dict() if self.error else None,
        }


class RunOrchestrator:
    """
    Decision layer over the task and run state machines.

    Usage:
        orchestrator = RunOrchestrator()
        decision = orchestrator.can_transition_task(run, task, TaskStatus.DONE, tasks)

        if not decision:
            # decision.error carries kind, reason and offending ids
            pass
    """

    def __init__(
        self,
        task_machine: TaskStateMachine | None = None,
        run_machine: RunStateMachine | None = None,
    ) -> None:
        self.tasks = task_machine or TaskStateMachine()
        self.runs = run_machine or RunStateMachine()

    def _decide(self, check: Callable[[], Any]) -> Decision:
        try:
            check()
        except OrchestrationError as e:
            logger.debug(f"Rejected: {e.kind.value} ({e.reason.value}) {e.message}")
            return Decision(accepted=False, error=e)
        return Decision(accepted=True)

    # =========================================================================
    # QUESTIONS
    # =========================================================================

    def can_create_task(
        self,
        run: AgentRun,
        request: TaskCreate,
        run_tasks: Sequence[AgentTask],
        assignee_active: bool,
    ) -> Decision:
        """Can this task be created in the run?"""
        return self._decide(
            lambda: self.tasks.validate_create(run, request, run_tasks, assignee_active)
        )

    def can_transition_task(
        self,
        run: AgentRun,
        task: AgentTask,
        target: TaskStatus,
        run_tasks: Sequence[AgentTask],
        output_ref: dict[str, Any] | None = None,
    ) -> Decision:
        """Can this task move to ``target``?"""
        return self._decide(
            lambda: self.tasks.check_transition(run, task, target, run_tasks, output_ref)
        )

    def can_transition_run(
        self,
        run: AgentRun,
        target: RunStatus,
        tasks: Sequence[AgentTask],
    ) -> Decision:
        """Can this run move to ``target``?"""
        return self._decide(lambda: self.runs.check_transition(run, target, tasks))

    def can_create_run(
        self,
        request: RunCreate,
        coordinator_active: bool,
        active_run: AgentRun | None = None,
    ) -> Decision:
        return self._decide(
            lambda: self.runs.validate_create(request, coordinator_active, active_run)
        )

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def prepare_run(
        self,
        request: RunCreate,
        coordinator_active: bool,
        active_run: AgentRun | None = None,
        created_by: str | None = None,
    ) -> AgentRun:
        return self.runs.validate_create(request, coordinator_active, active_run, created_by)

    def apply_run_update(
        self,
        run: AgentRun,
        update: RunUpdate,
        tasks: Sequence[AgentTask],
    ) -> AgentRun:
        return self.runs.validate_update(run, update, tasks)

    def prepare_task(
        self,
        run: AgentRun,
        request: TaskCreate,
        run_tasks: Sequence[AgentTask],
        assignee_active: bool,
    ) -> AgentTask:
        return self.tasks.validate_create(run, request, run_tasks, assignee_active)

    def apply_task_update(
        self,
        run: AgentRun,
        task: AgentTask,
        update: TaskUpdate,
        run_tasks: Sequence[AgentTask],
        assignee_active: bool | None = None,
    ) -> AgentTask:
        return self.tasks.validate_update(run, task, update, run_tasks, assignee_active)

    def board(self, run: AgentRun, tasks: Sequence[AgentTask]) -> Board:
        return build_board(run, tasks)
