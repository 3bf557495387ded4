"""Run state machine.

Runs move through a closed transition table; ``completed`` and
``cancelled`` are terminal. Completion is additionally gated on the
aggregate state of the run's tasks.
"""

from collections.abc import Sequence
from typing import Any

from loguru import logger

from agentrun.core.errors import (
    AdmissionLimitError,
    ConflictError,
    IllegalRunTransitionError,
    IncompleteRunError,
    InvalidFieldError,
    RejectReason,
    UnknownReferenceError,
)
from agentrun.decomposition.models import (
    MAX_PARALLEL_AGENTS,
    MIN_PARALLEL_AGENTS,
    OBJECTIVE_MAX_LENGTH,
    AgentRun,
    AgentTask,
    RunCreate,
    RunStatus,
    RunUpdate,
    TaskStatus,
)
from agentrun.orchestration.task_machine import in_progress_count

RUN_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.ACTIVE: frozenset({RunStatus.BLOCKED, RunStatus.COMPLETED, RunStatus.CANCELLED}),
    RunStatus.BLOCKED: frozenset({RunStatus.ACTIVE, RunStatus.CANCELLED}),
    RunStatus.COMPLETED: frozenset(),
    RunStatus.CANCELLED: frozenset(),
}


def can_transition_run_status(current: RunStatus, target: RunStatus) -> bool:
    """
    Check an edge against the run transition table.

    Example:
        >>> can_transition_run_status(RunStatus.ACTIVE, RunStatus.BLOCKED)
        True
        >>> can_transition_run_status(RunStatus.COMPLETED, RunStatus.ACTIVE)
        False
    """
    return target in RUN_TRANSITIONS[current]


def parse_objective(value: Any) -> str:
    if not isinstance(value, str):
        raise InvalidFieldError("objective", "objective must be a non-empty string")
    objective = value.strip()
    if not objective or len(objective) > OBJECTIVE_MAX_LENGTH:
        raise InvalidFieldError(
            "objective", f"objective must be 1-{OBJECTIVE_MAX_LENGTH} characters"
        )
    return objective


def parse_max_parallel_agents(value: Any) -> int:
    if (
        not isinstance(value, int)
        or isinstance(value, bool)
        or not MIN_PARALLEL_AGENTS <= value <= MAX_PARALLEL_AGENTS
    ):
        raise InvalidFieldError(
            "max_parallel_agents",
            f"max_parallel_agents must be between {MIN_PARALLEL_AGENTS} and {MAX_PARALLEL_AGENTS}",
        )
    return value


def parse_run_status(value: Any) -> RunStatus:
    try:
        return RunStatus(value)
    except ValueError:
        raise InvalidFieldError("status", "Invalid status") from None


class RunStateMachine:
    """
    Validate run creation, status transitions and attribute updates.

    Example:
        >>> machine = RunStateMachine()
        >>> machine.check_transition(run, RunStatus.COMPLETED, tasks)
        Traceback (most recent call last):
        ...
        agentrun.core.errors.IncompleteRunError: Cannot complete run while tasks are not done
    """

    def __init__(self, default_max_parallel_agents: int = 3) -> None:
        self.default_max_parallel_agents = default_max_parallel_agents

    # =========================================================================
    # CREATION
    # =========================================================================

    def validate_create(
        self,
        request: RunCreate,
        coordinator_active: bool,
        active_run: AgentRun | None = None,
        created_by: str | None = None,
    ) -> AgentRun:
        """
        Validate a run creation request.

        Args:
            request: Creation payload.
            coordinator_active: Whether the coordinator is an active
                identity in the workspace.
            active_run: The document's current active run, if any.
            created_by: User creating the run.

        Returns:
            The run to persist, in ``active`` status.
        """
        for name in ("workspace_id", "document_id", "coordinator_agent_id"):
            if not getattr(request, name):
                raise InvalidFieldError(name, f"{name} is required")

        objective = parse_objective(request.objective)
        max_parallel_agents = (
            parse_max_parallel_agents(request.max_parallel_agents)
            if request.max_parallel_agents is not None
            else self.default_max_parallel_agents
        )

        if not coordinator_active:
            raise UnknownReferenceError(
                "coordinator_agent_id must be an active key in the workspace",
                RejectReason.COORDINATOR_NOT_IN_WORKSPACE,
            )

        if active_run is not None:
            raise ConflictError(
                "An active run already exists for this document",
                RejectReason.ACTIVE_RUN_EXISTS,
                task_ids=[active_run.id],
            )

        return AgentRun(
            workspace_id=request.workspace_id,
            document_id=request.document_id,
            coordinator_agent_id=request.coordinator_agent_id,
            objective=objective,
            constraints=request.constraints or {},
            max_parallel_agents=max_parallel_agents,
            created_by=created_by,
        )

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def check_transition(
        self,
        run: AgentRun,
        target: RunStatus,
        tasks: Sequence[AgentTask],
    ) -> None:
        """
        Check that ``run`` may move to ``target``.

        Raises:
            IllegalRunTransitionError: If the edge is not in the table.
            IncompleteRunError: If completing while work remains.
        """
        if not can_transition_run_status(run.status, target):
            raise IllegalRunTransitionError(run.status.value, target.value)

        if target == RunStatus.COMPLETED:
            self.check_completion(tasks)

    def check_completion(self, tasks: Sequence[AgentTask]) -> None:
        """
        Ensure every task is done and no human input is outstanding.

        Raises:
            IncompleteRunError: Listing the offending task ids.
        """
        not_done = [task.id for task in tasks if task.status != TaskStatus.DONE]
        if not_done:
            raise IncompleteRunError(
                "Cannot complete run while tasks are not done",
                RejectReason.TASKS_NOT_DONE,
                task_ids=not_done,
            )

        needs_input = [task.id for task in tasks if task.output.needs_input_open]
        if needs_input:
            raise IncompleteRunError(
                "Cannot complete run while output_ref.needs_input_open is still true",
                RejectReason.NEEDS_INPUT_OPEN,
                task_ids=needs_input,
            )

    def check_max_parallel_agents(self, value: Any, tasks: Sequence[AgentTask]) -> int:
        """
        Validate a new parallel cap against current usage.

        Raises:
            InvalidFieldError: If outside 1-10.
            AdmissionLimitError: If below the in-progress count.
        """
        new_value = parse_max_parallel_agents(value)
        active = in_progress_count(tasks)
        if new_value < active:
            raise AdmissionLimitError(
                "max_parallel_agents cannot be lower than current in_progress task count",
                RejectReason.PARALLEL_LIMIT_BELOW_USAGE,
                task_ids=[task.id for task in tasks if task.status == TaskStatus.IN_PROGRESS],
            )
        return new_value

    def validate_update(
        self,
        run: AgentRun,
        update: RunUpdate,
        tasks: Sequence[AgentTask],
    ) -> AgentRun:
        """Validate a partial run update and return the updated run."""
        changes: dict[str, Any] = {}

        if update.provided("status"):
            target = parse_run_status(update.status)
            self.check_transition(run, target, tasks)
            changes["status"] = target
            logger.debug(f"Run {run.id} transition {run.status.value} -> {target.value} accepted")

        if update.provided("objective"):
            changes["objective"] = parse_objective(update.objective)

        if update.provided("constraints"):
            if not isinstance(update.constraints, dict):
                raise InvalidFieldError("constraints", "constraints must be an object")
            changes["constraints"] = update.constraints

        if update.provided("max_parallel_agents"):
            changes["max_parallel_agents"] = self.check_max_parallel_agents(
                update.max_parallel_agents, tasks
            )

        return run.model_copy(update=changes)
