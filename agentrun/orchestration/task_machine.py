"""Task state machine.

Decides whether a task may be created or change status given the run and
its sibling tasks. Transitions are guarded by destination status only:
any status may move to any other provided the destination's guard passes,
and a destination without a guard is always reachable.
"""

from collections.abc import Callable, Sequence
from typing import Any

from loguru import logger

from agentrun.conflict.detector import ensure_no_scope_conflict, validate_scope_payload
from agentrun.core.errors import (
    AdmissionLimitError,
    InvalidFieldError,
    RejectReason,
    UnknownReferenceError,
)
from agentrun.decomposition.dependency_validator import (
    normalize_dependencies,
    validate_block_reason,
    validate_dependencies_done,
    validate_dependencies_exist,
    validate_done_output,
)
from agentrun.decomposition.models import (
    OPEN_TASK_STATUSES,
    TITLE_MAX_LENGTH,
    AgentRun,
    AgentTask,
    TaskCreate,
    TaskStatus,
    TaskType,
    TaskUpdate,
)

TaskGuard = Callable[[AgentRun, AgentTask, Sequence[AgentTask]], None]


# =============================================================================
# FIELD PARSING
# =============================================================================


def parse_title(value: Any) -> str:
    """Trim and length-check a task title."""
    if not isinstance(value, str):
        raise InvalidFieldError("title", "title is required")
    title = value.strip()
    if not title or len(title) > TITLE_MAX_LENGTH:
        raise InvalidFieldError("title", f"title must be 1-{TITLE_MAX_LENGTH} characters")
    return title


def parse_task_type(value: Any) -> TaskType:
    if not value:
        raise InvalidFieldError("task_type", "task_type is required")
    try:
        return TaskType(value)
    except ValueError:
        raise InvalidFieldError("task_type", "Invalid task_type") from None


def parse_task_status(value: Any) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError:
        raise InvalidFieldError("status", "Invalid status") from None


def parse_output_ref(value: Any) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise InvalidFieldError("output_ref", "output_ref must be an object")
    return value


def in_progress_count(tasks: Sequence[AgentTask], exclude_id: str | None = None) -> int:
    """Count the run's in-progress tasks, optionally ignoring one task."""
    return sum(
        1 for task in tasks if task.status == TaskStatus.IN_PROGRESS and task.id != exclude_id
    )


# =============================================================================
# DESTINATION GUARDS
# =============================================================================


def guard_in_progress(run: AgentRun, task: AgentTask, run_tasks: Sequence[AgentTask]) -> None:
    """Admission control: a free parallel slot must exist."""
    active = in_progress_count(run_tasks, exclude_id=task.id)
    if active >= run.max_parallel_agents:
        raise AdmissionLimitError(
            f"Run already has max in_progress tasks ({run.max_parallel_agents})",
            RejectReason.PARALLEL_LIMIT_EXCEEDED,
            task_ids=[t.id for t in run_tasks if t.status == TaskStatus.IN_PROGRESS],
        )


def guard_blocked(run: AgentRun, task: AgentTask, run_tasks: Sequence[AgentTask]) -> None:
    validate_block_reason(task.output)


def guard_done(run: AgentRun, task: AgentTask, run_tasks: Sequence[AgentTask]) -> None:
    validate_dependencies_done(task, run_tasks)
    validate_done_output(task.task_type, task.output)


class TaskStateMachine:
    """
    Validate task creation and status transitions.

    Example:
        >>> machine = TaskStateMachine()
        >>> task = machine.validate_create(run, request, run_tasks, assignee_active=True)
        >>> machine.check_transition(run, task, TaskStatus.IN_PROGRESS, run_tasks)
    """

    GUARDS: dict[TaskStatus, TaskGuard] = {
        TaskStatus.IN_PROGRESS: guard_in_progress,
        TaskStatus.BLOCKED: guard_blocked,
        TaskStatus.DONE: guard_done,
    }

    def guard_for(self, target: TaskStatus) -> TaskGuard | None:
        """Guard for a destination status; None means always allowed."""
        return self.GUARDS.get(target)

    # =========================================================================
    # CREATION
    # =========================================================================

    def validate_create(
        self,
        run: AgentRun,
        request: TaskCreate,
        run_tasks: Sequence[AgentTask],
        assignee_active: bool,
    ) -> AgentTask:
        """
        Validate a task creation request.

        Args:
            run: The run the task will belong to.
            request: Creation payload.
            run_tasks: Current tasks of the run.
            assignee_active: Whether the assignee is an active identity
                in the run's workspace.

        Returns:
            The task to persist.

        Raises:
            OrchestrationError: A subclass describing the first failed check.
        """
        title = parse_title(request.title)
        task_type = parse_task_type(request.task_type)
        status = parse_task_status(request.status) if request.status is not None else TaskStatus.TODO

        if not request.assigned_agent_id:
            raise InvalidFieldError("assigned_agent_id", "assigned_agent_id is required")
        if not assignee_active:
            raise UnknownReferenceError(
                "assigned_agent_id must be an active key in run workspace",
                RejectReason.ASSIGNEE_NOT_IN_WORKSPACE,
            )

        depends_on = normalize_dependencies(request.depends_on)
        validate_dependencies_exist(depends_on, run_tasks)

        document_scope = validate_scope_payload(request.document_scope)
        output_ref = (
            parse_output_ref(request.output_ref) if request.output_ref is not None else None
        )

        task = AgentTask(
            run_id=run.id,
            workspace_id=run.workspace_id,
            document_id=run.document_id,
            title=title,
            task_type=task_type,
            status=status,
            assigned_agent_id=request.assigned_agent_id,
            depends_on=depends_on,
            document_scope=document_scope,
            acceptance_criteria=list(request.acceptance_criteria),
            output_ref=output_ref,
        )

        # Checked for every requested status, not only the open ones
        if task.task_type == TaskType.WRITE:
            ensure_no_scope_conflict(task.document_scope, run_tasks)

        guard = self.guard_for(status)
        if guard is not None:
            guard(run, task, run_tasks)

        logger.debug(f"Task creation accepted for run {run.id}: {task.task_type.value} '{title}'")
        return task

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def check_transition(
        self,
        run: AgentRun,
        task: AgentTask,
        target: TaskStatus,
        run_tasks: Sequence[AgentTask],
        output_ref: dict[str, Any] | None = None,
    ) -> None:
        """
        Check that ``task`` may move to ``target``.

        Re-entering the current status is always a legal no-op.

        Args:
            output_ref: Incoming output payload that replaces the stored
                one for guard evaluation.

        Raises:
            OrchestrationError: If the destination guard fails.
        """
        if target == task.status:
            return

        if output_ref is None:
            output_ref = task.output_ref
        candidate = task.model_copy(update={"status": target, "output_ref": output_ref})

        # A write task leaving blocked/done takes its scope claim back
        if candidate.holds_scope and task.status not in OPEN_TASK_STATUSES:
            ensure_no_scope_conflict(candidate.document_scope, run_tasks, exclude_id=task.id)

        guard = self.guard_for(target)
        if guard is not None:
            guard(run, candidate, run_tasks)

    def validate_update(
        self,
        run: AgentRun,
        task: AgentTask,
        update: TaskUpdate,
        run_tasks: Sequence[AgentTask],
        assignee_active: bool | None = None,
    ) -> AgentTask:
        """
        Validate a partial task update and return the updated task.

        Args:
            assignee_active: Resolution of ``update.assigned_agent_id``;
                required when the update reassigns the task.
        """
        changes: dict[str, Any] = {}

        if update.provided("title"):
            changes["title"] = parse_title(update.title)

        if update.provided("assigned_agent_id"):
            if not isinstance(update.assigned_agent_id, str) or not update.assigned_agent_id:
                raise InvalidFieldError("assigned_agent_id", "assigned_agent_id must be a string")
            if not assignee_active:
                raise UnknownReferenceError(
                    "assigned_agent_id must be an active key in run workspace",
                    RejectReason.ASSIGNEE_NOT_IN_WORKSPACE,
                )
            changes["assigned_agent_id"] = update.assigned_agent_id

        output_ref = None
        if update.provided("output_ref"):
            output_ref = parse_output_ref(update.output_ref)
            changes["output_ref"] = output_ref

        if update.provided("status"):
            target = parse_task_status(update.status)
            self.check_transition(run, task, target, run_tasks, output_ref=output_ref)
            changes["status"] = target

        return task.model_copy(update=changes)


__all__ = [
    "TaskStateMachine",
    "guard_blocked",
    "guard_done",
    "guard_in_progress",
    "in_progress_count",
    "parse_output_ref",
    "parse_task_status",
    "parse_task_type",
    "parse_title",
]
