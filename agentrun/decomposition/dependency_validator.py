"""Dependency validation and task completion rules.

Pure functions over a snapshot of a run's tasks: whether declared
prerequisites exist and are finished, and whether a task's output
satisfies its type-specific completion contract.
"""

from collections.abc import Iterable, Mapping

from loguru import logger

from agentrun.core.errors import GuardError, RejectReason, UnknownReferenceError
from agentrun.decomposition.models import AgentTask, OutputRef, TaskStatus, TaskType


def normalize_dependencies(depends_on: Iterable[str]) -> list[str]:
    """Collapse duplicate ids, keeping first-occurrence order."""
    return list(dict.fromkeys(depends_on))


def status_map(tasks: Iterable[AgentTask]) -> dict[str, TaskStatus]:
    """Build ``task_id -> status`` for a set of tasks."""
    return {task.id: task.status for task in tasks}


def dependencies_satisfied(
    depends_on: Iterable[str],
    status_of: Mapping[str, TaskStatus | str],
) -> bool:
    """
    Check whether every prerequisite is done.

    An empty ``depends_on`` is vacuously satisfied. Ids absent from
    ``status_of`` count as not done.

    Example:
        >>> dependencies_satisfied(["a"], {"a": TaskStatus.DONE})
        True
        >>> dependencies_satisfied(["a", "b"], {"a": "done", "b": "in_progress"})
        False
    """
    return all(status_of.get(task_id) == TaskStatus.DONE for task_id in depends_on)


def unmet_dependencies(
    depends_on: Iterable[str],
    status_of: Mapping[str, TaskStatus | str],
) -> list[str]:
    """Return the prerequisites that are not done, in declaration order."""
    return [
        task_id
        for task_id in normalize_dependencies(depends_on)
        if status_of.get(task_id) != TaskStatus.DONE
    ]


def missing_dependencies(depends_on: Iterable[str], known_ids: Iterable[str]) -> list[str]:
    """Return the prerequisites that do not name a task in the run."""
    known = set(known_ids)
    return [task_id for task_id in normalize_dependencies(depends_on) if task_id not in known]


def validate_dependencies_exist(depends_on: Iterable[str], run_tasks: Iterable[AgentTask]) -> None:
    """
    Ensure every dependency names a task in the same run.

    Raises:
        UnknownReferenceError: Listing the ids outside the run.
    """
    missing = missing_dependencies(depends_on, (task.id for task in run_tasks))
    if missing:
        raise UnknownReferenceError(
            f"depends_on contains tasks outside this run: {', '.join(missing)}",
            RejectReason.UNKNOWN_DEPENDENCY,
            task_ids=missing,
        )


def validate_dependencies_done(task: AgentTask, run_tasks: Iterable[AgentTask]) -> None:
    """
    Ensure a task's prerequisites are all done before it completes.

    Raises:
        GuardError: Listing the unmet dependency ids.
    """
    statuses = status_map(run_tasks)
    if dependencies_satisfied(task.depends_on, statuses):
        return

    unmet = unmet_dependencies(task.depends_on, statuses)
    if unmet:
        logger.debug(f"Task {task.id} has unmet dependencies: {unmet}")
        raise GuardError(
            "Cannot mark done until dependencies are done",
            RejectReason.DEPENDENCY_NOT_DONE,
            task_ids=unmet,
        )


def validate_done_output(task_type: TaskType, output_ref: OutputRef) -> None:
    """
    Check the completion contract for the task's type.

    Write tasks must record either the branch holding their proposal or
    a reason why no change was needed. Other types have no contract.

    Raises:
        GuardError: If a write task has neither.
    """
    if task_type != TaskType.WRITE:
        return
    if output_ref.branch_id or output_ref.no_change_reason:
        return
    raise GuardError(
        "Write task completion requires output_ref.branch_id or output_ref.no_change_reason",
        RejectReason.WRITE_OUTPUT_MISSING,
    )


def validate_block_reason(output_ref: OutputRef) -> None:
    """
    Ensure a block reason is recorded before a task is blocked.

    Raises:
        GuardError: If ``block_reason`` is missing or blank.
    """
    if not output_ref.has_block_reason:
        raise GuardError(
            "blocked status requires output_ref.block_reason",
            RejectReason.BLOCKED_REASON,
        )
