"""Rejection taxonomy for the orchestration engine.

Every rejected mutation is reported as an ``OrchestrationError`` subclass
carrying a kind, the specific precondition that failed and the offending
identifiers, so the caller can render an actionable message. None of these
errors are fatal: the caller may retry with corrected input.
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Category of a rejection."""

    VALIDATION = "ValidationError"  # Malformed field
    REFERENCE = "ReferenceError"  # Unknown dependency or identity
    CONFLICT = "ConflictError"  # Overlapping scope or duplicate active run
    ADMISSION_LIMIT = "AdmissionLimitError"  # Parallel cap reached
    GUARD = "GuardError"  # Destination status precondition unmet
    ILLEGAL_RUN_TRANSITION = "IllegalRunTransitionError"
    INCOMPLETE_RUN = "IncompleteRunError"
    NOT_FOUND = "NotFoundError"  # Raised by the calling layer only


class RejectReason(str, Enum):
    """The specific precondition a rejected mutation failed."""

    INVALID_FIELD = "invalid-field"
    UNKNOWN_DEPENDENCY = "unknown-dependency"
    ASSIGNEE_NOT_IN_WORKSPACE = "assignee-not-in-workspace"
    COORDINATOR_NOT_IN_WORKSPACE = "coordinator-not-in-workspace"
    SCOPE_CONFLICT = "scope-conflict"
    ACTIVE_RUN_EXISTS = "active-run-exists"
    PARALLEL_LIMIT_EXCEEDED = "parallel-limit-exceeded"
    PARALLEL_LIMIT_BELOW_USAGE = "parallel-limit-below-usage"
    BLOCKED_REASON = "blocked-reason"
    DEPENDENCY_NOT_DONE = "dependency-not-done"
    WRITE_OUTPUT_MISSING = "write-output-missing"
    ILLEGAL_RUN_TRANSITION = "illegal-run-transition"
    TASKS_NOT_DONE = "tasks-not-done"
    NEEDS_INPUT_OPEN = "needs-input-open"
    NOT_FOUND = "not-found"


class OrchestrationError(Exception):
    """Base class for every engine rejection."""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str,
        reason: RejectReason,
        task_ids: list[str] | None = None,
        field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason
        self.task_ids = list(task_ids or [])
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary."""
        return {
            "kind": self.kind.value,
            "reason": self.reason.value,
            "message": self.message,
            "task_ids": self.task_ids,
            "field": self.field,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.reason.value!r}, {self.message!r})"


class InvalidFieldError(OrchestrationError):
    """A request field is missing or malformed."""

    kind = ErrorKind.VALIDATION

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message, RejectReason.INVALID_FIELD, field=field)


class UnknownReferenceError(OrchestrationError):
    """A dependency or identity does not resolve inside the run's workspace."""

    kind = ErrorKind.REFERENCE


class ConflictError(OrchestrationError):
    """The mutation collides with existing state."""

    kind = ErrorKind.CONFLICT


class AdmissionLimitError(OrchestrationError):
    """The run's parallel in-progress cap would be violated."""

    kind = ErrorKind.ADMISSION_LIMIT


class GuardError(OrchestrationError):
    """The destination status guard of a task transition failed."""

    kind = ErrorKind.GUARD


class IllegalRunTransitionError(OrchestrationError):
    """The run status edge is not in the allowed table."""

    kind = ErrorKind.ILLEGAL_RUN_TRANSITION

    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            f"Invalid status transition from {current} to {target}",
            RejectReason.ILLEGAL_RUN_TRANSITION,
        )
        self.current = current
        self.target = target


class IncompleteRunError(OrchestrationError):
    """Completion attempted while work remains or input is outstanding."""

    kind = ErrorKind.INCOMPLETE_RUN


class NotFoundError(OrchestrationError):
    """A run or task could not be loaded."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, message: str, task_ids: list[str] | None = None) -> None:
        super().__init__(message, RejectReason.NOT_FOUND, task_ids=task_ids)
