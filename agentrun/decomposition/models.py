"""Pydantic models for agent runs and their tasks.

This module defines the data structures the orchestration engine
reasons about: runs, tasks, the conventional ``output_ref`` flags and
the request payloads used to create or mutate them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# LIMITS
# =============================================================================

OBJECTIVE_MAX_LENGTH = 5000
TITLE_MAX_LENGTH = 500
MIN_PARALLEL_AGENTS = 1
MAX_PARALLEL_AGENTS = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


# =============================================================================
# ENUMS
# =============================================================================


class RunStatus(str, Enum):
    """Lifecycle status of an agent run."""

    ACTIVE = "active"
    BLOCKED = "blocked"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskStatus(str, Enum):
    """Board column of an agent task."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    DONE = "done"


class TaskType(str, Enum):
    """Kind of work a task represents."""

    RESEARCH = "research"
    WRITE = "write"
    REVIEW = "review"
    QA = "qa"
    SYNTHESIS = "synthesis"


# Write tasks in these statuses hold a claim on their document scope
OPEN_TASK_STATUSES = frozenset({TaskStatus.TODO, TaskStatus.IN_PROGRESS})


# =============================================================================
# OUTPUT REF
# =============================================================================


class OutputRef:
    """Read-only view over a task's ``output_ref`` payload.

    The payload is an opaque document; only the conventional keys the
    guards depend on are interpreted here. A key holding a value of the
    wrong type reads as absent.

    Example:
        >>> ref = OutputRef({"branch_id": "b1", "extra": [1, 2]})
        >>> ref.branch_id
        'b1'
        >>> ref.needs_input_open
        False
    """

    BRANCH_ID = "branch_id"
    NO_CHANGE_REASON = "no_change_reason"
    BLOCK_REASON = "block_reason"
    NEEDS_INPUT_OPEN = "needs_input_open"

    def __init__(self, payload: dict[str, Any] | None) -> None:
        self.payload = payload if isinstance(payload, dict) else {}

    def _string(self, key: str) -> str | None:
        value = self.payload.get(key)
        return value if isinstance(value, str) else None

    @property
    def branch_id(self) -> str | None:
        return self._string(self.BRANCH_ID)

    @property
    def no_change_reason(self) -> str | None:
        return self._string(self.NO_CHANGE_REASON)

    @property
    def block_reason(self) -> str | None:
        return self._string(self.BLOCK_REASON)

    @property
    def needs_input_open(self) -> bool:
        return self.payload.get(self.NEEDS_INPUT_OPEN) is True

    @property
    def has_branch(self) -> bool:
        """Whether the task recorded a branch proposal."""
        return bool(self.branch_id)

    @property
    def has_block_reason(self) -> bool:
        reason = self.block_reason
        return reason is not None and reason.strip() != ""


# =============================================================================
# RUNS AND TASKS
# =============================================================================


class AgentRun(BaseModel):
    """A coordinated multi-agent effort toward one objective on one document.

    Example:
        >>> run = AgentRun(
        ...     workspace_id="ws-1",
        ...     document_id="doc-1",
        ...     coordinator_agent_id="agent-coord",
        ...     objective="Rewrite the onboarding guide",
        ...     max_parallel_agents=2,
        ... )
        >>> run.status
        <RunStatus.ACTIVE: 'active'>
    """

    model_config = ConfigDict(frozen=False)

    id: str = Field(default_factory=_new_id)
    workspace_id: str
    document_id: str
    coordinator_agent_id: str
    objective: str = Field(
        ...,
        min_length=1,
        max_length=OBJECTIVE_MAX_LENGTH,
        description="What the run should achieve",
    )
    constraints: dict[str, Any] = Field(
        default_factory=dict,
        description="Opaque structured constraints, passed through untouched",
    )
    max_parallel_agents: int = Field(
        default=3,
        ge=MIN_PARALLEL_AGENTS,
        le=MAX_PARALLEL_AGENTS,
        description="Upper bound on simultaneously in-progress tasks",
    )
    status: RunStatus = RunStatus.ACTIVE
    created_by: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class AgentTask(BaseModel):
    """A unit of work within a run, assigned to one agent."""

    model_config = ConfigDict(frozen=False)

    id: str = Field(default_factory=_new_id)
    run_id: str
    workspace_id: str | None = None
    document_id: str | None = None
    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    task_type: TaskType
    status: TaskStatus = TaskStatus.TODO
    assigned_agent_id: str
    depends_on: list[str] = Field(
        default_factory=list,
        description="Ids of tasks in the same run that must be done first",
    )
    document_scope: dict[str, Any] | None = Field(
        default=None,
        description="Region of the document the task will modify",
    )
    acceptance_criteria: list[str] = Field(default_factory=list)
    output_ref: dict[str, Any] | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def output(self) -> OutputRef:
        """Conventional flags carried by ``output_ref``."""
        return OutputRef(self.output_ref)

    @property
    def holds_scope(self) -> bool:
        """Whether this task currently claims its document scope."""
        return self.task_type == TaskType.WRITE and self.status in OPEN_TASK_STATUSES


# =============================================================================
# REQUESTS
# =============================================================================
#
# Request payloads are deliberately loose: field rules are enforced by the
# state machines so every rejection carries the engine's own error kind.


class RunCreate(BaseModel):
    """Payload for creating a run."""

    workspace_id: str
    document_id: str
    coordinator_agent_id: str
    objective: str
    constraints: dict[str, Any] | None = None
    max_parallel_agents: int | None = None


class RunUpdate(BaseModel):
    """Partial update of a run's status or attributes."""

    status: str | None = None
    objective: str | None = None
    constraints: Any = None
    max_parallel_agents: int | None = None

    def provided(self, name: str) -> bool:
        """Whether the caller explicitly sent ``name``."""
        return name in self.model_fields_set


class TaskCreate(BaseModel):
    """Payload for creating a task within a run."""

    title: str | None = None
    task_type: str | None = None
    assigned_agent_id: str | None = None
    status: str | None = None
    depends_on: list[str] = Field(default_factory=list)
    document_scope: Any = None
    acceptance_criteria: list[str] = Field(default_factory=list)
    output_ref: Any = None


class TaskUpdate(BaseModel):
    """Partial update of a task.

    Guards evaluate against the incoming ``output_ref`` when one is sent,
    so an agent may attach its block reason or branch id in the same
    request that changes the status.
    """

    title: str | None = None
    assigned_agent_id: str | None = None
    output_ref: Any = None
    status: str | None = None

    def provided(self, name: str) -> bool:
        """Whether the caller explicitly sent ``name``."""
        return name in self.model_fields_set
