"""Run and task data model plus dependency validation.

This module provides:
- Models (runs, tasks, output flags, request payloads)
- Dependency validation (prerequisites exist and are done)
- Completion rules (write output contract, block reasons)
"""

from agentrun.decomposition.dependency_validator import (
    dependencies_satisfied,
    missing_dependencies,
    normalize_dependencies,
    status_map,
    unmet_dependencies,
    validate_block_reason,
    validate_dependencies_done,
    validate_dependencies_exist,
    validate_done_output,
)
from agentrun.decomposition.models import (
    AgentRun,
    AgentTask,
    OutputRef,
    RunCreate,
    RunStatus,
    RunUpdate,
    TaskCreate,
    TaskStatus,
    TaskType,
    TaskUpdate,
)

__all__ = [
    # Models
    "AgentRun",
    "AgentTask",
    "OutputRef",
    "RunCreate",
    "RunStatus",
    "RunUpdate",
    "TaskCreate",
    "TaskStatus",
    "TaskType",
    "TaskUpdate",
    # Dependency validation
    "dependencies_satisfied",
    "missing_dependencies",
    "normalize_dependencies",
    "status_map",
    "unmet_dependencies",
    # Completion rules
    "validate_block_reason",
    "validate_dependencies_done",
    "validate_dependencies_exist",
    "validate_done_output",
]
