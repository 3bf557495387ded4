"""Orchestration module - state machines, facade and run coordinator.

This module provides:
- TaskStateMachine: task creation and destination-guarded transitions
- RunStateMachine: closed run transition table and completion gate
- RunOrchestrator: accept/reject decisions for the calling layer
- RunCoordinator: per-run serialized admission and commit
"""

from agentrun.orchestration.coordinator import RunCoordinator, RunLockRegistry
from agentrun.orchestration.facade import Decision, RunOrchestrator
from agentrun.orchestration.run_machine import (
    RUN_TRANSITIONS,
    RunStateMachine,
    can_transition_run_status,
)
from agentrun.orchestration.task_machine import TaskStateMachine, in_progress_count

__all__ = [
    # State machines
    "RUN_TRANSITIONS",
    "RunStateMachine",
    "TaskStateMachine",
    "can_transition_run_status",
    "in_progress_count",
    # Facade
    "Decision",
    "RunOrchestrator",
    # Coordinator
    "RunCoordinator",
    "RunLockRegistry",
]
