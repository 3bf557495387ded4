"""Unit tests for the orchestration facade."""

import pytest

from agentrun.core.errors import ErrorKind, RejectReason
from agentrun.decomposition.models import (
    RunCreate,
    RunStatus,
    TaskCreate,
    TaskStatus,
    TaskType,
    TaskUpdate,
)
from agentrun.orchestration.facade import Decision, RunOrchestrator


@pytest.fixture
def orchestrator() -> RunOrchestrator:
    return RunOrchestrator()


class TestDecision:
    def test_accepted_is_truthy(self) -> None:
        decision = Decision(accepted=True)
        assert decision
        assert decision.reason is None
        assert decision.to_dict() == {"accepted": True, "error": None}

    def test_rejected_carries_error(self, orchestrator, run, make_task) -> None:
        task = make_task()
        decision = orchestrator.can_transition_task(run, task, TaskStatus.BLOCKED, [task])

        assert not decision
        assert decision.reason == RejectReason.BLOCKED_REASON.value
        assert decision.to_dict()["error"]["kind"] == ErrorKind.GUARD.value


class TestQuestions:
    """The can_* methods answer without raising."""

    def test_can_create_task_conflict(self, orchestrator, run, make_task) -> None:
        existing = make_task(task_type=TaskType.WRITE, document_scope={"from": 0, "to": 100})
        request = TaskCreate(
            title="Rewrite section two",
            task_type="write",
            assigned_agent_id="agent-writer",
            document_scope={"from": 50, "to": 150},
        )

        decision = orchestrator.can_create_task(run, request, [existing], assignee_active=True)

        assert decision.accepted is False
        assert decision.error.task_ids == [existing.id]

    def test_can_transition_task_with_incoming_output(self, orchestrator, run, make_task) -> None:
        task = make_task(task_type=TaskType.WRITE)
        decision = orchestrator.can_transition_task(
            run, task, TaskStatus.DONE, [task], output_ref={"no_change_reason": "Accurate"}
        )
        assert decision.accepted is True

    def test_can_transition_run(self, orchestrator, make_run) -> None:
        run = make_run(status=RunStatus.CANCELLED)
        decision = orchestrator.can_transition_run(run, RunStatus.ACTIVE, [])
        assert decision.error.kind == ErrorKind.ILLEGAL_RUN_TRANSITION

    def test_can_create_run(self, orchestrator, run_request, run) -> None:
        assert orchestrator.can_create_run(run_request, coordinator_active=True)
        decision = orchestrator.can_create_run(run_request, True, active_run=run)
        assert decision.reason == RejectReason.ACTIVE_RUN_EXISTS.value


class TestMutations:
    def test_prepare_task_returns_record(self, orchestrator, run) -> None:
        request = TaskCreate(title="Collect sources", task_type="research", assigned_agent_id="a")
        task = orchestrator.prepare_task(run, request, [], assignee_active=True)
        assert task.run_id == run.id

    def test_apply_task_update(self, orchestrator, run, make_task) -> None:
        task = make_task()
        updated = orchestrator.apply_task_update(
            run, task, TaskUpdate(status="in_progress"), [task]
        )
        assert updated.status == TaskStatus.IN_PROGRESS

    def test_prepare_run(self, orchestrator) -> None:
        request = RunCreate(
            workspace_id="ws-1",
            document_id="doc-9",
            coordinator_agent_id="agent-coordinator",
            objective="Summarize findings",
        )
        run = orchestrator.prepare_run(request, coordinator_active=True)
        assert run.document_id == "doc-9"

    def test_board(self, orchestrator, run, make_task) -> None:
        board = orchestrator.board(run, [make_task()])
        assert board.readiness.tasks_remaining == 1
