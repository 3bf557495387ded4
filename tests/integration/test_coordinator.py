"""
Integration tests for the run coordinator.

Exercises the full "load snapshot -> validate -> commit" path against the
in-memory store, including concurrent requests racing on one run.
"""

import asyncio
import gc

import pytest

from agentrun.conflict.detector import scope_conflicts
from agentrun.core.errors import (
    AdmissionLimitError,
    ConflictError,
    GuardError,
    IncompleteRunError,
    NotFoundError,
    UnknownReferenceError,
)
from agentrun.decomposition.models import (
    RunCreate,
    RunStatus,
    RunUpdate,
    TaskCreate,
    TaskStatus,
    TaskUpdate,
)
from agentrun.orchestration.coordinator import RunCoordinator, RunLockRegistry
from agentrun.store.memory import InMemoryRunStore
from agentrun.store.notifications import EventType, RunEvent

pytestmark = pytest.mark.integration


class YieldingRunStore(InMemoryRunStore):
    """Store that yields to the event loop between reads, like a real database."""

    async def list_tasks(self, run_id: str):
        await asyncio.sleep(0)
        tasks = await super().list_tasks(run_id)
        await asyncio.sleep(0)
        return tasks


def task_request(title: str = "Collect sources", **overrides) -> TaskCreate:
    fields = {"title": title, "task_type": "research", "assigned_agent_id": "agent-writer"}
    fields.update(overrides)
    return TaskCreate(**fields)


@pytest.fixture
def events(coordinator) -> list[RunEvent]:
    received: list[RunEvent] = []
    coordinator.dispatcher.add_callback(received.append)
    return received


# =============================================================================
# RUNS
# =============================================================================


class TestRunLifecycle:
    """Run creation, listing and transitions through the coordinator."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, coordinator, run_request, events) -> None:
        run = await coordinator.create_run(run_request, created_by="user-1")

        loaded = await coordinator.get_run(run.id)
        assert loaded == run
        assert loaded.created_by == "user-1"
        assert [e.type for e in events] == [EventType.RUN_CREATED]

    @pytest.mark.asyncio
    async def test_one_active_run_per_document(self, coordinator, run_request) -> None:
        first = await coordinator.create_run(run_request)

        with pytest.raises(ConflictError) as exc_info:
            await coordinator.create_run(run_request)
        assert exc_info.value.task_ids == [first.id]

        await coordinator.update_run(first.id, RunUpdate(status="cancelled"))
        second = await coordinator.create_run(run_request)
        assert second.id != first.id

    @pytest.mark.asyncio
    async def test_concurrent_run_creation_admits_one(self, coordinator, run_request) -> None:
        results = await asyncio.gather(
            *(coordinator.create_run(run_request) for _ in range(5)),
            return_exceptions=True,
        )

        created = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, Exception)]
        assert len(created) == 1
        assert all(isinstance(r, ConflictError) for r in rejected)

    @pytest.mark.asyncio
    async def test_reactivation_blocked_by_newer_run(self, coordinator, run_request) -> None:
        first = await coordinator.create_run(run_request)
        await coordinator.update_run(first.id, RunUpdate(status="blocked"))
        await coordinator.create_run(run_request)

        with pytest.raises(ConflictError):
            await coordinator.update_run(first.id, RunUpdate(status="active"))

        assert (await coordinator.get_run(first.id)).status == RunStatus.BLOCKED

    @pytest.mark.asyncio
    async def test_inactive_coordinator_rejected(self, coordinator, run_request) -> None:
        request = run_request.model_copy(update={"coordinator_agent_id": "agent-retired"})
        with pytest.raises(UnknownReferenceError):
            await coordinator.create_run(request)

    @pytest.mark.asyncio
    async def test_completion_flow(self, coordinator, run_request, events) -> None:
        run = await coordinator.create_run(run_request)
        task = await coordinator.create_task(run.id, task_request())

        with pytest.raises(IncompleteRunError) as exc_info:
            await coordinator.update_run(run.id, RunUpdate(status="completed"))
        assert exc_info.value.task_ids == [task.id]

        await coordinator.update_task(run.id, task.id, TaskUpdate(status="done"))
        completed = await coordinator.update_run(run.id, RunUpdate(status="completed"))

        assert completed.status == RunStatus.COMPLETED
        assert completed.updated_at >= run.updated_at
        assert events[-1].type == EventType.RUN_COMPLETED

    @pytest.mark.asyncio
    async def test_list_runs(self, coordinator, run_request) -> None:
        first = await coordinator.create_run(run_request)
        await coordinator.update_run(first.id, RunUpdate(status="cancelled"))
        second = await coordinator.create_run(run_request)
        other_doc = await coordinator.create_run(
            run_request.model_copy(update={"document_id": "doc-2"})
        )

        runs, total = await coordinator.list_runs("ws-1")
        assert total == 3
        assert {r.id for r in runs} == {first.id, second.id, other_doc.id}

        runs, total = await coordinator.list_runs("ws-1", document_id="doc-1", status="active")
        assert [r.id for r in runs] == [second.id]

        # Unknown status filters are ignored
        _, total = await coordinator.list_runs("ws-1", status="archived")
        assert total == 3

        runs, total = await coordinator.list_runs("ws-1", limit=1)
        assert len(runs) == 1
        assert total == 3

    @pytest.mark.asyncio
    async def test_unknown_run(self, coordinator) -> None:
        with pytest.raises(NotFoundError):
            await coordinator.get_run("missing")
        with pytest.raises(NotFoundError):
            await coordinator.create_task("missing", task_request())


# =============================================================================
# TASKS
# =============================================================================


class TestTaskLifecycle:
    @pytest.mark.asyncio
    async def test_create_and_transition(self, coordinator, run_request, events) -> None:
        run = await coordinator.create_run(run_request)
        task = await coordinator.create_task(run.id, task_request())

        started = await coordinator.update_task(run.id, task.id, TaskUpdate(status="in_progress"))

        assert started.status == TaskStatus.IN_PROGRESS
        assert (await coordinator.get_task(run.id, task.id)).status == TaskStatus.IN_PROGRESS
        assert [e.type for e in events] == [
            EventType.RUN_CREATED,
            EventType.TASK_CREATED,
            EventType.TASK_UPDATED,
        ]
        assert events[-1].task_id == task.id

    @pytest.mark.asyncio
    async def test_reentering_status_is_a_noop(self, coordinator, run_request, events) -> None:
        run = await coordinator.create_run(run_request)
        task = await coordinator.create_task(run.id, task_request())
        sent = len(events)

        same = await coordinator.update_task(run.id, task.id, TaskUpdate(status="todo"))

        assert same == task
        assert same.updated_at == task.updated_at
        assert len(events) == sent

    @pytest.mark.asyncio
    async def test_dependency_gate(self, coordinator, run_request) -> None:
        run = await coordinator.create_run(run_request)
        task_b = await coordinator.create_task(run.id, task_request("Gather figures"))
        task_a = await coordinator.create_task(
            run.id, task_request("Summarize", depends_on=[task_b.id])
        )
        await coordinator.update_task(run.id, task_b.id, TaskUpdate(status="in_progress"))

        with pytest.raises(GuardError) as exc_info:
            await coordinator.update_task(run.id, task_a.id, TaskUpdate(status="done"))
        assert exc_info.value.task_ids == [task_b.id]

        await coordinator.update_task(run.id, task_b.id, TaskUpdate(status="done"))
        done = await coordinator.update_task(run.id, task_a.id, TaskUpdate(status="done"))
        assert done.status == TaskStatus.DONE

    @pytest.mark.asyncio
    async def test_rejected_update_is_not_stored(self, coordinator, run_request) -> None:
        run = await coordinator.create_run(run_request)
        task = await coordinator.create_task(
            run.id, task_request(task_type="write", document_scope={"from": 0, "to": 10})
        )

        with pytest.raises(GuardError):
            await coordinator.update_task(
                run.id, task.id, TaskUpdate(title="Renamed", status="done")
            )

        stored = await coordinator.get_task(run.id, task.id)
        assert stored.title == task.title
        assert stored.status == TaskStatus.TODO

    @pytest.mark.asyncio
    async def test_task_from_other_run_not_found(self, coordinator, run_request) -> None:
        run = await coordinator.create_run(run_request)
        other = await coordinator.create_run(
            run_request.model_copy(update={"document_id": "doc-2"})
        )
        task = await coordinator.create_task(run.id, task_request())

        with pytest.raises(NotFoundError):
            await coordinator.get_task(other.id, task.id)

    @pytest.mark.asyncio
    async def test_board_and_summary(self, coordinator, run_request) -> None:
        run = await coordinator.create_run(run_request)
        await coordinator.create_task(run.id, task_request())
        await coordinator.create_task(
            run.id,
            task_request(
                "Draft section",
                task_type="write",
                status="blocked",
                output_ref={"block_reason": "Waiting on legal", "needs_input_open": True},
            ),
        )

        board = await coordinator.get_board(run.id)
        assert len(board.column(TaskStatus.BLOCKED)) == 1
        assert board.readiness.unresolved_needs_input == 1
        assert board.readiness.tasks_remaining == 2

        _, summary = await coordinator.get_summary(run.id)
        assert summary.total_tasks == 2
        assert summary.task_counts["todo"] == 1


# =============================================================================
# CONCURRENCY
# =============================================================================


@pytest.fixture
def racing_coordinator(directory, mock_settings) -> RunCoordinator:
    return RunCoordinator(YieldingRunStore(), directory, settings=mock_settings)


class TestConcurrentAdmission:
    """Racing requests on one run never break the run's invariants."""

    @pytest.mark.asyncio
    async def test_parallel_cap_holds_under_race(self, racing_coordinator, run_request) -> None:
        run = await racing_coordinator.create_run(run_request)
        tasks = [
            await racing_coordinator.create_task(run.id, task_request(f"Task {i}"))
            for i in range(6)
        ]

        results = await asyncio.gather(
            *(
                racing_coordinator.update_task(run.id, t.id, TaskUpdate(status="in_progress"))
                for t in tasks
            ),
            return_exceptions=True,
        )

        admitted = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, Exception)]
        assert len(admitted) == run.max_parallel_agents
        assert all(isinstance(r, AdmissionLimitError) for r in rejected)

        stored = await racing_coordinator.list_tasks(run.id)
        in_progress = [t for t in stored if t.status == TaskStatus.IN_PROGRESS]
        assert len(in_progress) <= run.max_parallel_agents

    @pytest.mark.asyncio
    async def test_scope_exclusivity_holds_under_race(
        self, racing_coordinator, run_request
    ) -> None:
        run = await racing_coordinator.create_run(run_request)
        requests = [
            task_request(
                f"Rewrite part {i}",
                task_type="write",
                document_scope={"from": i * 10, "to": i * 10 + 50},
            )
            for i in range(5)
        ]

        results = await asyncio.gather(
            *(racing_coordinator.create_task(run.id, r) for r in requests),
            return_exceptions=True,
        )

        assert any(isinstance(r, ConflictError) for r in results)
        stored = await racing_coordinator.list_tasks(run.id)
        assert scope_conflicts(stored) == []

    @pytest.mark.asyncio
    async def test_runs_do_not_share_locks(self, racing_coordinator, run_request) -> None:
        run_a = await racing_coordinator.create_run(run_request)
        run_b = await racing_coordinator.create_run(
            run_request.model_copy(update={"document_id": "doc-2"})
        )

        async with racing_coordinator.locks.hold(f"run:{run_a.id}"):
            task = await asyncio.wait_for(
                racing_coordinator.create_task(run_b.id, task_request()), timeout=1
            )

        assert task.run_id == run_b.id


class TestRunLockRegistry:
    @pytest.mark.asyncio
    async def test_same_key_same_lock(self) -> None:
        registry = RunLockRegistry()
        lock_a = registry.lock_for("run:a")
        lock_b = registry.lock_for("run:b")

        assert registry.lock_for("run:a") is lock_a
        assert lock_a is not lock_b
        assert len(registry) == 2

    @pytest.mark.asyncio
    async def test_unreferenced_locks_are_dropped(self) -> None:
        registry = RunLockRegistry()

        async with registry.hold("run:a", "document:ws:doc"):
            assert len(registry) == 2

        gc.collect()
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_waiter_keeps_lock_alive(self) -> None:
        registry = RunLockRegistry()
        order: list[str] = []

        async def worker(name: str) -> None:
            async with registry.hold("run:a"):
                order.append(f"{name}-start")
                await asyncio.sleep(0)
                gc.collect()
                order.append(f"{name}-end")

        await asyncio.gather(worker("first"), worker("second"))

        assert order == ["first-start", "first-end", "second-start", "second-end"]

    @pytest.mark.asyncio
    async def test_hold_releases_on_error(self) -> None:
        registry = RunLockRegistry()

        with pytest.raises(RuntimeError):
            async with registry.hold("run:a", "document:ws:doc"):
                raise RuntimeError("boom")

        assert not registry.lock_for("run:a").locked()
        assert not registry.lock_for("document:ws:doc").locked()


@pytest.mark.asyncio
async def test_default_cap_from_settings(directory, monkeypatch) -> None:
    from agentrun.core.config import Settings

    monkeypatch.setenv("AGENTRUN_DEFAULT_MAX_PARALLEL_AGENTS", "4")
    coordinator = RunCoordinator(
        InMemoryRunStore(), directory, settings=Settings(_env_file=None)
    )

    run = await coordinator.create_run(
        RunCreate(
            workspace_id="ws-1",
            document_id="doc-1",
            coordinator_agent_id="agent-coordinator",
            objective="Tighten wording",
        )
    )

    assert run.max_parallel_agents == 4
