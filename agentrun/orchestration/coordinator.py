"""Run coordinator - the calling layer around the orchestration engine.

The engine's admission checks are pure functions over a snapshot, so two
requests racing on the same run could both observe a free slot. The
coordinator serializes "load snapshot -> validate -> commit" per run with
an ``asyncio.Lock`` keyed by run id; run creation is serialized per
document so at most one run is active for a document at a time.
Notifications are dispatched after the lock is released.
"""

import asyncio
import weakref
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from loguru import logger

from agentrun.core.config import Settings, get_settings
from agentrun.core.errors import ConflictError, NotFoundError, OrchestrationError, RejectReason
from agentrun.decomposition.models import (
    AgentRun,
    AgentTask,
    RunCreate,
    RunStatus,
    RunUpdate,
    TaskCreate,
    TaskUpdate,
)
from agentrun.monitoring.board import Board, RunSummary, summarize_run
from agentrun.orchestration.facade import RunOrchestrator
from agentrun.orchestration.run_machine import RunStateMachine
from agentrun.store.base import AgentDirectory, RunStore
from agentrun.store.notifications import EventType, NotificationDispatcher, RunEvent


def _run_key(run_id: str) -> str:
    return f"run:{run_id}"


def _document_key(workspace_id: str, document_id: str) -> str:
    return f"document:{workspace_id}:{document_id}"


class RunLockRegistry:
    """Named ``asyncio.Lock`` objects created on first use.

    Entries are weak: a lock lives while some holder or waiter references
    it and is dropped once none does, so the registry stays bounded by the
    number of runs with requests in flight.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, *keys: str) -> AsyncIterator[None]:
        """Acquire the named locks in the given order."""
        async with AsyncExitStack() as stack:
            for key in keys:
                await stack.enter_async_context(self.lock_for(key))
            yield

    def __len__(self) -> int:
        return len(self._locks)


class RunCoordinator:
    """
    Serialize admission decisions per run and commit them to the store.

    Example:
        >>> coordinator = RunCoordinator(store, directory)
        >>> run = await coordinator.create_run(RunCreate(...))
        >>> task = await coordinator.create_task(run.id, TaskCreate(...))
        >>> board = await coordinator.get_board(run.id)
    """

    def __init__(
        self,
        store: RunStore,
        directory: AgentDirectory,
        dispatcher: NotificationDispatcher | None = None,
        orchestrator: RunOrchestrator | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.store = store
        self.directory = directory
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.orchestrator = orchestrator or RunOrchestrator(
            run_machine=RunStateMachine(self.settings.agentrun_default_max_parallel_agents)
        )
        self.locks = RunLockRegistry()

    # =========================================================================
    # LOADING
    # =========================================================================

    async def _load_run(self, run_id: str) -> AgentRun:
        run = await self.store.get_run(run_id)
        if run is None:
            raise NotFoundError("Run not found")
        return run

    async def _load_task(self, run_id: str, task_id: str) -> AgentTask:
        task = await self.store.get_task(run_id, task_id)
        if task is None:
            raise NotFoundError("Task not found", task_ids=[task_id])
        return task

    async def _dispatch(
        self,
        event_type: EventType,
        run: AgentRun,
        task: AgentTask | None = None,
    ) -> None:
        payload: dict[str, Any] = {"run": run.model_dump(mode="json")}
        if task is not None:
            payload["task"] = task.model_dump(mode="json")
        await self.dispatcher.dispatch(
            RunEvent(
                type=event_type,
                workspace_id=run.workspace_id,
                run_id=run.id,
                task_id=task.id if task else None,
                payload=payload,
            )
        )

    @staticmethod
    def _log_rejection(action: str, error: OrchestrationError) -> None:
        logger.warning(
            f"{action} rejected: {error.kind.value} ({error.reason.value}) {error.message}"
        )

    # =========================================================================
    # RUNS
    # =========================================================================

    async def create_run(self, request: RunCreate, created_by: str | None = None) -> AgentRun:
        """Create a run in ``active`` status."""
        async with self.locks.hold(_document_key(request.workspace_id, request.document_id)):
            coordinator_active = await self.directory.is_active_member(
                request.coordinator_agent_id, request.workspace_id
            )
            active_run = await self.store.find_active_run(request.workspace_id, request.document_id)
            try:
                run = self.orchestrator.prepare_run(
                    request, coordinator_active, active_run, created_by=created_by
                )
            except OrchestrationError as e:
                self._log_rejection("Run creation", e)
                raise
            run = await self.store.insert_run(run)

        logger.info(f"Created run {run.id} for document {run.document_id}")
        await self._dispatch(EventType.RUN_CREATED, run)
        return run

    async def get_run(self, run_id: str) -> AgentRun:
        return await self._load_run(run_id)

    async def list_runs(
        self,
        workspace_id: str,
        document_id: str | None = None,
        status: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[list[AgentRun], int]:
        """
        List a workspace's runs, newest first.

        An unrecognised ``status`` filter is ignored.

        Returns:
            The requested page and the total number of matches.
        """
        status_filter = None
        if status is not None:
            try:
                status_filter = RunStatus(status)
            except ValueError:
                logger.debug(f"Ignoring unknown run status filter {status!r}")
        return await self.store.list_runs(
            workspace_id,
            document_id=document_id,
            status=status_filter,
            limit=self.settings.clamp_limit(limit),
            offset=max(0, offset),
        )

    async def update_run(self, run_id: str, update: RunUpdate) -> AgentRun:
        """Apply a status change and/or attribute update to a run."""
        async with self.locks.hold(_run_key(run_id)):
            run = await self._load_run(run_id)
            tasks = await self.store.list_tasks(run_id)
            try:
                updated = self.orchestrator.apply_run_update(run, update, tasks)
            except OrchestrationError as e:
                self._log_rejection(f"Run {run_id} update", e)
                raise

            if updated.status == RunStatus.ACTIVE and run.status != RunStatus.ACTIVE:
                # Reactivation competes with run creation for the document
                async with self.locks.hold(_document_key(run.workspace_id, run.document_id)):
                    other = await self.store.find_active_run(run.workspace_id, run.document_id)
                    if other is not None and other.id != run.id:
                        error = ConflictError(
                            "An active run already exists for this document",
                            RejectReason.ACTIVE_RUN_EXISTS,
                            task_ids=[other.id],
                        )
                        self._log_rejection(f"Run {run_id} update", error)
                        raise error
                    updated = await self._commit_run(updated)
            else:
                updated = await self._commit_run(updated)

        if updated.status != run.status:
            logger.info(f"Run {run_id}: {run.status.value} -> {updated.status.value}")
        event = (
            EventType.RUN_COMPLETED
            if updated.status == RunStatus.COMPLETED and run.status != RunStatus.COMPLETED
            else EventType.RUN_UPDATED
        )
        await self._dispatch(event, updated)
        return updated

    async def _commit_run(self, run: AgentRun) -> AgentRun:
        run.updated_at = datetime.now(timezone.utc)
        return await self.store.update_run(run)

    async def get_summary(self, run_id: str) -> tuple[AgentRun, RunSummary]:
        """Load a run with its per-status task counts."""
        run = await self._load_run(run_id)
        return run, summarize_run(await self.store.list_tasks(run_id))

    async def get_board(self, run_id: str) -> Board:
        run = await self._load_run(run_id)
        return self.orchestrator.board(run, await self.store.list_tasks(run_id))

    # =========================================================================
    # TASKS
    # =========================================================================

    async def list_tasks(self, run_id: str) -> list[AgentTask]:
        await self._load_run(run_id)
        return await self.store.list_tasks(run_id)

    async def get_task(self, run_id: str, task_id: str) -> AgentTask:
        return await self._load_task(run_id, task_id)

    async def create_task(self, run_id: str, request: TaskCreate) -> AgentTask:
        """Admit a new task into a run."""
        async with self.locks.hold(_run_key(run_id)):
            run = await self._load_run(run_id)
            tasks = await self.store.list_tasks(run_id)
            assignee_active = False
            if request.assigned_agent_id:
                assignee_active = await self.directory.is_active_member(
                    request.assigned_agent_id, run.workspace_id
                )
            try:
                task = self.orchestrator.prepare_task(run, request, tasks, assignee_active)
            except OrchestrationError as e:
                self._log_rejection(f"Task creation in run {run_id}", e)
                raise
            task = await self.store.insert_task(task)

        logger.info(
            f"Created {task.task_type.value} task {task.id} in run {run_id} ({task.status.value})"
        )
        await self._dispatch(EventType.TASK_CREATED, run, task)
        return task

    async def update_task(self, run_id: str, task_id: str, update: TaskUpdate) -> AgentTask:
        """Apply a partial update, including a status transition, to a task."""
        async with self.locks.hold(_run_key(run_id)):
            run = await self._load_run(run_id)
            task = await self._load_task(run_id, task_id)
            tasks = await self.store.list_tasks(run_id)

            assignee_active = None
            if update.provided("assigned_agent_id") and isinstance(update.assigned_agent_id, str):
                assignee_active = await self.directory.is_active_member(
                    update.assigned_agent_id, run.workspace_id
                )

            try:
                updated = self.orchestrator.apply_task_update(
                    run, task, update, tasks, assignee_active
                )
            except OrchestrationError as e:
                self._log_rejection(f"Task {task_id} update", e)
                raise

            if updated == task:
                logger.debug(f"Task {task_id} update is a no-op")
                return task

            updated.updated_at = datetime.now(timezone.utc)
            updated = await self.store.update_task(updated)

        if updated.status != task.status:
            logger.info(f"Task {task_id}: {task.status.value} -> {updated.status.value}")
        await self._dispatch(EventType.TASK_UPDATED, run, updated)
        return updated
