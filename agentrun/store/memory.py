"""In-memory implementations of the store and identity collaborators.

Records are deep-copied on the way in and out so callers never share
mutable state with the store.
"""

from collections.abc import Iterable

from loguru import logger

from agentrun.core.errors import NotFoundError
from agentrun.decomposition.models import AgentRun, AgentTask, RunStatus


class InMemoryRunStore:
    """
    Dictionary-backed ``RunStore``.

    Example:
        >>> store = InMemoryRunStore()
        >>> await store.insert_run(run)
        >>> await store.list_tasks(run.id)
        []
    """

    def __init__(self) -> None:
        self._runs: dict[str, AgentRun] = {}
        self._tasks: dict[str, AgentTask] = {}
        self._task_order: dict[str, list[str]] = {}

    # =========================================================================
    # RUNS
    # =========================================================================

    async def get_run(self, run_id: str) -> AgentRun | None:
        run = self._runs.get(run_id)
        return run.model_copy(deep=True) if run else None

    async def list_runs(
        self,
        workspace_id: str,
        document_id: str | None = None,
        status: RunStatus | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[AgentRun], int]:
        matches = [
            run
            for run in self._runs.values()
            if run.workspace_id == workspace_id
            and (document_id is None or run.document_id == document_id)
            and (status is None or run.status == status)
        ]
        matches.sort(key=lambda run: run.created_at, reverse=True)
        page = matches[offset : offset + limit]
        return [run.model_copy(deep=True) for run in page], len(matches)

    async def find_active_run(self, workspace_id: str, document_id: str) -> AgentRun | None:
        for run in self._runs.values():
            if (
                run.workspace_id == workspace_id
                and run.document_id == document_id
                and run.status == RunStatus.ACTIVE
            ):
                return run.model_copy(deep=True)
        return None

    async def insert_run(self, run: AgentRun) -> AgentRun:
        self._runs[run.id] = run.model_copy(deep=True)
        self._task_order.setdefault(run.id, [])
        logger.debug(f"Stored run {run.id}")
        return run.model_copy(deep=True)

    async def update_run(self, run: AgentRun) -> AgentRun:
        if run.id not in self._runs:
            raise NotFoundError("Run not found")
        self._runs[run.id] = run.model_copy(deep=True)
        return run.model_copy(deep=True)

    # =========================================================================
    # TASKS
    # =========================================================================

    async def list_tasks(self, run_id: str) -> list[AgentTask]:
        return [
            self._tasks[task_id].model_copy(deep=True)
            for task_id in self._task_order.get(run_id, [])
        ]

    async def get_task(self, run_id: str, task_id: str) -> AgentTask | None:
        task = self._tasks.get(task_id)
        if task is None or task.run_id != run_id:
            return None
        return task.model_copy(deep=True)

    async def get_tasks(self, run_id: str, task_ids: Iterable[str]) -> list[AgentTask]:
        wanted = set(task_ids)
        return [task for task in await self.list_tasks(run_id) if task.id in wanted]

    async def insert_task(self, task: AgentTask) -> AgentTask:
        if task.run_id not in self._runs:
            raise NotFoundError("Run not found")
        self._tasks[task.id] = task.model_copy(deep=True)
        self._task_order.setdefault(task.run_id, []).append(task.id)
        logger.debug(f"Stored task {task.id} in run {task.run_id}")
        return task.model_copy(deep=True)

    async def update_task(self, task: AgentTask) -> AgentTask:
        existing = self._tasks.get(task.id)
        if existing is None or existing.run_id != task.run_id:
            raise NotFoundError("Task not found", task_ids=[task.id])
        self._tasks[task.id] = task.model_copy(deep=True)
        return task.model_copy(deep=True)


class InMemoryAgentDirectory:
    """Dictionary-backed ``AgentDirectory``."""

    def __init__(self) -> None:
        self._agents: dict[str, tuple[str, bool]] = {}

    def register(self, agent_id: str, workspace_id: str, active: bool = True) -> None:
        """Register or replace an agent identity."""
        self._agents[agent_id] = (workspace_id, active)

    def deactivate(self, agent_id: str) -> None:
        if agent_id in self._agents:
            workspace_id, _ = self._agents[agent_id]
            self._agents[agent_id] = (workspace_id, False)

    async def is_active_member(self, agent_id: str, workspace_id: str) -> bool:
        entry = self._agents.get(agent_id)
        if entry is None:
            return False
        agent_workspace, active = entry
        return active and agent_workspace == workspace_id
