"""Collaborator interfaces for the calling layer.

The engine never performs I/O itself; the run coordinator talks to these
protocols to load snapshots, commit accepted mutations and resolve
identities.
"""

from collections.abc import Iterable
from typing import Protocol

from agentrun.decomposition.models import AgentRun, AgentTask, RunStatus


class RunStore(Protocol):
    """Persistence for runs and tasks. Each call is atomic for one row."""

    async def get_run(self, run_id: str) -> AgentRun | None: ...

    async def list_runs(
        self,
        workspace_id: str,
        document_id: str | None = None,
        status: RunStatus | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[AgentRun], int]:
        """Return one page of runs, newest first, and the total match count."""
        ...

    async def find_active_run(self, workspace_id: str, document_id: str) -> AgentRun | None: ...

    async def insert_run(self, run: AgentRun) -> AgentRun: ...

    async def update_run(self, run: AgentRun) -> AgentRun: ...

    async def list_tasks(self, run_id: str) -> list[AgentTask]:
        """Return all tasks of a run in creation order."""
        ...

    async def get_task(self, run_id: str, task_id: str) -> AgentTask | None: ...

    async def get_tasks(self, run_id: str, task_ids: Iterable[str]) -> list[AgentTask]: ...

    async def insert_task(self, task: AgentTask) -> AgentTask: ...

    async def update_task(self, task: AgentTask) -> AgentTask: ...


class AgentDirectory(Protocol):
    """Workspace/identity authority."""

    async def is_active_member(self, agent_id: str, workspace_id: str) -> bool: ...
