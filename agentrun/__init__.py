"""
agentrun - orchestration engine for multi-agent document runs.

Decides whether runs and tasks may change state, gates parallel work and
keeps concurrent write tasks on disjoint document regions.
"""

__version__ = "0.1.0"

from agentrun.orchestration import RunCoordinator, RunOrchestrator

__all__ = ["RunCoordinator", "RunOrchestrator", "__version__"]
