"""
agentrun HTTP API.

FastAPI surface over the run coordinator.
"""

from agentrun.api.main import create_app, status_for

__all__ = ["create_app", "status_for"]
