"""Core module - configuration, logging and the rejection taxonomy."""

from agentrun.core.config import Settings, clear_settings_cache, get_settings
from agentrun.core.errors import (
    AdmissionLimitError,
    ConflictError,
    ErrorKind,
    GuardError,
    IllegalRunTransitionError,
    IncompleteRunError,
    InvalidFieldError,
    NotFoundError,
    OrchestrationError,
    RejectReason,
    UnknownReferenceError,
)
from agentrun.core.logging import configure_logging

__all__ = [
    # Config
    "Settings",
    "clear_settings_cache",
    "configure_logging",
    "get_settings",
    # Errors
    "AdmissionLimitError",
    "ConflictError",
    "ErrorKind",
    "GuardError",
    "IllegalRunTransitionError",
    "IncompleteRunError",
    "InvalidFieldError",
    "NotFoundError",
    "OrchestrationError",
    "RejectReason",
    "UnknownReferenceError",
]
