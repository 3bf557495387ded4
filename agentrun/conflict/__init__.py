"""
Scope Conflict Detection Module

Keeps concurrent write tasks in a run on disjoint document regions.
"""

from agentrun.conflict.detector import (
    DocumentScope,
    NumericRange,
    OpaqueScope,
    ensure_no_scope_conflict,
    find_scope_conflict,
    overlaps,
    parse_scope,
    scope_conflicts,
    validate_scope_payload,
)

__all__ = [
    "DocumentScope",
    "NumericRange",
    "OpaqueScope",
    "ensure_no_scope_conflict",
    "find_scope_conflict",
    "overlaps",
    "parse_scope",
    "scope_conflicts",
    "validate_scope_payload",
]
