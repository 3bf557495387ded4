"""
Scope Conflict Detection for agent runs

Prevents two write tasks from claiming overlapping regions of the same
document at once:
- Document scopes are either numeric ranges or opaque tokens
- Only numeric ranges participate in overlap detection
- Opaque or absent scopes never conflict with anything
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from loguru import logger

from agentrun.core.errors import ConflictError, InvalidFieldError, RejectReason
from agentrun.decomposition.models import AgentTask


@dataclass(frozen=True)
class NumericRange:
    """Closed interval of document positions, normalized so ``start <= end``."""

    start: float
    end: float

    @classmethod
    def of(cls, a: float, b: float) -> "NumericRange":
        return cls(min(a, b), max(a, b))

    def overlaps(self, other: "NumericRange") -> bool:
        # Touching endpoints count as overlap
        return self.start <= other.end and other.start <= self.end

    def to_dict(self) -> dict[str, float]:
        return {"from": self.start, "to": self.end}


@dataclass(frozen=True)
class OpaqueScope:
    """Non-numeric scope such as a named section. Never overlaps."""

    payload: Any

    def overlaps(self, other: "DocumentScope") -> bool:
        return False


DocumentScope = NumericRange | OpaqueScope


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a position
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # int too large for a float
        return False


def parse_scope(raw: Any) -> DocumentScope | None:
    """
    Interpret a raw ``document_scope`` payload.

    Args:
        raw: Scope as stored on a task, or an already parsed scope.

    Returns:
        NumericRange when ``raw`` has finite numeric ``from`` and ``to``,
        None when absent, OpaqueScope otherwise.

    Example:
        >>> parse_scope({"from": 120, "to": 40})
        NumericRange(start=40, end=120)
        >>> parse_scope({"section": "intro"})
        OpaqueScope(payload={'section': 'intro'})
    """
    if raw is None:
        return None
    if isinstance(raw, (NumericRange, OpaqueScope)):
        return raw
    if isinstance(raw, dict):
        start, end = raw.get("from"), raw.get("to")
        if _is_number(start) and _is_number(end):
            return NumericRange.of(start, end)
    return OpaqueScope(raw)


def validate_scope_payload(raw: Any) -> dict[str, Any] | None:
    """
    Check that a requested ``document_scope`` is an object or absent.

    Raises:
        InvalidFieldError: If the payload is some other JSON value.
    """
    if raw is None or isinstance(raw, dict):
        return raw
    raise InvalidFieldError("document_scope", "document_scope must be an object")


def overlaps(a: Any, b: Any) -> bool:
    """
    Compare two scope descriptors for overlap.

    Missing or opaque scopes are treated as non-conflicting.

    Example:
        >>> overlaps({"from": 0, "to": 100}, {"from": 90, "to": 200})
        True
        >>> overlaps({"from": 0, "to": 10}, {"from": 11, "to": 20})
        False
        >>> overlaps({"section": "intro"}, {"section": "intro"})
        False
    """
    scope_a = parse_scope(a)
    scope_b = parse_scope(b)
    if not isinstance(scope_a, NumericRange) or not isinstance(scope_b, NumericRange):
        return False
    return scope_a.overlaps(scope_b)


def find_scope_conflict(
    scope: Any,
    tasks: Iterable[AgentTask],
    exclude_id: str | None = None,
) -> AgentTask | None:
    """
    Find the first open write task whose scope overlaps ``scope``.

    Args:
        scope: Candidate scope (raw or parsed).
        tasks: Tasks of the run, in creation order.
        exclude_id: Task to ignore, typically the one being checked.

    Returns:
        The conflicting task, or None.
    """
    candidate = parse_scope(scope)
    if not isinstance(candidate, NumericRange):
        return None

    for task in tasks:
        if task.id == exclude_id or not task.holds_scope:
            continue
        if overlaps(candidate, task.document_scope):
            logger.debug(f"Scope {candidate.to_dict()} overlaps write task {task.id}")
            return task
    return None


def ensure_no_scope_conflict(
    scope: Any,
    tasks: Iterable[AgentTask],
    exclude_id: str | None = None,
) -> None:
    """
    Reject a write scope that overlaps an open write task.

    Raises:
        ConflictError: Referencing the conflicting task id.
    """
    conflicting = find_scope_conflict(scope, tasks, exclude_id=exclude_id)
    if conflicting is not None:
        raise ConflictError(
            f"document_scope overlaps with existing write task {conflicting.id}",
            RejectReason.SCOPE_CONFLICT,
            task_ids=[conflicting.id],
        )


def scope_conflicts(tasks: Iterable[AgentTask]) -> list[tuple[str, str]]:
    """
    List every pair of open write tasks whose scopes overlap.

    A run that honours scope exclusivity always yields an empty list.
    """
    holders = [task for task in tasks if task.holds_scope]
    pairs: list[tuple[str, str]] = []
    for index, task in enumerate(holders):
        for other in holders[index + 1 :]:
            if overlaps(task.document_scope, other.document_scope):
                pairs.append((task.id, other.id))
    return pairs
