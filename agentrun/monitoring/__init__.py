"""Monitoring module - board and summary projections of a run."""

from agentrun.monitoring.board import (
    BOARD_COLUMNS,
    Board,
    Readiness,
    RunSummary,
    board_to_dict,
    build_board,
    summarize_run,
)

__all__ = [
    "BOARD_COLUMNS",
    "Board",
    "Readiness",
    "RunSummary",
    "board_to_dict",
    "build_board",
    "summarize_run",
]
