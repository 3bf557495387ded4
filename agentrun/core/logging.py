"""Loguru configuration."""

import sys
from pathlib import Path

from loguru import logger

from agentrun.core.config import Settings, get_settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def configure_logging(settings: Settings | None = None) -> None:
    """Configure loguru based on settings.

    Replaces the default handler with a console sink and, when
    ``agentrun_log_dir`` is set, a daily rotating file sink.
    """
    settings = settings or get_settings()
    logger.remove()

    console_level = "DEBUG" if settings.agentrun_debug else settings.agentrun_log_level
    logger.add(
        sys.stderr,
        level=console_level,
        format=LOG_FORMAT,
        colorize=True,
    )

    if settings.agentrun_log_dir:
        logs_dir = Path(settings.agentrun_log_dir)
        logs_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(logs_dir / "agentrun_{time:YYYY-MM-DD}.log"),
            rotation="1 day",
            retention="7 days",
            level=settings.agentrun_log_level,
            format=LOG_FORMAT,
        )

    logger.debug(f"Logging configured (console level {console_level})")
