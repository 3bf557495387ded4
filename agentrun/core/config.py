"""Configuration management using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    agentrun_log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    agentrun_debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    agentrun_log_dir: str | None = Field(
        default=None,
        description="Directory for rotating log files (console only when unset)",
    )

    # Runs
    agentrun_default_max_parallel_agents: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Parallel agent cap for runs created without an explicit value",
    )

    # Listing
    agentrun_list_limit: int = Field(
        default=100,
        ge=1,
        description="Default page size when listing runs",
    )
    agentrun_list_limit_max: int = Field(
        default=500,
        ge=1,
        description="Largest page size a caller may request",
    )

    def clamp_limit(self, limit: int | None) -> int:
        """Clamp a requested page size into ``[1, agentrun_list_limit_max]``."""
        if limit is None:
            limit = self.agentrun_list_limit
        return min(max(1, limit), self.agentrun_list_limit_max)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings instance loaded from environment.

    Example:
        >>> settings = get_settings()
        >>> settings.agentrun_default_max_parallel_agents
        3
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
