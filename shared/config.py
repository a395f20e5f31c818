"""
Shared configuration management for the ticket rule engine.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="RULES_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    service_name: str = Field(default="rule-engine")

    # Executor assignment
    default_max_concurrent_tickets: int = Field(default=10, ge=0)

    # Due dates
    default_due_hours: float = Field(default=24.0, gt=0)

    # Execution log queries
    execution_log_limit: int = Field(default=100, ge=1)

    # Observability
    enable_metrics: bool = Field(default=True)


def get_config(**overrides) -> BaseConfig:
    """Get rule engine configuration, with optional explicit overrides."""
    return BaseConfig(**overrides)
