"""Configuration management for cluster debug port allocation."""

from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings

from .errors import ConfigurationError

MAX_PORT = 65535


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    worker_debug_port: Optional[int] = Field(
        default=None,
        ge=1,
        le=MAX_PORT,
        description="Minimal debug port for workers. Overrides the port derived from the primary's --inspect flags.",
    )
    max_debug_port: int = Field(
        default=MAX_PORT,
        ge=1,
        le=MAX_PORT,
        description="Highest port the allocator may hand out before giving up",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Path for the JSON error log (disabled if unset)",
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "CLUSTER_"
        env_ignore_empty = True
        extra = "ignore"


def get_settings() -> Settings:
    """Get application settings, loading from environment.

    Raises:
        ConfigurationError: If a variable is set but cannot be parsed
    """
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid cluster debug configuration: {e}") from e
