"""
Application settings using Pydantic.

Provides environment-based configuration loading with BONES_ prefix.
Credentials for the external systems are read from the environment only;
nothing here stores them.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="BONES_",
    )

    # API
    api_prefix: str = ""
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: list[str] = []

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json, console

    # Pipeline
    failure_policy: str = "halt"  # halt, continue
    step_timeout_seconds: float = 1800.0
    retain_tombstones: bool = True

    # Local tooling
    git_binary: str = "git"
    terraform_binary: str = "terraform"
    workspace_root: Path | None = None
    command_timeout_seconds: float = 900.0

    # GitHub
    github_api_url: str = "https://api.github.com"
    github_base_url: str = "https://github.com"
    github_org: str | None = None
    github_user: str | None = None
    github_email: str = "bones@example.com"
    github_token: str | None = None

    # AWS
    aws_region: str = "us-east-1"
    aws_access_key: str | None = None
    aws_secret_key: str | None = None
    aws_vpc_id: str | None = None
    state_bucket: str = "bones-server"

    # CircleCI
    circleci_token: str | None = None

    # HTTP client settings
    http_timeout: int = 30
    http_max_retries: int = 3
    http_retry_backoff_factor: float = 0.5


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
