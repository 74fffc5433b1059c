"""Centralized configuration — Pydantic BaseSettings with TOML + dotenv sources.

Settings live in config.toml. Environment variables override it using ``__``
as the nested delimiter (e.g. ``SUPERVISOR__SAFETY_TIMEOUT_SECONDS=120``).

Priority (highest wins): init args > env vars > .env > config.toml

Usage::

    from docker_mcp.config import get_settings

    s = get_settings()
    print(s.container.name)
    print(s.supervisor.default_inactivity_seconds)
"""

from __future__ import annotations

from pydantic import BaseModel, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

# ---------------------------------------------------------------------------
# Sub-models (each maps to a [section] in config.toml)
# ---------------------------------------------------------------------------


class _StrictModel(BaseModel):
    """Base for all config sub-models — reject unknown keys so typos fail loudly."""

    model_config = {"extra": "forbid"}


class ContainerConfig(_StrictModel):
    name: str = "mcp-container"
    shell: str = "bash"
    runtime: str = "docker"  # CLI binary: "docker" | "podman"

    @field_validator("name", "shell", "runtime")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v


class SupervisorConfig(_StrictModel):
    default_inactivity_seconds: float = 20
    safety_timeout_seconds: float = 600  # 10 minutes, regardless of activity
    poll_interval_seconds: float = 0.5
    completed_job_ttl_seconds: float | None = 3600  # None = keep forever

    @field_validator(
        "default_inactivity_seconds",
        "safety_timeout_seconds",
        "poll_interval_seconds",
        "completed_job_ttl_seconds",
    )
    @classmethod
    def positive(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("must be a positive number of seconds")
        return v


_DEFAULT_IGNORE_PATTERNS = [
    "node_modules",
    ".git",
    "dist",
    "build",
    "target",
    ".next",
    ".nuxt",
    ".vscode",
    ".idea",
    "*.log",
    ".DS_Store",
    "Thumbs.db",
    "*.tmp",
    "*.temp",
]


class FileOpsConfig(_StrictModel):
    timeout_seconds: float = 30
    ls_max_entries: int = 100
    grep_max_results: int = 100
    read_limit: int = 2000
    max_line_length: int = 2000
    ignore_patterns: list[str] = list(_DEFAULT_IGNORE_PATTERNS)

    @field_validator("ls_max_entries", "grep_max_results", "read_limit", "max_line_length")
    @classmethod
    def clamp_min_one(cls, v: int) -> int:
        return max(1, v)


class LoggingConfig(_StrictModel):
    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        return v.upper()


# ---------------------------------------------------------------------------
# Root Settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        toml_file="config.toml",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    container: ContainerConfig = ContainerConfig()
    supervisor: SupervisorConfig = SupervisorConfig()
    file_ops: FileOpsConfig = FileOpsConfig()
    logging: LoggingConfig = LoggingConfig()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Priority: init > env vars > .env > config.toml > file secrets."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_settings: Settings | None = None


def get_settings() -> Settings:
    """Lazy cached singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for tests)."""
    global _settings
    _settings = None
