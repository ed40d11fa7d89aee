from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from foldspace.constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    MISE_CACHE_TTL,
    REPO_POLL_INTERVAL,
    STATS_CACHE_TTL,
    STATS_HEARTBEAT_INTERVAL,
    SUBPROCESS_TIMEOUT,
)


class Config(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FOLDSPACE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_assignment=True,
    )

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"

    # Background cadence
    repo_poll_interval: float = REPO_POLL_INTERVAL
    heartbeat_interval: float = STATS_HEARTBEAT_INTERVAL
    subprocess_timeout: float = SUBPROCESS_TIMEOUT

    # Caches
    stats_cache_ttl: float = STATS_CACHE_TTL
    mise_cache_ttl: float = MISE_CACHE_TTL

    # Host agent config root (settings, plugins, per-project transcripts)
    claude_dir: Path = Path.home() / ".claude"

    # Directory holding the dashboard index.html
    web_dir: Path | None = None

    @field_validator(
        "repo_poll_interval",
        "heartbeat_interval",
        "subprocess_timeout",
        "stats_cache_ttl",
        "mise_cache_ttl",
    )
    @classmethod
    def _validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"must be positive, got {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unsupported log level: {v}")
        return level

    @property
    def projects_dir(self) -> Path:
        return self.claude_dir / "projects"

    @property
    def index_path(self) -> Path | None:
        if self.web_dir is None:
            return None
        return self.web_dir / "index.html"


def get_config() -> Config:
    return Config()
