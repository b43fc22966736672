"""Configuration system using pydantic-settings with environment variable loading."""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

#: Hard bounds on the number of pool workers.
MIN_POOL_SIZE = 1
MAX_POOL_SIZE = 8


class EngineSettings(BaseSettings):
    """Computation kernel tuning.

    All fields configurable via ENGINE_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="ENGINE_")

    sort_direct_threshold: int = 100_000  # below this, sort in a single pass
    sort_chunk_size: int = 10_000  # items per independently sorted chunk
    default_rsi_period: int = 14
    default_bollinger_period: int = 20
    default_bollinger_std_dev: float = 2.0

    @field_validator("sort_direct_threshold", "sort_chunk_size")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value


class WorkerSettings(BaseSettings):
    """Worker pool configuration.

    All fields configurable via WORKER_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="WORKER_")

    pool_size: int = 4
    task_timeout_seconds: float | None = None  # None = no deadline

    @field_validator("pool_size")
    @classmethod
    def _clamp_pool_size(cls, value: int) -> int:
        return max(MIN_POOL_SIZE, min(value, MAX_POOL_SIZE))


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    engine: EngineSettings = EngineSettings()
    worker: WorkerSettings = WorkerSettings()
