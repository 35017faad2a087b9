"""
config/settings.py — taskpull Runtime Settings

Merges config.yaml (structure/defaults) with environment variables.
Pydantic-powered — all fields are validated and typed.

  - SchedulerConfig validates the concurrency ceiling and the per-worker
    multiplier used when no explicit ceiling is configured
  - LoggingConfig normalises and validates the log level
  - validate_all() performs cross-field startup validation and raises
    ConfigError listing every problem found
  - load_settings() respects TASKPULL_CONFIG as a fallback when no explicit
    config_path argument is given
"""

from __future__ import annotations

import os
import threading as _threading
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ─────────────────────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────────────────────

class ConfigError(Exception):
    """Raised by validate_all() when one or more config problems are found."""


_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


# ─────────────────────────────────────────────────────────────────────────────
# Sub-models
# ─────────────────────────────────────────────────────────────────────────────

class SchedulerConfig(BaseModel):
    # None = derive from tasks_per_worker × registered workers
    max_concurrent_tasks: Optional[int] = None
    tasks_per_worker: int = 3

    @field_validator("max_concurrent_tasks")
    @classmethod
    def _positive_ceiling(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("scheduler.max_concurrent_tasks must be >= 1 (or null)")
        return v

    @field_validator("tasks_per_worker")
    @classmethod
    def _positive_multiplier(cls, v: int) -> int:
        if v < 1:
            raise ValueError("scheduler.tasks_per_worker must be >= 1")
        return v


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_dir: str = "./data/logs"
    max_file_size_mb: int = 100
    backup_count: int = 5
    console_output: bool = False
    json_format: Optional[bool] = True

    @field_validator("level")
    @classmethod
    def _valid_log_level(cls, v: str) -> str:
        upper = v.upper()
        if upper not in _VALID_LOG_LEVELS:
            raise ValueError(
                f"logging.level '{v}' is not valid. "
                f"Must be one of: {sorted(_VALID_LOG_LEVELS)}"
            )
        return upper

    @field_validator("max_file_size_mb", "backup_count")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("logging sizes and counts must be >= 0")
        return v


# ─────────────────────────────────────────────────────────────────────────────
# Root Settings
# ─────────────────────────────────────────────────────────────────────────────

class Settings(BaseSettings):
    """
    taskpull runtime settings.

    Priority (highest to lowest):
      1. Init arguments (config.yaml sections passed by load_settings)
      2. Environment variables (TASKPULL_SCHEDULER__MAX_CONCURRENT_TASKS=4)
      3. .env file
      4. Field defaults
    """

    model_config = SettingsConfigDict(
        env_prefix="TASKPULL_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("scheduler", mode="before")
    @classmethod
    def _coerce_scheduler(cls, v: Any) -> Any:
        return SchedulerConfig(**v) if isinstance(v, dict) else v

    @field_validator("logging", mode="before")
    @classmethod
    def _coerce_logging(cls, v: Any) -> Any:
        return LoggingConfig(**v) if isinstance(v, dict) else v

    # -- Convenience properties ----------------------------------------------

    @property
    def log_level(self) -> str:
        return self.logging.level.upper()

    @property
    def log_dir(self) -> Path:
        return Path(self.logging.log_dir)

    def validate_all(self) -> None:
        """
        Full startup validation. Raises ConfigError listing every problem found.

        Pydantic field validators catch type/value errors at parse time; this
        method catches problems that only show up against the runtime
        environment.
        """
        errors: list[str] = []

        # ── Log directory must be a directory (or creatable) ─────────────────
        log_dir = self.log_dir.expanduser()
        if log_dir.exists() and not log_dir.is_dir():
            errors.append(
                f"logging.log_dir '{self.logging.log_dir}' exists but is not a directory."
            )

        # ── File logging with no room to rotate ──────────────────────────────
        if self.logging.max_file_size_mb == 0 and self.logging.backup_count > 0:
            errors.append(
                "logging.backup_count is set but logging.max_file_size_mb is 0, "
                "so the log file never rotates. Set a size or drop backup_count."
            )

        if errors:
            numbered = "\n".join(f"  {i+1}. {e}" for i, e in enumerate(errors))
            raise ConfigError(
                f"\n\ntaskpull startup failed — {len(errors)} configuration "
                f"problem(s) found:\n\n{numbered}\n"
            )


# ─────────────────────────────────────────────────────────────────────────────
# Loader + singleton
# ─────────────────────────────────────────────────────────────────────────────

_singleton: Optional[Settings] = None
_singleton_lock = _threading.Lock()

_KNOWN_SECTIONS = {"scheduler", "logging"}


def _load_yaml(path: Path) -> dict:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _resolve_config_path(config_path: str | Path | None) -> Path:
    """
    Resolve the config file path with this priority:
      1. Explicit config_path argument (from --config CLI flag)
      2. TASKPULL_CONFIG environment variable
      3. Default: config/config.yaml
    """
    if config_path is not None:
        return Path(config_path)
    env_path = os.environ.get("TASKPULL_CONFIG")
    if env_path:
        return Path(env_path)
    return Path("config/config.yaml")


def _build_settings(config_path: str | Path | None) -> Settings:
    yaml_data = _load_yaml(_resolve_config_path(config_path))
    init_kwargs = {k: v for k, v in yaml_data.items() if k in _KNOWN_SECTIONS}
    return Settings(**init_kwargs)


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings by merging config.yaml with environment variables."""
    global _singleton
    instance = _build_settings(config_path)
    with _singleton_lock:
        _singleton = instance
    return instance


def get_settings() -> Settings:
    """
    Return the global Settings singleton, loading it from the default config
    path on first use.
    """
    global _singleton
    if _singleton is not None:
        return _singleton
    with _singleton_lock:
        if _singleton is None:
            _singleton = _build_settings(None)
        return _singleton


def reset_settings() -> None:
    """Drop the cached singleton. Used by tests."""
    global _singleton
    with _singleton_lock:
        _singleton = None
