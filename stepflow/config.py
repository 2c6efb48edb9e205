from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    CONFIG_ENV_VAR,
    DATABASE_URL_ENV_VAR,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MEMORY_HISTORY_LIMIT,
    MAX_ITERATIONS_ENV_VAR,
    PARALLEL_FAIL_FAST,
)


class EngineConfig(BaseModel):
    """Execution policy settings."""

    max_iterations: Optional[int] = Field(default=DEFAULT_MAX_ITERATIONS, ge=1)
    parallel_failure: Literal["fail_fast", "await_all"] = PARALLEL_FAIL_FAST


class MemoryConfig(BaseModel):
    """Thread memory settings."""

    database_url: Optional[str] = None
    history_limit: int = Field(default=DEFAULT_MEMORY_HISTORY_LIMIT, ge=1)


class TelemetryConfig(BaseModel):
    enabled: bool = True


class StepflowConfig(BaseModel):
    """Top-level configuration model."""

    engine: EngineConfig = EngineConfig()
    memory: MemoryConfig = MemoryConfig()
    telemetry: TelemetryConfig = TelemetryConfig()
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> StepflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to STEPFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv(CONFIG_ENV_VAR, "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = StepflowConfig(**data)
    else:
        config = StepflowConfig()

    env_db_url = os.getenv(DATABASE_URL_ENV_VAR)
    if env_db_url:
        config.memory.database_url = env_db_url

    env_max_iterations = os.getenv(MAX_ITERATIONS_ENV_VAR)
    if env_max_iterations:
        config.engine.max_iterations = int(env_max_iterations)
    return config
