"""Collaborators shared by every workflow and run."""

from __future__ import annotations

import logging
from typing import Literal, Mapping, Optional

from .agents import AgentLike
from .config import StepflowConfig, load_config
from .constants import (
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MEMORY_HISTORY_LIMIT,
    PARALLEL_FAIL_FAST,
    PARALLEL_POLICIES,
)
from .exceptions import AgentNotFoundError
from .memory import MemoryStore, get_memory_store
from .telemetry import LoggingTelemetry, Telemetry

logger = logging.getLogger(__name__)


class WorkflowRuntime:
    """Host object handed to factories and visible to step bodies.

    Holds the memory store used by the bookend steps, the telemetry backend,
    registered agents and the engine's execution policy. A runtime holds no
    per-run state and may be shared by any number of concurrent runs.
    """

    def __init__(
        self,
        memory: Optional[MemoryStore] = None,
        telemetry: Optional[Telemetry] = None,
        agents: Optional[Mapping[str, AgentLike]] = None,
        max_iterations: Optional[int] = DEFAULT_MAX_ITERATIONS,
        parallel_failure: Literal["fail_fast", "await_all"] = PARALLEL_FAIL_FAST,
        memory_history_limit: int = DEFAULT_MEMORY_HISTORY_LIMIT,
        config: Optional[StepflowConfig] = None,
    ) -> None:
        if parallel_failure not in PARALLEL_POLICIES:
            raise ValueError(f"Unsupported parallel failure policy: {parallel_failure}")
        self.memory = memory
        self.telemetry = telemetry
        self.agents = dict(agents or {})
        self.max_iterations = max_iterations
        self.parallel_failure = parallel_failure
        self.memory_history_limit = memory_history_limit
        self.config = config

    @classmethod
    def from_config(
        cls,
        config: StepflowConfig,
        agents: Optional[Mapping[str, AgentLike]] = None,
    ) -> "WorkflowRuntime":
        """Build a runtime from loaded configuration."""
        return cls(
            memory=get_memory_store(config.memory.database_url, config=config),
            telemetry=LoggingTelemetry() if config.telemetry.enabled else None,
            agents=agents,
            max_iterations=config.engine.max_iterations,
            parallel_failure=config.engine.parallel_failure,
            memory_history_limit=config.memory.history_limit,
            config=config,
        )

    def register_agent(self, name: str, agent: AgentLike) -> None:
        self.agents[name] = agent

    def get_agent(self, name: str) -> AgentLike:
        try:
            return self.agents[name]
        except KeyError:
            raise AgentNotFoundError(name) from None


_runtime_instance: WorkflowRuntime | None = None


def get_runtime(config: Optional[StepflowConfig] = None) -> WorkflowRuntime:
    """Return the process-wide default runtime, building it on first use."""
    global _runtime_instance
    if _runtime_instance is not None and config is None:
        return _runtime_instance

    _runtime_instance = WorkflowRuntime.from_config(config or load_config())
    return _runtime_instance
