"""Stepflow: step-graph workflow composition and execution."""

from .context import RunContext, StepResult
from .exceptions import (
    ContractViolationError,
    GraphDefinitionError,
    LoopLimitExceededError,
    NestedRunError,
    PredicateError,
    StepExecutionError,
    StepflowError,
    StepNotExecutedError,
    WorkflowCommittedError,
    WorkflowRunError,
)
from .factories import FACTORIES, build_workflow
from .graph import Workflow, WorkflowBuilder
from .memory import get_memory_store
from .pipelines import create_agent_pipeline_workflow
from .run import RunResult, WorkflowRun, run_nested
from .runtime import WorkflowRuntime, get_runtime
from .step import Step, StepContext

__version__ = "0.1.0"
__all__ = [
    "Step",
    "StepContext",
    "StepResult",
    "RunContext",
    "Workflow",
    "WorkflowBuilder",
    "WorkflowRun",
    "RunResult",
    "WorkflowRuntime",
    "build_workflow",
    "create_agent_pipeline_workflow",
    "run_nested",
    "get_runtime",
    "get_memory_store",
    "FACTORIES",
    "StepflowError",
    "ContractViolationError",
    "GraphDefinitionError",
    "WorkflowCommittedError",
    "StepExecutionError",
    "StepNotExecutedError",
    "PredicateError",
    "LoopLimitExceededError",
    "NestedRunError",
    "WorkflowRunError",
]
