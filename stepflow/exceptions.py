"""Exception hierarchy for stepflow workflows."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, Optional

if TYPE_CHECKING:
    from .context import StepResult


class StepflowError(Exception):
    """Base class for all stepflow errors."""


class GraphDefinitionError(StepflowError):
    """Raised when a workflow graph is composed incorrectly."""


class WorkflowCommittedError(GraphDefinitionError):
    """Raised when composing a graph after ``commit()``."""

    def __init__(self, workflow_name: str) -> None:
        super().__init__(f"Workflow '{workflow_name}' is already committed")
        self.workflow_name = workflow_name


class ContractViolationError(StepflowError):
    """A value does not match its declared contract."""

    def __init__(self, subject: str, kind: str, errors: list[dict[str, Any]]) -> None:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ())) or '<root>'}: {err.get('msg')}"
            for err in errors
        )
        super().__init__(f"{kind} contract violated for '{subject}': {details}")
        self.subject = subject
        self.kind = kind
        self.errors = errors


class StepExecutionError(StepflowError):
    """A step body raised an exception."""

    def __init__(self, step_id: str, cause: BaseException) -> None:
        super().__init__(f"Step '{step_id}' failed: {cause}")
        self.step_id = step_id
        self.__cause__ = cause


class StepNotExecutedError(StepflowError, LookupError):
    """Raised when reading the result of a step that has not run."""

    def __init__(self, step_id: str) -> None:
        super().__init__(f"Step '{step_id}' has not been executed")
        self.step_id = step_id


class StepFailedError(StepflowError):
    """Raised when reading the output of a step that recorded an error."""

    def __init__(self, step_id: str, error: Optional[str]) -> None:
        super().__init__(f"Step '{step_id}' failed: {error}")
        self.step_id = step_id
        self.error = error


class DuplicateStepResultError(StepflowError):
    """A result for the step id was already recorded in this run."""

    def __init__(self, step_id: str) -> None:
        super().__init__(f"Result for step '{step_id}' already recorded")
        self.step_id = step_id


class PredicateError(StepflowError):
    """A control-flow predicate raised. Fatal for the run."""

    def __init__(self, node: str, cause: BaseException) -> None:
        super().__init__(f"Predicate for {node} raised: {cause}")
        self.node = node
        self.__cause__ = cause


class LoopLimitExceededError(StepflowError):
    """An until/while node exceeded its iteration cap."""

    def __init__(self, step_id: str, max_iterations: int) -> None:
        super().__init__(
            f"Loop around '{step_id}' did not finish within {max_iterations} iterations"
        )
        self.step_id = step_id
        self.max_iterations = max_iterations


class NestedRunError(StepflowError):
    """A nested workflow run failed or did not produce the expected step."""

    def __init__(self, workflow_name: str, step_id: str, reason: str) -> None:
        super().__init__(
            f"Nested workflow '{workflow_name}' step '{step_id}' failed: {reason}"
        )
        self.workflow_name = workflow_name
        self.step_id = step_id
        self.reason = reason


class RunAlreadyStartedError(StepflowError):
    """A run instance was started more than once."""


class WorkflowRunError(StepflowError):
    """Terminal failure of a run, carrying the partial results."""

    def __init__(
        self,
        workflow_name: str,
        error: BaseException,
        results: Mapping[str, "StepResult"],
        failed_step: Optional[str] = None,
    ) -> None:
        where = f" at step '{failed_step}'" if failed_step else ""
        super().__init__(f"Workflow '{workflow_name}' failed{where}: {error}")
        self.workflow_name = workflow_name
        self.error = error
        self.results = dict(results)
        self.failed_step = failed_step
        self.__cause__ = error


class AgentNotFoundError(StepflowError, KeyError):
    """No agent registered under the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Agent '{name}' is not registered")
        self.name = name

    def __str__(self) -> str:
        return self.args[0]
