"""Per-run state: trigger data and the ordered map of step results."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Literal, Mapping, Optional, Union

from pydantic import BaseModel

from .exceptions import DuplicateStepResultError, StepFailedError, StepNotExecutedError

if TYPE_CHECKING:
    from .step import Step

logger = logging.getLogger(__name__)

StepRef = Union[str, "Step"]


def step_id_of(step: StepRef) -> str:
    """Return the id for a ``Step`` or a raw step id."""
    return step if isinstance(step, str) else step.id


class StepResult(BaseModel):
    """Outcome of a single step execution."""

    status: Literal["success", "error"]
    output: Any = None
    error: Optional[str] = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.status == "success"


class RunContext:
    """Mutable state owned by one run.

    ``trigger_data`` is fixed for the lifetime of the run. Results are
    write-once per step id; only loop nodes replace an existing entry.
    """

    def __init__(
        self,
        run_id: str,
        workflow_name: str,
        trigger_data: Any,
        thread_id: str,
    ) -> None:
        self.run_id = run_id
        self.workflow_name = workflow_name
        self._trigger_data = trigger_data
        self.thread_id = thread_id
        self.memory: Dict[str, Any] = {}
        self._results: Dict[str, StepResult] = {}

    @property
    def trigger_data(self) -> Any:
        return self._trigger_data

    @property
    def results(self) -> Mapping[str, StepResult]:
        """Read-only view of the results recorded so far."""
        return MappingProxyType(self._results)

    # ------------------------------------------------------------------
    # Writes
    def record_success(self, step_id: str, output: Any, attempt: int = 1) -> StepResult:
        return self._record(
            step_id, StepResult(status="success", output=output, attempts=attempt)
        )

    def record_error(self, step_id: str, error: str, attempt: int = 1) -> StepResult:
        return self._record(
            step_id, StepResult(status="error", error=error, attempts=attempt)
        )

    def overwrite(self, step_id: str, result: StepResult) -> StepResult:
        """Replace the entry for ``step_id`` with a newer attempt."""
        self._results.pop(step_id, None)
        self._results[step_id] = result
        return result

    def _record(self, step_id: str, result: StepResult) -> StepResult:
        if step_id in self._results:
            raise DuplicateStepResultError(step_id)
        self._results[step_id] = result
        return result

    # ------------------------------------------------------------------
    # Reads
    def has_result(self, step: StepRef) -> bool:
        return step_id_of(step) in self._results

    def get_result(self, step: StepRef) -> Optional[StepResult]:
        """Return the recorded ``StepResult`` or ``None`` if the step has not run."""
        return self._results.get(step_id_of(step))

    def get_step_result(self, step: StepRef) -> Any:
        """Return the successful output of ``step``.

        Raises:
            StepNotExecutedError: The step has no recorded result.
            StepFailedError: The step recorded an error.
        """
        step_id = step_id_of(step)
        result = self._results.get(step_id)
        if result is None:
            raise StepNotExecutedError(step_id)
        if not result.ok:
            raise StepFailedError(step_id, result.error)
        return result.output

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "workflow_name": self.workflow_name,
            "thread_id": self.thread_id,
            "trigger_data": self._trigger_data,
            "results": {k: v.model_dump() for k, v in self._results.items()},
        }

    def __repr__(self) -> str:
        return (
            f"RunContext(run_id={self.run_id!r}, workflow={self.workflow_name!r}, "
            f"steps={list(self._results)})"
        )
