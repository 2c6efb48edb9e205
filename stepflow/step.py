"""Steps: the atomic units of work in a workflow graph."""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Type

from pydantic import BaseModel, ConfigDict, field_validator

from .context import RunContext, StepRef, StepResult

if TYPE_CHECKING:
    from .runtime import WorkflowRuntime


class StepContext:
    """View of the run handed to a step body for one invocation."""

    def __init__(
        self,
        run: RunContext,
        step_id: str,
        input_data: Any,
        runtime: "WorkflowRuntime",
        attempt: int = 1,
    ) -> None:
        self.run = run
        self.step_id = step_id
        self.input_data = input_data
        self.runtime = runtime
        self.attempt = attempt

    @property
    def trigger_data(self) -> Any:
        return self.run.trigger_data

    @property
    def thread_id(self) -> str:
        return self.run.thread_id

    @property
    def memory(self) -> dict[str, Any]:
        return self.run.memory

    @property
    def results(self) -> Mapping[str, StepResult]:
        return self.run.results

    def has_result(self, step: StepRef) -> bool:
        return self.run.has_result(step)

    def get_step_result(self, step: StepRef) -> Any:
        return self.run.get_step_result(step)


StepBody = Callable[[StepContext], Any]


class Step(BaseModel):
    """An identified unit of work with optional input and output contracts."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str
    execute: StepBody
    input_contract: Optional[Type[BaseModel]] = None
    output_contract: Optional[Type[BaseModel]] = None
    description: Optional[str] = None
    forwards_output: bool = True

    @field_validator("id")
    @classmethod
    def _ensure_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("step id must be a non-empty string")
        return v

    async def invoke(self, ctx: StepContext) -> Any:
        """Run the body, awaiting it when it is a coroutine function."""
        result = self.execute(ctx)
        if inspect.isawaitable(result):
            result = await result
        return result

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f"Step(id={self.id!r})"
