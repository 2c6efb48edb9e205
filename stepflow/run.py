"""Execution of committed workflow graphs."""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from typing import TYPE_CHECKING, Any, Dict, Literal, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from .constants import BOOKEND_STEP_IDS, PARALLEL_AWAIT_ALL
from .context import RunContext, StepResult
from .contracts import validate_contract
from .exceptions import (
    ContractViolationError,
    LoopLimitExceededError,
    NestedRunError,
    PredicateError,
    RunAlreadyStartedError,
    StepExecutionError,
    StepflowError,
    WorkflowRunError,
)
from .nodes import ConditionalNode, GraphNode, LoopNode, ParallelNode, Predicate, StepNode
from .step import Step, StepContext
from .telemetry import observe

if TYPE_CHECKING:
    from .graph import Workflow
    from .runtime import WorkflowRuntime

logger = logging.getLogger(__name__)


class RunResult(BaseModel):
    """Terminal outcome of a run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    run_id: str
    workflow_name: str
    status: Literal["success", "failed"]
    thread_id: str
    trigger_data: Any = None
    results: Dict[str, StepResult]
    error: Optional[BaseException] = None
    failed_step: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def output_of(self, step_id: str) -> Any:
        """Return the output of a successful step or ``None``."""
        result = self.results.get(step_id)
        return result.output if result is not None and result.ok else None

    def user_results(self) -> Dict[str, StepResult]:
        """Results without the memory bookend entries."""
        return {k: v for k, v in self.results.items() if k not in BOOKEND_STEP_IDS}

    def raise_for_status(self) -> "RunResult":
        """Raise ``WorkflowRunError`` if the run failed, else return ``self``."""
        if not self.ok:
            raise WorkflowRunError(
                self.workflow_name, self.error, self.results, self.failed_step
            )
        return self


class WorkflowRun:
    """A single execution of a committed workflow.

    Runs are not reusable: ``start`` may be called once.
    """

    def __init__(self, workflow: "Workflow", runtime: "WorkflowRuntime") -> None:
        self.workflow = workflow
        self.runtime = runtime
        self.run_id = str(uuid.uuid4())
        self.context: Optional[RunContext] = None
        self._started = False
        self._loop_depth = 0
        self._failed_step: Optional[str] = None

    async def start(
        self, trigger_data: Any = None, thread_id: Optional[str] = None
    ) -> RunResult:
        """Execute the workflow against ``trigger_data``.

        Raises:
            ContractViolationError: If ``trigger_data`` does not match the
                workflow's trigger contract. No step runs in that case.
            RunAlreadyStartedError: If this run was already started.
        """
        if self._started:
            raise RunAlreadyStartedError(f"Run {self.run_id} was already started")
        self._started = True

        thread_id = thread_id or self._thread_id_from(trigger_data) or str(uuid.uuid4())
        validated = validate_contract(
            self.workflow.trigger_contract,
            trigger_data,
            subject=self.workflow.name,
            kind="trigger",
        )

        ctx = RunContext(self.run_id, self.workflow.name, validated, thread_id)
        self.context = ctx
        logger.info(
            f"Starting workflow {self.workflow.name} run_id={self.run_id} thread_id={thread_id}"
        )

        error: Optional[BaseException] = None
        try:
            await self._execute_nodes(self.workflow.nodes, validated)
        except Exception as e:
            error = e

        if error is None:
            logger.info(f"Workflow {self.workflow.name} completed run_id={self.run_id}")
        else:
            logger.warning(
                f"Workflow {self.workflow.name} failed run_id={self.run_id} "
                f"step={self._failed_step}: {error}"
            )

        return RunResult(
            run_id=self.run_id,
            workflow_name=self.workflow.name,
            status="success" if error is None else "failed",
            thread_id=thread_id,
            trigger_data=validated,
            results=dict(ctx.results),
            error=error,
            failed_step=self._failed_step,
        )

    @staticmethod
    def _thread_id_from(trigger_data: Any) -> Optional[str]:
        if isinstance(trigger_data, Mapping):
            value = trigger_data.get("thread_id")
            return str(value) if value else None
        return None

    # ------------------------------------------------------------------
    # Node execution
    async def _execute_nodes(
        self, nodes: Sequence[GraphNode], input_data: Any, attempt: int = 1
    ) -> Any:
        """Execute ``nodes`` in order and return the last forwarded output."""
        for node in nodes:
            input_data = await self._execute_node(node, input_data, attempt)
        return input_data

    async def _execute_node(self, node: GraphNode, input_data: Any, attempt: int) -> Any:
        if isinstance(node, StepNode):
            output = await self._execute_step(node.step, input_data, attempt)
            return output if node.step.forwards_output else input_data
        if isinstance(node, ParallelNode):
            return await self._execute_parallel(node, input_data, attempt)
        if isinstance(node, ConditionalNode):
            chosen = await self._evaluate(node.predicate, f"if({node.label})")
            branch = node.then_nodes if chosen else node.else_nodes
            logger.debug(f"Conditional {node.label} chose {'then' if chosen else 'else'}")
            return await self._execute_nodes(branch, input_data, attempt)
        if isinstance(node, LoopNode):
            return await self._execute_loop(node, input_data)
        raise TypeError(f"Unsupported graph node: {type(node).__name__}")

    async def _execute_step(self, step: Step, input_data: Any, attempt: int) -> Any:
        ctx = self.context
        logger.debug(f"Executing step {step.id} attempt={attempt} run_id={self.run_id}")
        try:
            validated_input = validate_contract(
                step.input_contract, input_data, subject=step.id, kind="input"
            )
            step_ctx = StepContext(ctx, step.id, validated_input, self.runtime, attempt)
            raw_output = await observe(
                self.runtime.telemetry,
                f"{self.workflow.name}.{step.id}",
                lambda: step.invoke(step_ctx),
                {"run_id": self.run_id, "attempt": attempt},
            )
            output = validate_contract(
                step.output_contract, raw_output, subject=step.id, kind="output"
            )
        except Exception as e:
            self._record(step.id, StepResult(status="error", error=str(e), attempts=attempt))
            if self._failed_step is None:
                self._failed_step = step.id
            logger.error(f"Step {step.id} failed run_id={self.run_id}: {e}")
            if isinstance(e, StepflowError):
                raise
            raise StepExecutionError(step.id, e) from e

        self._record(step.id, StepResult(status="success", output=output, attempts=attempt))
        logger.debug(f"Step {step.id} succeeded run_id={self.run_id}")
        return output

    def _record(self, step_id: str, result: StepResult) -> None:
        if self._loop_depth > 0:
            self.context.overwrite(step_id, result)
        elif result.ok:
            self.context.record_success(step_id, result.output, result.attempts)
        else:
            self.context.record_error(step_id, result.error, result.attempts)

    async def _execute_parallel(
        self, node: ParallelNode, input_data: Any, attempt: int
    ) -> Dict[str, Any]:
        tasks = [
            asyncio.create_task(
                self._execute_step(step, input_data, attempt),
                name=f"{self.workflow.name}.{step.id}",
            )
            for step in node.members
        ]
        try:
            if self.runtime.parallel_failure == PARALLEL_AWAIT_ALL:
                await asyncio.gather(*tasks, return_exceptions=True)
            else:
                _, pending = await asyncio.wait(
                    tasks, return_when=asyncio.FIRST_EXCEPTION
                )
                for task in pending:
                    task.cancel()
                if pending:
                    await asyncio.gather(*pending, return_exceptions=True)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        # The first failure in declaration order is the one reported.
        for step, task in zip(node.members, tasks):
            if not task.cancelled() and task.exception() is not None:
                self._failed_step = step.id
                raise task.exception()
        return {
            step.id: task.result() for step, task in zip(node.members, tasks)
        }

    async def _execute_loop(self, node: LoopNode, input_data: Any) -> Any:
        cap = None if node.unbounded else (node.max_iterations or self.runtime.max_iterations)
        iteration = 0
        self._loop_depth += 1
        try:
            while True:
                iteration += 1
                output = await self._execute_node(node.node, input_data, iteration)
                value = await self._evaluate(node.predicate, f"{node.kind}({node.label})")
                if not node.should_repeat(value):
                    logger.debug(
                        f"Loop {node.kind}({node.label}) finished after {iteration} iterations"
                    )
                    return output
                if cap is not None and iteration >= cap:
                    raise LoopLimitExceededError(node.label, cap)
        finally:
            self._loop_depth -= 1

    async def _evaluate(self, predicate: Predicate, where: str) -> bool:
        try:
            value = predicate(self.context)
            if inspect.isawaitable(value):
                value = await value
        except Exception as e:
            raise PredicateError(where, e) from e
        return bool(value)


async def run_nested(
    workflow: "Workflow",
    trigger_data: Any,
    step_id: str,
    *,
    runtime: Optional["WorkflowRuntime"] = None,
    thread_id: Optional[str] = None,
) -> Any:
    """Run an independent workflow and return the output of ``step_id``.

    The nested run gets its own context; only ``trigger_data`` flows in and
    only the selected step's output flows back.

    Raises:
        NestedRunError: If the nested run fails, rejects its trigger, or
            ``step_id`` did not succeed.
    """
    try:
        result = await workflow.create_run(runtime).start(trigger_data, thread_id=thread_id)
    except ContractViolationError as e:
        raise NestedRunError(workflow.name, step_id, str(e)) from e

    if not result.ok:
        raise NestedRunError(workflow.name, step_id, str(result.error)) from result.error

    step_result = result.results.get(step_id)
    if step_result is None:
        raise NestedRunError(workflow.name, step_id, "step did not run")
    if not step_result.ok:
        raise NestedRunError(workflow.name, step_id, step_result.error or "step failed")
    return step_result.output
