"""Pre-built workflow shapes.

Every factory funnels through ``build_workflow`` so each returned graph is
committed the same way and carries the memory bookend steps.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Callable, Dict, Literal, Optional, Sequence, Type

from pydantic import BaseModel, Field

from .exceptions import NestedRunError
from .graph import Workflow, WorkflowBuilder
from .run import RunResult, run_nested
from .runtime import WorkflowRuntime, get_runtime
from .schemas import (
    DynamicInput,
    DynamicOutput,
    DynamicWorkflowStepOutput,
    FinalResult,
    IntermediateResult,
    IsLong,
    MainTrigger,
    Message,
    RetryFlag,
)
from .step import Step, StepContext
from .telemetry import observe

logger = logging.getLogger(__name__)

Wiring = Callable[[WorkflowBuilder], WorkflowBuilder]
WorkflowFactory = Callable[[WorkflowRuntime], Workflow]
Plugin = Callable[[WorkflowBuilder], WorkflowBuilder]


def build_workflow(
    name: str,
    runtime: Optional[WorkflowRuntime],
    trigger_contract: Optional[Type[BaseModel]],
    wiring: Wiring,
) -> Workflow:
    """Create a builder, let ``wiring`` compose it, and commit the result.

    Args:
        name: Workflow name.
        runtime: Runtime the workflow's runs use by default.
        trigger_contract: Contract for trigger data.
        wiring: Function that adds steps to the builder and returns it.
    """
    builder = WorkflowBuilder(name, trigger_contract=trigger_contract, runtime=runtime)
    wired = wiring(builder)
    if wired is None:
        raise TypeError(f"Wiring for workflow '{name}' must return the builder")
    return wired.commit()


# ----------------------------------------------------------------------
# Nested invocation helpers
def nested_step(
    step_id: str,
    inner: WorkflowFactory,
    inner_step_id: str,
    to_trigger: Callable[[StepContext], Any],
    fold: Callable[[Any], Any] = lambda output: output,
    output_contract: Optional[Type[BaseModel]] = None,
) -> Step:
    """Step that runs an independent workflow and folds one of its results.

    The inner workflow is built from ``ctx.runtime`` on every invocation and
    receives only ``to_trigger(ctx)``. Inner failures raise ``NestedRunError``.
    """

    async def _execute(ctx: StepContext) -> Any:
        workflow = inner(ctx.runtime)
        output = await run_nested(
            workflow, to_trigger(ctx), inner_step_id, runtime=ctx.runtime
        )
        return fold(output)

    return Step(id=step_id, execute=_execute, output_contract=output_contract)


def safe_nested_step(
    step_id: str,
    inner: WorkflowFactory,
    inner_step_id: str,
    to_trigger: Callable[[StepContext], Any],
    fallback: Callable[[StepContext], Any],
    fold: Callable[[Any], Any] = lambda output: output,
    output_contract: Optional[Type[BaseModel]] = None,
) -> Step:
    """Like ``nested_step`` but returns ``fallback(ctx)`` if the inner run fails."""

    async def _execute(ctx: StepContext) -> Any:
        try:
            workflow = inner(ctx.runtime)
            output = await run_nested(
                workflow, to_trigger(ctx), inner_step_id, runtime=ctx.runtime
            )
            return fold(output)
        except NestedRunError as e:
            logger.warning(f"Nested workflow failed in step {step_id}, using fallback: {e}")
            return fallback(ctx)

    return Step(id=step_id, execute=_execute, output_contract=output_contract)


def _dynamic_trigger(ctx: StepContext) -> dict[str, Any]:
    return {"dynamic_input": ctx.trigger_data["dynamic_input"]}


# ----------------------------------------------------------------------
# Factories
def create_simple_workflow(runtime: Optional[WorkflowRuntime] = None) -> Workflow:
    """Single step workflow."""
    simple_step = Step(
        id="simpleStep",
        execute=lambda ctx: {
            "result": f"Simple processing: {ctx.trigger_data['dynamic_input']}"
        },
    )
    return build_workflow(
        "dynamic-simple-workflow", runtime, DynamicInput, lambda wf: wf.step(simple_step)
    )


def create_complex_workflow(runtime: Optional[WorkflowRuntime] = None) -> Workflow:
    """Two chained steps; the second reads the first's result."""
    step1 = Step(
        id="step1",
        output_contract=IntermediateResult,
        execute=lambda ctx: {
            "intermediate_result": f"First processing: {ctx.trigger_data['dynamic_input']}"
        },
    )

    def _second(ctx: StepContext) -> dict[str, Any]:
        intermediate = ctx.get_step_result(step1)["intermediate_result"]
        return {"final_result": f"Second processing: {intermediate}"}

    step2 = Step(
        id="step2",
        input_contract=IntermediateResult,
        output_contract=FinalResult,
        execute=_second,
    )
    return build_workflow(
        "dynamic-complex-workflow",
        runtime,
        DynamicInput,
        lambda wf: wf.step(step1).then(step2),
    )


def create_dynamic_workflow(runtime: Optional[WorkflowRuntime] = None) -> Workflow:
    """Single observed step producing ``processed_value``."""

    async def _process(ctx: StepContext) -> dict[str, Any]:
        async def _body() -> dict[str, Any]:
            return {"processed_value": f"Processed: {ctx.trigger_data['dynamic_input']}"}

        return await observe(ctx.runtime.telemetry, "dynamicStep.execute", _body)

    step = Step(id="dynamicStep", output_contract=DynamicOutput, execute=_process)
    return build_workflow("dynamic-workflow", runtime, DynamicInput, lambda wf: wf.step(step))


def create_advanced_nested_workflow(
    runtime: Optional[WorkflowRuntime] = None,
) -> Workflow:
    """Runs the complex workflow inside a step and wraps its final result."""
    step = nested_step(
        "nestedStep",
        inner=create_complex_workflow,
        inner_step_id="step2",
        to_trigger=_dynamic_trigger,
        fold=lambda output: {"processed_value": f"Nested: {output['final_result']}"},
        output_contract=DynamicOutput,
    )
    return build_workflow(
        "advanced-nested-workflow", runtime, DynamicInput, lambda wf: wf.step(step)
    )


class BranchConfig(BaseModel):
    """Selects which workflow ``create_branching_workflow`` returns."""

    type: Literal["simple", "complex"]
    options: Dict[str, Any] = Field(default_factory=dict)


def create_branching_workflow(
    runtime: Optional[WorkflowRuntime], config: BranchConfig
) -> Workflow:
    if config.type == "simple":
        return create_simple_workflow(runtime)
    return create_complex_workflow(runtime)


def create_parallel_workflow(runtime: Optional[WorkflowRuntime] = None) -> Workflow:
    """Two concurrent steps followed by a merge step."""
    step_a = Step(
        id="parallelA",
        output_contract=DynamicOutput,
        execute=lambda ctx: {
            "processed_value": f"Parallel A: {ctx.trigger_data['dynamic_input']}"
        },
    )
    step_b = Step(
        id="parallelB",
        output_contract=DynamicOutput,
        execute=lambda ctx: {
            "processed_value": f"Parallel B: {ctx.trigger_data['dynamic_input']}"
        },
    )

    def _merge(ctx: StepContext) -> dict[str, Any]:
        a = ctx.get_step_result(step_a)["processed_value"]
        b = ctx.get_step_result(step_b)["processed_value"]
        return {"processed_value": f"{a}; {b}"}

    merge = Step(id="mergeResults", output_contract=DynamicOutput, execute=_merge)
    return build_workflow(
        "parallel-workflow",
        runtime,
        DynamicInput,
        lambda wf: wf.parallel(step_a, step_b).then(merge),
    )


def create_conditional_workflow(runtime: Optional[WorkflowRuntime] = None) -> Workflow:
    """Branches on whether ``input_data`` is longer than five characters."""
    check = Step(
        id="checkLength",
        output_contract=IsLong,
        execute=lambda ctx: {"is_long": len(ctx.trigger_data["input_data"]) > 5},
    )
    long_step = Step(
        id="longMessage",
        output_contract=Message,
        execute=lambda ctx: {"message": "Input is long"},
    )
    short_step = Step(
        id="shortMessage",
        output_contract=Message,
        execute=lambda ctx: {"message": "Input is short"},
    )
    return build_workflow(
        "conditional-workflow",
        runtime,
        MainTrigger,
        lambda wf: wf.step(check)
        .if_(lambda run: run.get_step_result("checkLength")["is_long"])
        .step(long_step)
        .else_()
        .step(short_step),
    )


def create_retry_workflow(
    runtime: Optional[WorkflowRuntime] = None,
    rng: Optional[random.Random] = None,
    threshold: float = 0.7,
    max_iterations: Optional[int] = None,
) -> Workflow:
    """Repeats ``attempt`` until it reports success."""
    rng = rng or random.Random()
    attempt = Step(
        id="attempt",
        output_contract=RetryFlag,
        execute=lambda ctx: {"success": rng.random() > threshold},
    )
    return build_workflow(
        "retry-workflow",
        runtime,
        DynamicInput,
        lambda wf: wf.step(attempt).until(
            lambda run: run.get_step_result("attempt")["success"],
            max_iterations=max_iterations,
        ),
    )


def create_loop_workflow(
    runtime: Optional[WorkflowRuntime] = None, max_iterations: Optional[int] = None
) -> Workflow:
    """Repeats ``loopStep`` while the trigger's ``success`` flag is false.

    The predicate only reads trigger data, so a false flag loops until the
    iteration cap is reached.
    """
    loop_step = Step(
        id="loopStep",
        output_contract=Message,
        execute=lambda ctx: {"message": f"Loop: {ctx.trigger_data['success']}"},
    )
    return build_workflow(
        "loop-workflow",
        runtime,
        RetryFlag,
        lambda wf: wf.step(loop_step).while_(
            lambda run: not run.trigger_data["success"], max_iterations=max_iterations
        ),
    )


def create_suspend_resume_workflow(
    runtime: Optional[WorkflowRuntime] = None,
) -> Workflow:
    """Placeholder suspend/resume shape. No execution state is checkpointed."""

    def _message(step_id: str, template: str) -> Step:
        return Step(
            id=step_id,
            output_contract=DynamicOutput,
            execute=lambda ctx: {
                "processed_value": template.format(ctx.trigger_data["dynamic_input"])
            },
        )

    before = _message("beforeSuspend", "Before suspend: {}")
    suspend = _message("suspendPoint", "Suspended at {}")
    resume = _message("resumePoint", "Resumed: {}")
    return build_workflow(
        "suspend-resume-workflow",
        runtime,
        DynamicInput,
        lambda wf: wf.step(before).step(suspend).then(resume),
    )


def create_safe_workflow(
    runtime: Optional[WorkflowRuntime] = None,
    inner: WorkflowFactory = create_dynamic_workflow,
    inner_step_id: str = "dynamicStep",
) -> Workflow:
    """Runs ``inner`` nested and falls back to a default output on failure."""
    step = safe_nested_step(
        "safeStep",
        inner=inner,
        inner_step_id=inner_step_id,
        to_trigger=_dynamic_trigger,
        fallback=lambda ctx: {
            "processed_value": f"Fallback for {ctx.trigger_data['dynamic_input']}"
        },
        output_contract=DynamicOutput,
    )
    return build_workflow("safe-workflow", runtime, DynamicInput, lambda wf: wf.step(step))


def create_pluginable_workflow(
    runtime: Optional[WorkflowRuntime], plugins: Sequence[Plugin]
) -> Workflow:
    """Applies ``plugins`` to the builder in order before committing."""

    def _wire(wf: WorkflowBuilder) -> WorkflowBuilder:
        for plugin in plugins:
            wf = plugin(wf)
        return wf

    return build_workflow("pluginable-workflow", runtime, DynamicInput, _wire)


def create_audit_workflow(
    runtime: Optional[WorkflowRuntime] = None, main_step: Optional[Step] = None
) -> Workflow:
    """Surrounds the main step with audit steps that log start and finish."""

    def _audit(step_id: str, template: str) -> Step:
        def _execute(ctx: StepContext) -> dict[str, Any]:
            message = template.format(ctx.trigger_data["dynamic_input"])
            logger.info(f"[audit] {message} run_id={ctx.run.run_id}")
            return {"message": message}

        return Step(id=step_id, output_contract=Message, execute=_execute)

    process = main_step or Step(
        id="auditProcess",
        output_contract=DynamicOutput,
        execute=lambda ctx: {
            "processed_value": f"Processed: {ctx.trigger_data['dynamic_input']}"
        },
    )
    before = _audit("auditBefore", "Starting: {}")
    after = _audit("auditAfter", "Finished: {}")
    return build_workflow(
        "audit-workflow",
        runtime,
        DynamicInput,
        lambda wf: wf.step(before).step(process).step(after),
    )


def create_main_workflow(runtime: Optional[WorkflowRuntime] = None) -> Workflow:
    """Entry workflow that runs the dynamic workflow on ``input_data``."""
    step = nested_step(
        "createDynamicWorkflow",
        inner=create_dynamic_workflow,
        inner_step_id="dynamicStep",
        to_trigger=lambda ctx: {"dynamic_input": ctx.trigger_data["input_data"]},
        fold=lambda output: {"dynamic_workflow_result": output},
        output_contract=DynamicWorkflowStepOutput,
    )
    return build_workflow("main-workflow", runtime, MainTrigger, lambda wf: wf.step(step))


async def run_main_workflow(
    input_data: str, runtime: Optional[WorkflowRuntime] = None
) -> RunResult:
    workflow = create_main_workflow(runtime or get_runtime())
    return await workflow.create_run().start({"input_data": input_data})


FACTORIES: Dict[str, WorkflowFactory] = {
    "dynamic-simple-workflow": create_simple_workflow,
    "dynamic-complex-workflow": create_complex_workflow,
    "dynamic-workflow": create_dynamic_workflow,
    "advanced-nested-workflow": create_advanced_nested_workflow,
    "parallel-workflow": create_parallel_workflow,
    "conditional-workflow": create_conditional_workflow,
    "retry-workflow": create_retry_workflow,
    "loop-workflow": create_loop_workflow,
    "suspend-resume-workflow": create_suspend_resume_workflow,
    "safe-workflow": create_safe_workflow,
    "audit-workflow": create_audit_workflow,
    "main-workflow": create_main_workflow,
}
