"""Nested workflow invocation tests."""

import pytest

from stepflow import Step
from stepflow.exceptions import NestedRunError, StepExecutionError
from stepflow.factories import (
    build_workflow,
    create_advanced_nested_workflow,
    create_complex_workflow,
    create_safe_workflow,
    nested_step,
)
from stepflow.run import run_nested
from stepflow.schemas import DynamicInput


def _failing_inner(runtime):
    def _fail(ctx):
        raise ValueError("inner exploded")

    return build_workflow(
        "failing-inner",
        runtime,
        DynamicInput,
        lambda wf: wf.step(Step(id="dynamicStep", execute=_fail)),
    )


@pytest.mark.asyncio
async def test_nested_output_folds_inner_result(runtime):
    result = await create_advanced_nested_workflow(runtime).execute({"dynamic_input": "hello"})

    assert result.ok
    assert result.output_of("nestedStep") == {
        "processed_value": "Nested: Second processing: First processing: hello"
    }
    # inner steps belong to the inner run only
    assert "step1" not in result.results
    assert "step2" not in result.results


@pytest.mark.asyncio
async def test_safe_workflow_passes_inner_output_through(runtime):
    result = await create_safe_workflow(runtime).execute({"dynamic_input": "ok"})
    assert result.output_of("safeStep") == {"processed_value": "Processed: ok"}


@pytest.mark.asyncio
async def test_safe_workflow_falls_back_when_inner_fails(runtime):
    workflow = create_safe_workflow(runtime, inner=_failing_inner)
    result = await workflow.execute({"dynamic_input": "bad"})

    assert result.ok
    assert result.output_of("safeStep") == {"processed_value": "Fallback for bad"}


@pytest.mark.asyncio
async def test_unwrapped_nested_failure_fails_outer_step(runtime):
    step = nested_step(
        "outer",
        inner=_failing_inner,
        inner_step_id="dynamicStep",
        to_trigger=lambda ctx: {"dynamic_input": "x"},
    )
    workflow = build_workflow("outer-wf", runtime, None, lambda wf: wf.step(step))
    result = await workflow.execute({})

    assert not result.ok
    assert result.failed_step == "outer"
    assert isinstance(result.error, StepExecutionError)
    assert isinstance(result.error.__cause__, NestedRunError)


@pytest.mark.asyncio
async def test_run_nested_reports_missing_step(runtime):
    with pytest.raises(NestedRunError, match="did not run"):
        await run_nested(
            create_complex_workflow(runtime), {"dynamic_input": "x"}, "step3", runtime=runtime
        )


@pytest.mark.asyncio
async def test_run_nested_wraps_trigger_violation(runtime):
    with pytest.raises(NestedRunError):
        await run_nested(create_complex_workflow(runtime), {}, "step2", runtime=runtime)


@pytest.mark.asyncio
async def test_nested_run_uses_its_own_thread(runtime, memory_store):
    result = await create_advanced_nested_workflow(runtime).execute(
        {"dynamic_input": "x"}, thread_id="outer-thread"
    )
    assert result.thread_id == "outer-thread"
    threads = await memory_store.list_threads()
    assert "outer-thread" in threads
    assert len(threads) == 2
