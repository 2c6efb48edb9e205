"""Parallel group failure policy tests."""

import asyncio

import pytest

from stepflow import Step, WorkflowBuilder
from stepflow.constants import PARALLEL_POLICIES
from stepflow.exceptions import GraphDefinitionError, StepExecutionError, WorkflowRunError
from stepflow.memory import InMemoryMemoryStore
from stepflow.runtime import WorkflowRuntime


async def _fail(ctx):
    raise RuntimeError("sibling failed")


def _workflow(runtime, slow_delay):
    completed = []

    async def _slow(ctx):
        await asyncio.sleep(slow_delay)
        completed.append("slow")
        return {"value": "slow"}

    workflow = (
        WorkflowBuilder("parallel-failure", runtime=runtime)
        .parallel(Step(id="fail", execute=_fail), Step(id="slow", execute=_slow))
        .then(Step(id="merge", execute=lambda ctx: {}))
        .commit()
    )
    return workflow, completed


@pytest.mark.asyncio
async def test_fail_fast_cancels_siblings():
    runtime = WorkflowRuntime(memory=InMemoryMemoryStore(), parallel_failure="fail_fast")
    workflow, completed = _workflow(runtime, slow_delay=5)

    result = await asyncio.wait_for(workflow.execute({}), timeout=2)

    assert not result.ok
    assert result.failed_step == "fail"
    assert isinstance(result.error, StepExecutionError)
    assert result.results["fail"].status == "error"
    assert "slow" not in result.results
    assert "merge" not in result.results
    assert completed == []


@pytest.mark.asyncio
async def test_await_all_waits_then_reports_failure():
    runtime = WorkflowRuntime(memory=InMemoryMemoryStore(), parallel_failure="await_all")
    workflow, completed = _workflow(runtime, slow_delay=0.01)

    result = await workflow.execute({})

    assert not result.ok
    assert result.failed_step == "fail"
    assert result.results["fail"].status == "error"
    assert result.results["slow"].output == {"value": "slow"}
    assert "merge" not in result.results
    assert completed == ["slow"]


@pytest.mark.asyncio
async def test_await_all_reports_one_failure_consistently():
    runtime = WorkflowRuntime(memory=InMemoryMemoryStore(), parallel_failure="await_all")

    async def _slow_fail(ctx):
        await asyncio.sleep(0.05)
        raise RuntimeError("slow failure")

    workflow = (
        WorkflowBuilder("parallel-double-failure", runtime=runtime)
        .parallel(Step(id="first", execute=_slow_fail), Step(id="second", execute=_fail))
        .commit()
    )

    result = await workflow.execute({})

    assert not result.ok
    assert result.results["first"].status == "error"
    assert result.results["second"].status == "error"
    assert result.failed_step == "first"
    assert isinstance(result.error, StepExecutionError)
    assert result.error.step_id == "first"
    with pytest.raises(WorkflowRunError) as exc_info:
        result.raise_for_status()
    assert exc_info.value.failed_step == "first"


@pytest.mark.parametrize("policy", PARALLEL_POLICIES)
def test_known_policies_accepted(policy):
    assert WorkflowRuntime(parallel_failure=policy).parallel_failure == policy


def test_unknown_policy_rejected():
    with pytest.raises(ValueError):
        WorkflowRuntime(parallel_failure="best_effort")


def test_parallel_requires_two_steps():
    with pytest.raises(GraphDefinitionError):
        WorkflowBuilder("p").parallel(Step(id="one", execute=lambda ctx: {}))
