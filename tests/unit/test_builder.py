"""Workflow builder composition tests."""

import pytest

from stepflow import Step, WorkflowBuilder
from stepflow.exceptions import GraphDefinitionError, WorkflowCommittedError
from stepflow.nodes import ConditionalNode, ParallelNode, StepNode, UntilNode, WhileNode
from stepflow.schemas import DynamicInput, DynamicOutput


def _step(step_id):
    return Step(id=step_id, execute=lambda ctx: {})


def _user_nodes(workflow):
    return workflow.nodes[1:-1]


def test_sequence_and_then_preserve_order():
    workflow = WorkflowBuilder("seq").step(_step("a")).step(_step("b")).then(_step("c")).commit()
    nodes = _user_nodes(workflow)
    assert [n.step.id for n in nodes] == ["a", "b", "c"]
    assert all(isinstance(n, StepNode) for n in nodes)


def test_if_else_collects_branches_and_then_closes():
    workflow = (
        WorkflowBuilder("branch")
        .step(_step("check"))
        .if_(lambda run: True)
        .step(_step("t1"))
        .step(_step("t2"))
        .else_()
        .step(_step("e1"))
        .then(_step("after"))
        .commit()
    )
    check, conditional, after = _user_nodes(workflow)
    assert isinstance(conditional, ConditionalNode)
    assert [n.step.id for n in conditional.then_nodes] == ["t1", "t2"]
    assert [n.step.id for n in conditional.else_nodes] == ["e1"]
    assert after.step.id == "after"


def test_loops_wrap_previous_node():
    workflow = (
        WorkflowBuilder("loops")
        .step(_step("a"))
        .until(lambda run: True, max_iterations=3)
        .then(_step("b"))
        .while_(lambda run: False)
        .commit()
    )
    until, while_ = _user_nodes(workflow)
    assert isinstance(until, UntilNode)
    assert until.node.step.id == "a"
    assert until.max_iterations == 3
    assert isinstance(while_, WhileNode)
    assert while_.max_iterations is None


def test_parallel_group_node():
    workflow = WorkflowBuilder("p").parallel(_step("a"), _step("b")).then(_step("m")).commit()
    group, merge = _user_nodes(workflow)
    assert isinstance(group, ParallelNode)
    assert [s.id for s in group.members] == ["a", "b"]
    assert merge.step.id == "m"


def test_commit_freezes_builder_and_workflow():
    builder = WorkflowBuilder("frozen").step(_step("a"))
    workflow = builder.commit()

    assert builder.committed
    with pytest.raises(WorkflowCommittedError):
        builder.step(_step("b"))
    with pytest.raises(WorkflowCommittedError):
        builder.commit()
    with pytest.raises(AttributeError):
        workflow.name = "renamed"
    assert isinstance(workflow.nodes, tuple)


@pytest.mark.parametrize(
    "compose",
    [
        lambda b: b.step(_step("a")).step(_step("a")),
        lambda b: b.step(_step("__memory_load__")),
        lambda b: b.else_(),
        lambda b: b.if_(lambda run: True).else_(),
        lambda b: b.if_(lambda run: True).step(_step("a")).else_().else_(),
        lambda b: b.if_(lambda run: True).step(_step("a")).else_().then(_step("b")),
        lambda b: b.if_(lambda run: True).step(_step("a")).else_().commit(),
        lambda b: b.until(lambda run: True),
        lambda b: b.if_(lambda run: True).then(_step("a")),
    ],
)
def test_invalid_compositions_rejected(compose):
    with pytest.raises(GraphDefinitionError):
        compose(WorkflowBuilder("invalid"))


def test_empty_workflow_cannot_commit():
    with pytest.raises(GraphDefinitionError):
        WorkflowBuilder("empty").commit()


def test_invalid_loop_cap_rejected():
    with pytest.raises(ValueError):
        WorkflowBuilder("cap").step(_step("a")).until(lambda run: True, max_iterations=0)


def test_step_id_must_be_non_empty():
    with pytest.raises(ValueError):
        Step(id=" ", execute=lambda ctx: {})


def test_describe_documents_contracts():
    step = Step(id="s", input_contract=DynamicInput, output_contract=DynamicOutput, execute=lambda ctx: {})
    description = WorkflowBuilder("d", trigger_contract=DynamicInput).step(step).commit().describe()

    assert description["name"] == "d"
    assert "dynamic_input" in description["trigger_contract"]["properties"]
    user_step = description["nodes"][1]
    assert user_step["id"] == "s"
    assert "processed_value" in user_step["output_contract"]["properties"]
