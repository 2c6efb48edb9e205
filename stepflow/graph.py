"""Fluent workflow composition and the committed, immutable workflow graph."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterator, List, Optional, Tuple, Type

from pydantic import BaseModel

from .constants import BOOKEND_STEP_IDS
from .contracts import describe_contract
from .exceptions import GraphDefinitionError, WorkflowCommittedError
from .memory.bookends import memory_load_step, memory_save_step
from .nodes import (
    ConditionalNode,
    GraphNode,
    ParallelNode,
    Predicate,
    StepNode,
    UntilNode,
    WhileNode,
)
from .run import RunResult, WorkflowRun
from .runtime import WorkflowRuntime, get_runtime
from .step import Step

logger = logging.getLogger(__name__)

Nodes = Tuple[GraphNode, ...]
CommitStage = Callable[[Nodes], Nodes]


def add_memory_bookends(nodes: Nodes) -> Nodes:
    """Surround ``nodes`` with the memory load and save steps."""
    return (StepNode(step=memory_load_step()), *nodes, StepNode(step=memory_save_step()))


# Transformations applied, in order, to every graph on commit.
COMMIT_STAGES: Tuple[CommitStage, ...] = (add_memory_bookends,)


class _ConditionalFrame:
    """An ``if_`` block still being composed."""

    def __init__(self, predicate: Predicate) -> None:
        self.predicate = predicate
        self.then_nodes: List[GraphNode] = []
        self.else_nodes: List[GraphNode] = []
        self.in_else = False

    @property
    def active(self) -> List[GraphNode]:
        return self.else_nodes if self.in_else else self.then_nodes


class WorkflowBuilder:
    """Accumulates graph nodes until ``commit()`` freezes them.

    Example:
        wf = (
            WorkflowBuilder("example", trigger_contract=DynamicInput)
            .step(check)
            .if_(lambda ctx: ctx.get_step_result("check")["is_long"])
            .step(long_step)
            .else_()
            .step(short_step)
            .then(report)
            .commit()
        )
    """

    def __init__(
        self,
        name: str,
        trigger_contract: Optional[Type[BaseModel]] = None,
        runtime: Optional[WorkflowRuntime] = None,
    ) -> None:
        if not name:
            raise GraphDefinitionError("workflow name must be non-empty")
        self.name = name
        self.trigger_contract = trigger_contract
        self.runtime = runtime
        self._nodes: List[GraphNode] = []
        self._conditional: Optional[_ConditionalFrame] = None
        self._step_ids: set[str] = set()
        self._committed = False

    # ------------------------------------------------------------------
    # Composition API
    def step(self, step: Step) -> "WorkflowBuilder":
        """Append ``step`` to the current sequence (or the open branch)."""
        self._ensure_open()
        self._register(step)
        self._target().append(StepNode(step=step))
        return self

    def then(self, step: Step) -> "WorkflowBuilder":
        """Append ``step`` after everything declared so far, closing any branch."""
        self._ensure_open()
        self._close_conditional()
        return self.step(step)

    def parallel(self, *steps: Step) -> "WorkflowBuilder":
        """Append a group of independent steps executed concurrently."""
        self._ensure_open()
        if len(steps) < 2:
            raise GraphDefinitionError("parallel() needs at least two steps")
        for step in steps:
            self._register(step)
        self._target().append(ParallelNode(members=tuple(steps)))
        return self

    def if_(self, predicate: Predicate) -> "WorkflowBuilder":
        """Open a conditional; following ``step`` calls form the true branch."""
        self._ensure_open()
        self._close_conditional()
        self._conditional = _ConditionalFrame(predicate)
        return self

    def else_(self) -> "WorkflowBuilder":
        """Switch the open conditional to its false branch."""
        self._ensure_open()
        frame = self._conditional
        if frame is None:
            raise GraphDefinitionError("else_() called without a matching if_()")
        if frame.in_else:
            raise GraphDefinitionError("else_() called twice for the same if_()")
        if not frame.then_nodes:
            raise GraphDefinitionError("if_() branch has no steps")
        frame.in_else = True
        return self

    def until(
        self,
        predicate: Predicate,
        max_iterations: Optional[int] = None,
        unbounded: bool = False,
    ) -> "WorkflowBuilder":
        """Repeat the last node until ``predicate`` is true."""
        return self._wrap_last(UntilNode, predicate, max_iterations, unbounded)

    def while_(
        self,
        predicate: Predicate,
        max_iterations: Optional[int] = None,
        unbounded: bool = False,
    ) -> "WorkflowBuilder":
        """Repeat the last node while ``predicate`` is true."""
        return self._wrap_last(WhileNode, predicate, max_iterations, unbounded)

    def commit(self) -> "Workflow":
        """Freeze the graph and return the executable ``Workflow``."""
        self._ensure_open()
        self._close_conditional()
        if not self._nodes:
            raise GraphDefinitionError(f"Workflow '{self.name}' has no steps")

        nodes: Nodes = tuple(self._nodes)
        for stage in COMMIT_STAGES:
            nodes = stage(nodes)
        self._committed = True

        logger.debug(f"Committed workflow {self.name} with steps {sorted(self._step_ids)}")
        return Workflow(
            name=self.name,
            trigger_contract=self.trigger_contract,
            nodes=nodes,
            runtime=self.runtime,
        )

    @property
    def committed(self) -> bool:
        return self._committed

    # ------------------------------------------------------------------
    # Internals
    def _ensure_open(self) -> None:
        if self._committed:
            raise WorkflowCommittedError(self.name)

    def _register(self, step: Step) -> None:
        if step.id in BOOKEND_STEP_IDS:
            raise GraphDefinitionError(f"Step id '{step.id}' is reserved")
        if step.id in self._step_ids:
            raise GraphDefinitionError(
                f"Duplicate step id '{step.id}' in workflow '{self.name}'"
            )
        self._step_ids.add(step.id)

    def _target(self) -> List[GraphNode]:
        if self._conditional is not None:
            return self._conditional.active
        return self._nodes

    def _close_conditional(self) -> None:
        frame = self._conditional
        if frame is None:
            return
        if not frame.then_nodes:
            raise GraphDefinitionError("if_() branch has no steps")
        if frame.in_else and not frame.else_nodes:
            raise GraphDefinitionError("else_() branch has no steps")
        self._conditional = None
        self._nodes.append(
            ConditionalNode(
                predicate=frame.predicate,
                then_nodes=tuple(frame.then_nodes),
                else_nodes=tuple(frame.else_nodes),
            )
        )

    def _wrap_last(
        self,
        node_type: type,
        predicate: Predicate,
        max_iterations: Optional[int],
        unbounded: bool,
    ) -> "WorkflowBuilder":
        self._ensure_open()
        target = self._target()
        if not target:
            raise GraphDefinitionError(
                f"{node_type.__name__} needs a preceding step to repeat"
            )
        last = target.pop()
        target.append(
            node_type(
                node=last,
                predicate=predicate,
                max_iterations=max_iterations,
                unbounded=unbounded,
            )
        )
        return self


class Workflow:
    """A committed, immutable execution plan.

    The same workflow may start any number of independent runs, each with
    its own ``RunContext``.
    """

    __slots__ = ("_name", "_trigger_contract", "_nodes", "_runtime")

    def __init__(
        self,
        name: str,
        trigger_contract: Optional[Type[BaseModel]],
        nodes: Nodes,
        runtime: Optional[WorkflowRuntime] = None,
    ) -> None:
        self._name = name
        self._trigger_contract = trigger_contract
        self._runtime = runtime
        self._nodes = nodes

    @property
    def name(self) -> str:
        return self._name

    @property
    def trigger_contract(self) -> Optional[Type[BaseModel]]:
        return self._trigger_contract

    @property
    def nodes(self) -> Nodes:
        return self._nodes

    @property
    def runtime(self) -> Optional[WorkflowRuntime]:
        return self._runtime

    def steps(self) -> Iterator[Step]:
        for node in self._nodes:
            yield from node.steps()

    def step_ids(self) -> List[str]:
        return [s.id for s in self.steps()]

    def create_run(self, runtime: Optional[WorkflowRuntime] = None) -> WorkflowRun:
        """Create a single-use run of this workflow."""
        return WorkflowRun(self, runtime or self._runtime or get_runtime())

    async def execute(
        self, trigger_data: Any, thread_id: Optional[str] = None
    ) -> RunResult:
        """Create a run and start it with ``trigger_data``."""
        return await self.create_run().start(trigger_data, thread_id=thread_id)

    def describe(self) -> dict[str, Any]:
        return {
            "name": self._name,
            "trigger_contract": describe_contract(self._trigger_contract),
            "nodes": [n.describe() for n in self._nodes],
        }

    def __setattr__(self, name: str, value: Any) -> None:
        if hasattr(self, "_nodes"):
            raise AttributeError(f"Workflow '{self._name}' is immutable")
        object.__setattr__(self, name, value)

    def __repr__(self) -> str:
        return f"Workflow(name={self._name!r}, steps={self.step_ids()})"
