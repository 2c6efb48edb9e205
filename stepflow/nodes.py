"""Graph node types produced by ``WorkflowBuilder``."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Iterator, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, field_validator

from .context import RunContext
from .contracts import describe_contract
from .step import Step

Predicate = Callable[[RunContext], Union[bool, Awaitable[bool]]]


class GraphNode(BaseModel):
    """Base class for executable graph nodes."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    def steps(self) -> Iterator[Step]:
        """Yield every step reachable from this node."""
        raise NotImplementedError

    def describe(self) -> dict[str, Any]:
        raise NotImplementedError

    @property
    def label(self) -> str:
        return ",".join(s.id for s in self.steps())


class StepNode(GraphNode):
    step: Step

    def steps(self) -> Iterator[Step]:
        yield self.step

    def describe(self) -> dict[str, Any]:
        return {
            "type": "step",
            "id": self.step.id,
            "description": self.step.description,
            "input_contract": describe_contract(self.step.input_contract),
            "output_contract": describe_contract(self.step.output_contract),
        }


class ParallelNode(GraphNode):
    """Steps executed concurrently; the group completes when all members do."""

    members: Tuple[Step, ...]

    @field_validator("members")
    @classmethod
    def _ensure_group(cls, v: Tuple[Step, ...]) -> Tuple[Step, ...]:
        if len(v) < 2:
            raise ValueError("a parallel group needs at least two steps")
        return v

    def steps(self) -> Iterator[Step]:
        yield from self.members

    def describe(self) -> dict[str, Any]:
        return {
            "type": "parallel",
            "steps": [StepNode(step=s).describe() for s in self.members],
        }


class ConditionalNode(GraphNode):
    """Exactly one branch runs, chosen by ``predicate`` when reached."""

    predicate: Predicate
    then_nodes: Tuple[GraphNode, ...]
    else_nodes: Tuple[GraphNode, ...] = ()

    def steps(self) -> Iterator[Step]:
        for node in self.then_nodes + self.else_nodes:
            yield from node.steps()

    def describe(self) -> dict[str, Any]:
        return {
            "type": "if",
            "then": [n.describe() for n in self.then_nodes],
            "else": [n.describe() for n in self.else_nodes],
        }


class LoopNode(GraphNode):
    """Repeats ``node``; subclasses decide when to stop.

    ``max_iterations`` of ``None`` defers to the runtime default unless
    ``unbounded`` is set.
    """

    node: GraphNode
    predicate: Predicate
    max_iterations: Optional[int] = None
    unbounded: bool = False

    @field_validator("max_iterations")
    @classmethod
    def _ensure_positive(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("max_iterations must be at least 1")
        return v

    def steps(self) -> Iterator[Step]:
        yield from self.node.steps()

    def should_repeat(self, predicate_value: bool) -> bool:
        raise NotImplementedError

    def describe(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "max_iterations": None if self.unbounded else self.max_iterations,
            "node": self.node.describe(),
        }

    @property
    def kind(self) -> str:
        raise NotImplementedError


class UntilNode(LoopNode):
    """Re-execute until the predicate becomes true."""

    def should_repeat(self, predicate_value: bool) -> bool:
        return not predicate_value

    @property
    def kind(self) -> str:
        return "until"


class WhileNode(LoopNode):
    """Re-execute while the predicate stays true."""

    def should_repeat(self, predicate_value: bool) -> bool:
        return predicate_value

    @property
    def kind(self) -> str:
        return "while"
