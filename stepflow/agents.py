"""Agent collaborator used by step bodies to turn prompts into responses."""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol, Sequence, Type

from pydantic import BaseModel
from pydantic_ai import Agent
from pydantic_ai.models import Model

logger = logging.getLogger(__name__)


class AgentLike(Protocol):
    """Anything exposing the ``pydantic_ai.Agent.run`` coroutine."""

    async def run(self, user_prompt: str, **kwargs: Any) -> Any:
        ...


def build_agent(
    name: str,
    model: Model | str,
    system_prompt: str | Sequence[str] = (),
    output_type: Type[Any] = str,
) -> Agent:
    """Create a named ``pydantic_ai`` agent."""
    logger.debug(f"Building agent {name} with output_type={output_type}")
    return Agent(model, name=name, system_prompt=system_prompt, output_type=output_type)


async def generate(
    agent: AgentLike,
    prompt: str,
    *,
    output_type: Optional[Type[BaseModel]] = None,
) -> Any:
    """Run ``agent`` on ``prompt`` and return its output.

    Args:
        agent: The agent to call.
        prompt: Text prompt.
        output_type: Optional structured output expectation forwarded to the
            agent run.

    Returns:
        The agent's text or structured output. Agent failures propagate as
        ordinary step failures.
    """
    kwargs: dict[str, Any] = {}
    if output_type is not None:
        kwargs["output_type"] = output_type

    name = getattr(agent, "name", None) or type(agent).__name__
    logger.debug(f"Generating with agent {name}")
    result = await agent.run(prompt, **kwargs)
    return result.output if hasattr(result, "output") else result
