"""Agent pipeline tests using pydantic-ai's offline test model."""

import pytest
from pydantic_ai.models.test import TestModel as OfflineModel

from stepflow import create_agent_pipeline_workflow
from stepflow.agents import build_agent, generate
from stepflow.exceptions import AgentNotFoundError, StepExecutionError
from stepflow.pipelines import (
    ANALYST_AGENT,
    MASTER_AGENT,
    RESEARCH_AGENT,
    WRITER_AGENT,
)


class EchoAgent:
    """Agent stand-in that records prompts and echoes them back."""

    def __init__(self, name):
        self.name = name
        self.prompts = []

    async def run(self, user_prompt, **kwargs):
        self.prompts.append(user_prompt)
        return type("Result", (), {"output": f"{self.name}<{user_prompt}>"})()


@pytest.mark.asyncio
async def test_generate_with_pydantic_ai_agent():
    agent = build_agent("research", OfflineModel(custom_output_text="findings"))
    assert await generate(agent, "Research in depth: x") == "findings"


@pytest.mark.asyncio
async def test_pipeline_with_pydantic_ai_agents(runtime):
    for name in (RESEARCH_AGENT, ANALYST_AGENT, WRITER_AGENT, MASTER_AGENT):
        runtime.register_agent(name, build_agent(name, OfflineModel(custom_output_text=f"{name} ok")))

    result = await create_agent_pipeline_workflow(runtime).execute({"topics": ["a", "b"]})

    assert result.ok, result.error
    assert result.output_of("preprocess-phase") == {
        "processed_topics": ["Processed: a", "Processed: b"]
    }
    assert result.output_of("research-phase") == {"findings": ["research ok", "research ok"]}
    assert result.output_of("testing-phase") == {"results": ["master ok", "master ok"]}


@pytest.mark.asyncio
async def test_pipeline_threads_outputs_between_phases(runtime):
    agents = {name: EchoAgent(name) for name in (RESEARCH_AGENT, ANALYST_AGENT, WRITER_AGENT, MASTER_AGENT)}
    for name, agent in agents.items():
        runtime.register_agent(name, agent)

    result = await create_agent_pipeline_workflow(runtime).execute({"topics": ["t"]})

    assert agents[RESEARCH_AGENT].prompts == ["Research in depth: Processed: t"]
    assert agents[ANALYST_AGENT].prompts == ["Analyze: research<Research in depth: Processed: t>"]
    assert result.output_of("documentation-phase") == {
        "documents": ["writer<Create report: analyst<Analyze: research<Research in depth: Processed: t>>>"]
    }


@pytest.mark.asyncio
async def test_pipeline_missing_agent_fails_phase(runtime):
    result = await create_agent_pipeline_workflow(runtime).execute({"topics": ["t"]})

    assert not result.ok
    assert result.failed_step == "research-phase"
    assert isinstance(result.error, StepExecutionError)
    assert isinstance(result.error.__cause__, AgentNotFoundError)
    assert result.results["preprocess-phase"].ok
