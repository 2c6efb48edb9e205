"""Multi-phase agent pipeline: preprocess, research, analyse, document, review."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Type

from pydantic import BaseModel

from .agents import generate
from .factories import build_workflow, create_dynamic_workflow
from .graph import Workflow
from .run import run_nested
from .runtime import WorkflowRuntime
from .schemas import (
    Analyses,
    Documents,
    Findings,
    ProcessedTopics,
    ReviewResults,
    TopicsTrigger,
)
from .step import Step, StepContext
from .telemetry import observe

logger = logging.getLogger(__name__)

RESEARCH_AGENT = "research"
ANALYST_AGENT = "analyst"
WRITER_AGENT = "writer"
MASTER_AGENT = "master"


async def _preprocess(ctx: StepContext) -> dict[str, Any]:
    processed: list[str] = []
    for topic in ctx.input_data["topics"]:
        output = await run_nested(
            create_dynamic_workflow(ctx.runtime),
            {"dynamic_input": topic},
            "dynamicStep",
            runtime=ctx.runtime,
        )
        processed.append(output["processed_value"])
    return {"processed_topics": processed}


def _fan_out_phase(
    step_id: str,
    agent_name: str,
    prompt_template: str,
    input_key: str,
    output_key: str,
    input_contract: Type[BaseModel],
    output_contract: Type[BaseModel],
) -> Step:
    """Step that sends every item of ``input_key`` to one agent concurrently."""

    async def _execute(ctx: StepContext) -> dict[str, Any]:
        agent = ctx.runtime.get_agent(agent_name)
        items = ctx.input_data[input_key]

        async def _run_all() -> list[Any]:
            return await asyncio.gather(
                *(generate(agent, prompt_template.format(item)) for item in items)
            )

        outputs = await observe(ctx.runtime.telemetry, step_id, _run_all)
        logger.debug(f"{step_id} produced {len(outputs)} outputs via {agent_name}")
        return {output_key: [str(o) for o in outputs]}

    return Step(
        id=step_id,
        input_contract=input_contract,
        output_contract=output_contract,
        execute=_execute,
    )


def create_agent_pipeline_workflow(
    runtime: Optional[WorkflowRuntime] = None,
) -> Workflow:
    """Pipeline running research, analyst, writer and master agents in sequence.

    Requires agents registered on the runtime under ``research``,
    ``analyst``, ``writer`` and ``master``.
    """
    preprocess = Step(
        id="preprocess-phase",
        input_contract=TopicsTrigger,
        output_contract=ProcessedTopics,
        execute=_preprocess,
    )
    research = _fan_out_phase(
        "research-phase",
        RESEARCH_AGENT,
        "Research in depth: {}",
        "processed_topics",
        "findings",
        ProcessedTopics,
        Findings,
    )
    analysis = _fan_out_phase(
        "analysis-phase",
        ANALYST_AGENT,
        "Analyze: {}",
        "findings",
        "analyses",
        Findings,
        Analyses,
    )
    documentation = _fan_out_phase(
        "documentation-phase",
        WRITER_AGENT,
        "Create report: {}",
        "analyses",
        "documents",
        Analyses,
        Documents,
    )
    testing = _fan_out_phase(
        "testing-phase",
        MASTER_AGENT,
        "Validate document quality and completeness: {}",
        "documents",
        "results",
        Documents,
        ReviewResults,
    )
    return build_workflow(
        "advanced-test-workflow",
        runtime,
        TopicsTrigger,
        lambda wf: wf.step(preprocess)
        .then(research)
        .then(analysis)
        .then(documentation)
        .then(testing),
    )
