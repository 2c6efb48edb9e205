"""Contracts used by the bundled workflow factories."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class DynamicInput(BaseModel):
    """Trigger for dynamic workflows."""

    dynamic_input: str


class DynamicOutput(BaseModel):
    """Output of dynamic workflow steps."""

    processed_value: str


class MainTrigger(BaseModel):
    """Trigger for the main workflow."""

    input_data: str


class DynamicWorkflowStepOutput(BaseModel):
    dynamic_workflow_result: DynamicOutput


class IntermediateResult(BaseModel):
    """Output of the first step of the chained workflow."""

    intermediate_result: str


class FinalResult(BaseModel):
    """Output of the second step of the chained workflow."""

    final_result: str


class IsLong(BaseModel):
    is_long: bool


class Message(BaseModel):
    message: str


class RetryFlag(BaseModel):
    success: bool


class MemoryLoadOutput(BaseModel):
    thread_id: str
    loaded: bool


class MemorySaveOutput(BaseModel):
    thread_id: str
    saved: bool


class TopicsTrigger(BaseModel):
    """Trigger for the agent pipeline."""

    topics: List[str] = Field(description="List of topics to run through the agents")


class ProcessedTopics(BaseModel):
    processed_topics: List[str]


class Findings(BaseModel):
    findings: List[str]


class Analyses(BaseModel):
    analyses: List[str]


class Documents(BaseModel):
    documents: List[str]


class ReviewResults(BaseModel):
    results: List[str]
