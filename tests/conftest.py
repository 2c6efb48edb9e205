import pytest

from stepflow.memory import InMemoryMemoryStore
from stepflow.runtime import WorkflowRuntime
from stepflow.telemetry import LoggingTelemetry


@pytest.fixture
def memory_store() -> InMemoryMemoryStore:
    return InMemoryMemoryStore()


@pytest.fixture
def runtime(memory_store: InMemoryMemoryStore) -> WorkflowRuntime:
    return WorkflowRuntime(memory=memory_store, telemetry=LoggingTelemetry())
