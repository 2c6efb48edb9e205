import pytest

from stepflow import Step, WorkflowBuilder
from stepflow.factories import create_complex_workflow
from stepflow.memory import InMemoryMemoryStore, SQLiteMemoryStore
from stepflow.runtime import WorkflowRuntime


@pytest.mark.asyncio
async def test_sqlite_store_roundtrip(tmp_path):
    store = SQLiteMemoryStore(tmp_path / "memory.db")

    assert await store.load("t-1") is None
    await store.save("t-1", {"runs": [{"workflow": "wf"}]})
    await store.save("t-1", {"runs": [], "topic": "updated"})
    await store.save("t-2", {})

    assert await store.load("t-1") == {"runs": [], "topic": "updated"}
    assert await store.load("t-2") == {}
    assert sorted(await store.list_threads()) == ["t-1", "t-2"]
    store.close()


@pytest.mark.asyncio
async def test_inmemory_store_copies_state():
    store = InMemoryMemoryStore()
    state = {"runs": []}
    await store.save("t", state)
    state["runs"].append("mutated")

    loaded = await store.load("t")
    assert loaded == {"runs": []}
    loaded["runs"].append("again")
    assert await store.load("t") == {"runs": []}


@pytest.mark.asyncio
async def test_bookends_load_then_save_per_thread(runtime, memory_store):
    workflow = create_complex_workflow(runtime)

    first = await workflow.execute({"dynamic_input": "a"}, thread_id="thread-1")
    second = await workflow.execute({"dynamic_input": "b", "thread_id": "thread-1"})

    assert first.results["__memory_load__"].output == {"thread_id": "thread-1", "loaded": False}
    assert second.results["__memory_load__"].output == {"thread_id": "thread-1", "loaded": True}
    assert second.results["__memory_save__"].output == {"thread_id": "thread-1", "saved": True}
    assert second.thread_id == "thread-1"

    state = await memory_store.load("thread-1")
    assert [run["run_id"] for run in state["runs"]] == [first.run_id, second.run_id]
    assert state["runs"][1]["outputs"]["step2"] == {
        "final_result": "Second processing: First processing: b"
    }
    assert "__memory_load__" not in state["runs"][1]["outputs"]


@pytest.mark.asyncio
async def test_memory_history_is_capped(memory_store):
    runtime = WorkflowRuntime(memory=memory_store, memory_history_limit=2)
    workflow = create_complex_workflow(runtime)
    for value in ("a", "b", "c"):
        await workflow.execute({"dynamic_input": value}, thread_id="t")

    state = await memory_store.load("t")
    assert len(state["runs"]) == 2
    assert state["runs"][-1]["outputs"]["step1"]["intermediate_result"] == "First processing: c"


@pytest.mark.asyncio
async def test_steps_can_update_thread_memory(memory_store):
    def _remember(ctx):
        ctx.memory["count"] = ctx.memory.get("count", 0) + 1
        return {"count": ctx.memory["count"]}

    runtime = WorkflowRuntime(memory=memory_store)
    workflow = WorkflowBuilder("counter", runtime=runtime).step(Step(id="remember", execute=_remember)).commit()

    await workflow.execute({}, thread_id="t")
    result = await workflow.execute({}, thread_id="t")

    assert result.output_of("remember") == {"count": 2}


@pytest.mark.asyncio
async def test_bookends_without_memory_store():
    runtime = WorkflowRuntime(memory=None)
    result = await create_complex_workflow(runtime).execute({"dynamic_input": "x"})

    assert result.ok
    assert result.results["__memory_load__"].output["loaded"] is False
    assert result.results["__memory_save__"].output["saved"] is False
