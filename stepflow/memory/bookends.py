"""Memory load/save steps placed around every committed workflow."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from ..constants import BOOKEND_STEP_IDS, MEMORY_LOAD_STEP_ID, MEMORY_SAVE_STEP_ID
from ..schemas import MemoryLoadOutput, MemorySaveOutput
from ..step import Step, StepContext

logger = logging.getLogger(__name__)


async def _load_memory(ctx: StepContext) -> dict[str, Any]:
    store = ctx.runtime.memory
    if store is None:
        return {"thread_id": ctx.thread_id, "loaded": False}

    state = await store.load(ctx.thread_id)
    ctx.memory.clear()
    ctx.memory.update(state or {})
    logger.debug(f"Loaded memory for thread_id={ctx.thread_id} found={state is not None}")
    return {"thread_id": ctx.thread_id, "loaded": state is not None}


async def _save_memory(ctx: StepContext) -> dict[str, Any]:
    store = ctx.runtime.memory
    if store is None:
        return {"thread_id": ctx.thread_id, "saved": False}

    outputs = {
        step_id: result.output
        for step_id, result in ctx.results.items()
        if result.ok and step_id not in BOOKEND_STEP_IDS
    }
    runs = list(ctx.memory.get("runs", []))
    runs.append(
        {
            "workflow": ctx.run.workflow_name,
            "run_id": ctx.run.run_id,
            "completed_at": datetime.now(timezone.utc).isoformat(),
            "outputs": outputs,
        }
    )
    ctx.memory["runs"] = runs[-ctx.runtime.memory_history_limit :]

    await store.save(ctx.thread_id, ctx.memory)
    logger.debug(f"Saved memory for thread_id={ctx.thread_id}")
    return {"thread_id": ctx.thread_id, "saved": True}


def memory_load_step() -> Step:
    """Step that loads thread memory into the run context."""
    return Step(
        id=MEMORY_LOAD_STEP_ID,
        execute=_load_memory,
        output_contract=MemoryLoadOutput,
        description="Load prior memory for this thread",
        forwards_output=False,
    )


def memory_save_step() -> Step:
    """Step that appends a run summary to thread memory and saves it."""
    return Step(
        id=MEMORY_SAVE_STEP_ID,
        execute=_save_memory,
        output_contract=MemorySaveOutput,
        description="Save updated memory for this thread",
        forwards_output=False,
    )
