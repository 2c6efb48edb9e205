"""In-memory implementation of the memory store."""

from __future__ import annotations

import copy
from typing import Any, Dict

from .store import MemoryStore


class InMemoryMemoryStore(MemoryStore):
    """Keep thread memory in local process memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._threads: Dict[str, dict[str, Any]] = {}

    async def load(self, thread_id: str) -> dict[str, Any] | None:
        state = self._threads.get(thread_id)
        return copy.deepcopy(state) if state is not None else None

    async def save(self, thread_id: str, state: dict[str, Any]) -> None:
        self._threads[thread_id] = copy.deepcopy(state)

    async def list_threads(self) -> list[str]:
        return list(self._threads)
