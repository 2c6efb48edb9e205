"""Memory store abstraction for per-thread conversational state."""

from __future__ import annotations

from typing import Any, Protocol


class MemoryStore(Protocol):
    """Protocol for thread memory backends."""

    async def load(self, thread_id: str) -> dict[str, Any] | None:
        """Return the persisted state for ``thread_id`` or ``None``."""

    async def save(self, thread_id: str, state: dict[str, Any]) -> None:
        """Persist ``state`` for ``thread_id``, replacing any previous value."""

    async def list_threads(self) -> list[str]:
        """Return all thread ids with persisted state."""
