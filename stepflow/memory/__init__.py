"""Thread memory persistence for stepflow workflows."""

from __future__ import annotations

import os
from typing import Optional

from ..config import StepflowConfig, load_config
from ..constants import DATABASE_URL_ENV_VAR
from .inmemory import InMemoryMemoryStore
from .sqlite import SQLiteMemoryStore
from .store import MemoryStore

_store_instance: MemoryStore | None = None


def get_memory_store(
    database_url: Optional[str] = None, config: Optional[StepflowConfig] = None
) -> MemoryStore:
    """Factory function to obtain a memory store.

    The backend is selected from ``database_url`` which can be provided
    explicitly, via the ``STEPFLOW_DATABASE_URL`` environment variable, or
    from loaded configuration. Without a database an in-memory store is
    returned.
    """

    global _store_instance
    if _store_instance is not None and database_url is None and config is None:
        return _store_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv(DATABASE_URL_ENV_VAR)
        or config.memory.database_url
    )

    if not database_url:
        _store_instance = InMemoryMemoryStore()
        return _store_instance

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        _store_instance = SQLiteMemoryStore(path)
    else:
        raise ValueError(f"Unsupported memory backend: {database_url}")

    return _store_instance


__all__ = [
    "MemoryStore",
    "InMemoryMemoryStore",
    "SQLiteMemoryStore",
    "get_memory_store",
]
