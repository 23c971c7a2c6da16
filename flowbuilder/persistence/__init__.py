"""Node persistence backends."""
from typing import Optional

from flowbuilder.config import get_settings
from flowbuilder.persistence.base import NodeStore
from flowbuilder.persistence.http import HttpNodeStore
from flowbuilder.persistence.memory import InMemoryNodeStore

# Singleton store instance
_store: Optional[NodeStore] = None


def get_node_store() -> NodeStore:
    """Get the node store selected by settings.persistence_backend."""
    global _store

    if _store is None:
        settings = get_settings()

        if settings.persistence_backend == "http":
            _store = HttpNodeStore()
        elif settings.persistence_backend == "supabase":
            from flowbuilder.persistence.supabase import get_supabase_store
            _store = get_supabase_store()
        elif settings.persistence_backend == "memory":
            _store = InMemoryNodeStore()
        else:
            raise ValueError(f"Unknown persistence backend: {settings.persistence_backend}")

    return _store


def reset_node_store():
    """Reset the store (for testing)."""
    global _store
    _store = None


__all__ = [
    "NodeStore",
    "HttpNodeStore",
    "InMemoryNodeStore",
    "get_node_store",
    "reset_node_store",
]
