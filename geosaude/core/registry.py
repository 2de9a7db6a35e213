# geosaude/core/registry.py
from __future__ import annotations
from typing import Optional
from threading import RLock
from geosaude.core.errors import StoreNotInitialized
from geosaude.core.store import DataStore


_store: Optional[DataStore] = None
_lock = RLock()


def set_store(store: Optional[DataStore]) -> None:
    """Called once during startup (per worker); None clears it on shutdown."""
    global _store
    with _lock:
        _store = store


def get_store() -> DataStore:
    """
    Access the DataStore for this worker.
    Raises if called before startup (e.g., at import time).
    """
    s = _store
    if s is None:
        raise StoreNotInitialized("DataStore not initialized yet (startup not completed).")
    return s
