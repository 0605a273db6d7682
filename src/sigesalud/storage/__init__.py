"""Storage backends and the process-wide active backend."""

from __future__ import annotations

import logging
import threading

from sigesalud.config import Settings
from sigesalud.storage.base import StorageBackend
from sigesalud.storage.memory import MemoryBackend
from sigesalud.storage.query import Query
from sigesalud.storage.relational import RelationalBackend

logger = logging.getLogger(__name__)

_backend: StorageBackend | None = None
_backend_lock = threading.Lock()


def create_backend(settings: Settings) -> StorageBackend:
    """Build (but do not initialize) the backend selected by ``settings``."""
    if settings.backend == "relational":
        return RelationalBackend(settings.database_url)
    return MemoryBackend(settings.data_root, settings.hr_root)


def get_backend(settings: Settings | None = None) -> StorageBackend:
    """Return the process-wide backend, creating and initializing it once.

    Raises :class:`~sigesalud.exceptions.BackendInitError` when the store
    cannot be opened.
    """
    global _backend
    with _backend_lock:
        if _backend is None:
            backend = create_backend(settings or Settings.from_env())
            backend.ensure_ready()
            _backend = backend
        return _backend


def set_backend(backend: StorageBackend | None) -> None:
    """Install a backend (tests inject fixtures this way)."""
    global _backend
    with _backend_lock:
        _backend = backend


def reset_backend() -> None:
    """Drop the active backend so the next call builds a fresh one."""
    global _backend
    with _backend_lock:
        if _backend is not None:
            _backend.close()
        _backend = None


__all__ = [
    "MemoryBackend",
    "Query",
    "RelationalBackend",
    "StorageBackend",
    "create_backend",
    "get_backend",
    "reset_backend",
    "set_backend",
]
