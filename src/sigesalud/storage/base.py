"""Storage adapter interface shared by the relational and in-memory backends."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any

from sigesalud.storage.query import Query

logger = logging.getLogger(__name__)

Row = dict[str, Any]


class StorageBackend(ABC):
    """Executes :class:`~sigesalud.storage.query.Query` plans.

    Initialization is lazy and idempotent: the first call to
    :meth:`ensure_ready` builds the backend under a lock, later calls return
    immediately. Concurrent first callers wait for the single in-flight
    initialization instead of repeating it.
    """

    name: str = "abstract"

    def __init__(self) -> None:
        self._ready = False
        self._init_lock = threading.Lock()

    @abstractmethod
    def initialize(self) -> None:
        """Open the store or build indexes. Called at most once."""

    @abstractmethod
    def _execute(self, query: Query) -> list[Row]:
        """Run a plan against an initialized backend."""

    def ensure_ready(self) -> None:
        """Initialize on first use."""
        if self._ready:
            return
        with self._init_lock:
            if self._ready:
                return
            logger.info("Initializing %s backend", self.name)
            self.initialize()
            self._ready = True

    @property
    def ready(self) -> bool:
        return self._ready

    def execute(self, query: Query) -> list[Row]:
        """Run a plan and return rows as plain dicts."""
        self.ensure_ready()
        return self._execute(query)

    # ── convenience helpers ─────────────────────────────────────────────

    def fetch(self, query: Query) -> list[Row]:
        return self.execute(query)

    def fetch_one(self, query: Query) -> Row | None:
        """First row of the plan, or None."""
        rows = self.execute(query.take(1, query.offset))
        return rows[0] if rows else None

    def scalar(self, query: Query, label: str) -> Any:
        """Single value from the first row of an aggregate plan."""
        row = self.fetch_one(query)
        return None if row is None else row.get(label)

    def count(self, entity: str, query: Query | None = None) -> int:
        """Number of rows matching ``query`` (all rows of ``entity`` by default)."""
        plan = query if query is not None else Query(entity)
        return int(self.scalar(plan.aggregate(total=("count", None)), "total") or 0)

    def max_value(self, entity: str, field: str, query: Query | None = None) -> Any:
        """Maximum non-null value of ``field``, or None."""
        plan = query if query is not None else Query(entity)
        return self.scalar(plan.aggregate(value=("max", field)), "value")

    def close(self) -> None:
        """Release resources held by the backend."""
