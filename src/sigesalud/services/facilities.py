"""Facility directory."""

from __future__ import annotations

import logging
import threading
from datetime import date
from pathlib import Path
from typing import Any

from sigesalud.models import FacilityFilters
from sigesalud.services._common import Service, apply_facility_filters
from sigesalud.storage.base import StorageBackend
from sigesalud.storage.files import load_map_positions
from sigesalud.storage.query import Query

logger = logging.getLogger(__name__)


class MapPositionLookup:
    """Facility id -> map position, read from the facilities file on first use."""

    def __init__(self, data_root: Path | None) -> None:
        self.data_root = data_root
        self._positions: dict[str, Any] | None = None
        self._lock = threading.Lock()

    def get(self, facility_id: str) -> Any:
        return self.positions().get(facility_id)

    def positions(self) -> dict[str, Any]:
        if self._positions is None:
            with self._lock:
                if self._positions is None:
                    self._positions = self._load()
        return self._positions

    def _load(self) -> dict[str, Any]:
        if self.data_root is None:
            return {}
        positions = load_map_positions(self.data_root)
        logger.debug("Loaded %d facility map positions", len(positions))
        return positions


class FacilityService(Service):
    def __init__(
        self,
        backend: StorageBackend,
        map_positions: MapPositionLookup | None = None,
        today: date | None = None,
    ) -> None:
        super().__init__(backend, today)
        self.map_positions = map_positions or MapPositionLookup(None)

    def list(self, filters: FacilityFilters | None = None) -> list[dict[str, Any]]:
        """Facilities matching the filters, by name."""
        query = Query("facilities", "f").order_by("f.name", "f.facility_id")
        query = apply_facility_filters(query, filters or FacilityFilters(), "f")

        rows = self.backend.fetch(query)
        for row in rows:
            row["services"] = row.get("services") or []
            row["contacts"] = row.get("contacts") or {}
            row["data_quality"] = row.get("data_quality") or {}
            if not row.get("map_pos"):
                row["map_pos"] = self.map_positions.get(row["facility_id"])
        return rows
