"""Stock criticality for the latest reported month."""

from __future__ import annotations

from typing import Any

from sigesalud.services._common import Service
from sigesalud.storage.query import CompareFields, Eq, Query


class PharmacyService(Service):
    def latest_month(self) -> str | None:
        return self.backend.max_value("stock_levels_monthly", "month")

    def _critical(self, month: str) -> Query:
        return Query("stock_levels_monthly", "s").where(
            Eq("s.month", month),
            CompareFields("s.stock_on_hand", "<=", "s.min_level"),
        )

    def summary(self) -> dict[str, Any]:
        """Facilities and items at or below minimum stock in the latest month."""
        month = self.latest_month()
        if not month:
            return {"latestMonth": None, "facilitiesCritical": 0, "itemsCritical": 0}
        critical = self._critical(month)
        facilities = self.backend.scalar(
            critical.aggregate(total=("count_distinct", "s.facility_id")), "total"
        )
        return {
            "latestMonth": month,
            "facilitiesCritical": int(facilities or 0),
            "itemsCritical": self.backend.count("stock_levels_monthly", critical),
        }

    def critical(self, limit: int = 30) -> list[dict[str, Any]]:
        """Critical stock lines, lowest stock first."""
        month = self.latest_month()
        if not month:
            return []
        query = (
            self._critical(month)
            .join("stock_catalog", "c", ("s.item_id", "item_id"))
            .join("facilities", "f", ("s.facility_id", "facility_id"))
            .select(
                "s.facility_id",
                "f.name AS facility_name",
                "s.item_id",
                "c.name AS item_name",
                "s.stock_on_hand",
                "s.min_level",
                "s.expiry_nearest",
            )
            .top_n(limit, "s.stock_on_hand", "s.facility_id", "s.item_id")
        )
        rows = self.backend.fetch(query)
        for row in rows:
            row["item_name"] = row["item_name"] or row["item_id"]
        return rows
