"""Laboratory volumes, positivity and alerts.

Windows end at the latest date present in the relevant table. When fewer
distinct dates than the nominal period length fall inside the window, additive
metrics are scaled by ``nominal / available``; averages are never scaled.
Synthetic values are returned only when the relevant table has no rows at all.
"""

from __future__ import annotations

import logging
from typing import Any

from sigesalud.services._common import LAB_PERIODS, Period, Service, Window, first_n, resolve_period
from sigesalud.storage.query import IsNull, Query
from sigesalud.utils import round_half_up, round_to, stable_hash

logger = logging.getLogger(__name__)

SUMMARY_TABLE = "lab_daily_summary"
INDICATORS_TABLE = "lab_disease_indicators"
ALERTS_TABLE = "lab_alerts"

DEFAULT_DISEASES = ["MALARIA", "ETI_IRA", "DIARREA", "TB", "HIV", "MATERNAL_RISK", "HTA", "DIABETES"]
DISEASE_TESTS = {
    "MALARIA": "RDT",
    "HIV": "RAPID",
    "TB": "GENEXPERT",
    "ETI_IRA": "RAPID",
    "DIARREA": "STOOL",
    "DIABETES": "GLUCOSE",
    "HTA": "BP",
    "MATERNAL_RISK": "HEMOGLOBINA",
}
FALLBACK_ALERTS = [
    ("LAB_FALLBACK_001", "RDT_STOCK_LOW", "ALTA", "RDT malaria con stock bajo. Revisar reposicion."),
    ("LAB_FALLBACK_002", "MACHINE_DOWNTIME", "MEDIA", "Equipo de hematologia con mantenimiento programado."),
    ("LAB_FALLBACK_003", "POSITIVITY_SPIKE", "ALTA", "Aumento de positividad malaria en la ultima semana."),
]


def scale_value(value: Any, factor: float) -> int:
    """Scale an additive metric, treating null as zero."""
    return round_half_up((value or 0) * factor)


class LaboratoryService(Service):
    # ── windows and scaling ─────────────────────────────────────────────

    def has_rows(self, table: str) -> bool:
        return self.backend.count(table) > 0

    def window(self, period: str | None, table: str) -> tuple[Window, Period] | None:
        """Window over ``table`` ending at its latest date, or None when it has no dates."""
        resolved = resolve_period(LAB_PERIODS, period, "yesterday")
        latest = self.backend.max_value(table, "date")
        if not latest:
            return None
        return Window.ending(latest, resolved), resolved

    def scale_factor(self, table: str, window: Window, period: Period) -> float:
        """``nominal / available`` when the window is only partially covered."""
        available = self.backend.scalar(
            Query(table)
            .date_window("date", window.start, window.end)
            .aggregate(days=("count_distinct", "date")),
            "days",
        )
        available = int(available or 0)
        if 0 < available < period.nominal_days:
            return period.nominal_days / available
        return 1.0

    # ── summary ─────────────────────────────────────────────────────────

    def summary(self, period: str | None = "yesterday") -> dict[str, Any]:
        """Ordered, completed and rejected tests plus mean turnaround."""
        resolved = self.window(period, SUMMARY_TABLE) if self.has_rows(SUMMARY_TABLE) else None
        if resolved is None:
            return self.fallback_summary()
        window, nominal = resolved

        row = self.backend.fetch_one(
            Query(SUMMARY_TABLE, "s")
            .date_window("s.date", window.start, window.end)
            .aggregate(
                tests_ordered=("sum", "s.tests_ordered"),
                tests_completed=("sum", "s.tests_completed"),
                avg_turnaround_hours=("avg", "s.avg_turnaround_hours"),
                rejected_samples=("sum", "s.rejected_samples"),
            )
        ) or {}
        factor = self.scale_factor(SUMMARY_TABLE, window, nominal)
        turnaround = row.get("avg_turnaround_hours")
        return {
            "date": window.end,
            "tests_ordered": scale_value(row.get("tests_ordered"), factor),
            "tests_completed": scale_value(row.get("tests_completed"), factor),
            "avg_turnaround_hours": round_to(turnaround, 1) if turnaround is not None else 0,
            "rejected_samples": scale_value(row.get("rejected_samples"), factor),
        }

    def fallback_summary(self) -> dict[str, Any]:
        return {
            "date": self.today_iso,
            "tests_ordered": 420,
            "tests_completed": 398,
            "avg_turnaround_hours": 9.1,
            "rejected_samples": 12,
        }

    # ── volume ──────────────────────────────────────────────────────────

    def volume(self, level: str | None = "province", period: str | None = "yesterday") -> list[dict[str, Any]]:
        """Ordered and completed tests per province or district."""
        scope = "district" if level == "district" else "province"
        resolved = self.window(period, SUMMARY_TABLE) if self.has_rows(SUMMARY_TABLE) else None
        if resolved is None:
            return self.fallback_volume(scope)
        window, nominal = resolved

        query = (
            Query(SUMMARY_TABLE, "s")
            .join("facilities", "f", ("s.facility_id", "facility_id"))
            .date_window("s.date", window.start, window.end)
            .where(IsNull(f"f.{scope}", negate=True))
            .select(f"f.{scope} AS scope_id")
            .aggregate(
                f"f.{scope}",
                tests_ordered=("sum", "s.tests_ordered"),
                tests_completed=("sum", "s.tests_completed"),
            )
            .order_by("-tests_completed", "scope_id")
        )
        factor = self.scale_factor(SUMMARY_TABLE, window, nominal)
        return [
            {
                "scope_id": row["scope_id"],
                "scope_name": row["scope_id"],
                "tests_ordered": scale_value(row["tests_ordered"], factor),
                "tests_completed": scale_value(row["tests_completed"], factor),
            }
            for row in self.backend.fetch(query)
        ]

    def fallback_volume(self, scope: str) -> list[dict[str, Any]]:
        rows = self.backend.fetch(
            Query("facilities", "f")
            .where(IsNull(f"f.{scope}", negate=True))
            .select(f"f.{scope} AS scope_id")
            .aggregate(f"f.{scope}", facilities=("count", None))
            .order_by("scope_id")
        )
        volume = []
        for row in rows:
            scope_id = str(row["scope_id"])
            base = 120 + stable_hash(scope_id) % 80 + row["facilities"] * 6
            volume.append(
                {
                    "scope_id": scope_id,
                    "scope_name": scope_id,
                    "tests_ordered": base + 10 + stable_hash(f"{scope_id}-o") % 20,
                    "tests_completed": base,
                }
            )
        volume.sort(key=lambda r: r["tests_completed"], reverse=True)
        return volume

    # ── positivity ──────────────────────────────────────────────────────

    def positivity(self, period: str | None = "yesterday") -> list[dict[str, Any]]:
        """Tested and positive counts per disease and test type."""
        resolved = self.window(period, INDICATORS_TABLE) if self.has_rows(INDICATORS_TABLE) else None
        if resolved is None:
            return self.fallback_positivity()
        window, nominal = resolved

        query = (
            Query(INDICATORS_TABLE, "i")
            .date_window("i.date", window.start, window.end)
            .aggregate(
                "i.disease_id",
                "i.test_type",
                total_tested=("sum", "i.total_tested"),
                total_positive=("sum", "i.total_positive"),
            )
            .order_by("-total_positive", "disease_id", "test_type")
        )
        factor = self.scale_factor(INDICATORS_TABLE, window, nominal)
        return [
            {
                **row,
                "total_tested": scale_value(row["total_tested"], factor),
                "total_positive": scale_value(row["total_positive"], factor),
            }
            for row in self.backend.fetch(query)
        ]

    def fallback_positivity(self) -> list[dict[str, Any]]:
        catalog = self.backend.fetch(
            Query("diseases_catalog", "d").select("d.disease_id").order_by("d.disease_id")
        )
        disease_ids = [str(r["disease_id"]) for r in catalog] or DEFAULT_DISEASES
        rows = []
        for disease_id in disease_ids:
            test_type = DISEASE_TESTS.get(disease_id)
            if test_type is None:
                continue
            base = 40 + stable_hash(disease_id) % 60
            share = 0.12 + (stable_hash(f"{disease_id}-p") % 8) / 100
            rows.append(
                {
                    "disease_id": disease_id,
                    "test_type": test_type,
                    "total_tested": base,
                    "total_positive": max(2, round_half_up(base * share)),
                }
            )
        rows.sort(key=lambda r: r["total_positive"], reverse=True)
        return rows

    # ── alerts ──────────────────────────────────────────────────────────

    def alerts(self, period: str | None = "yesterday", limit: int = 6) -> list[dict[str, Any]]:
        """Most recent lab alerts in the window, newest first."""
        if not self.has_rows(ALERTS_TABLE):
            return first_n(self.fallback_alerts(), limit)
        resolved = self.window(period, SUMMARY_TABLE) or self.window(period, ALERTS_TABLE)
        if resolved is None:
            return first_n(self.fallback_alerts(), limit)
        window, _ = resolved

        return self.backend.fetch(
            Query(ALERTS_TABLE, "a")
            .join("facilities", "f", ("a.facility_id", "facility_id"))
            .date_window("a.date", window.start, window.end)
            .select(
                "a.alert_id",
                "a.date",
                "a.type",
                "a.severity",
                "a.facility_id",
                "f.name AS facility_name",
                "a.message",
            )
            .top_n(limit, "-a.date", "a.alert_id")
        )

    def fallback_alerts(self) -> list[dict[str, Any]]:
        today = self.today_iso
        return [
            {
                "alert_id": alert_id,
                "date": today,
                "type": alert_type,
                "severity": severity,
                "facility_id": None,
                "message": message,
            }
            for alert_id, alert_type, severity, message in FALLBACK_ALERTS
        ]
