"""Human-resources directory, staffing coverage and synthesized alerts."""

from __future__ import annotations

import logging
from typing import Any

from sigesalud.models import Scope, WorkerFilters
from sigesalud.services._common import Service, apply_scope, first_n, open_assignment_join
from sigesalud.storage.query import Compare, Eq, IsEmpty, Query
from sigesalud.utils import add_days, to_iso

logger = logging.getLogger(__name__)

ACTIVE_STATUS = "ACTIVO"
EXPIRY_HORIZON_DAYS = 90
NURSE_DEFICIT_HIGH = 5
MAX_ALERTS = 20
CREDENTIAL_ALERT_LIMIT = 50

SEVERITY_HIGH = "Alta"
SEVERITY_MEDIUM = "Media"

# cadre -> staffing column suffix
STAFFED_CADRES = {"MEDICO": "doctors", "ENFERMERIA": "nurses", "TECNICO": "technicians"}

ASSIGNMENT_FIELDS = (
    "a.assignment_id",
    "a.facility_id",
    "a.position_title",
    "a.department",
    "a.start_date",
    "a.end_date",
    "a.fte",
    "a.shift_pattern",
)


def with_contact(row: dict[str, Any]) -> dict[str, Any]:
    """Attach the ``contact`` object built from the flat phone/email columns."""
    row["contact"] = {"phone": row.get("phone"), "email": row.get("email")}
    return row


class HrService(Service):
    # ── directory ───────────────────────────────────────────────────────

    def _worker_query(self) -> Query:
        query = open_assignment_join(Query("health_workers", "w"))
        return (
            query.join("facilities", "f", ("a.facility_id", "facility_id"))
            .select("w.*", *ASSIGNMENT_FIELDS)
            .select("f.name AS facility_name", "f.province", "f.district", "f.region")
        )

    def workers(self, filters: WorkerFilters | None = None) -> list[dict[str, Any]]:
        """Workers with their current posting, by name."""
        filters = filters or WorkerFilters()
        query = (
            self._worker_query()
            .search(filters.search, "w.full_name", "w.worker_id", "w.license_number")
            .equals("w.cadre", filters.cadre)
            .equals("w.status", filters.status)
            .equals("w.employment_type", filters.employment_type)
            .equals("a.facility_id", filters.facility_id)
            .equals("f.province", filters.province)
            .equals("f.district", filters.district)
            .order_by("w.full_name", "w.worker_id", "a.assignment_id")
        )
        return [with_contact(row) for row in self.backend.fetch(query)]

    def get(self, worker_id: str | None) -> dict[str, Any] | None:
        """One worker with their current posting, or None."""
        if not worker_id:
            return None
        row = self.backend.fetch_one(
            self._worker_query()
            .where(Eq("w.worker_id", worker_id))
            .order_by("-a.start_date", "a.assignment_id")
        )
        return with_contact(row) if row is not None else None

    def timeline(self, worker_id: str | None) -> list[dict[str, Any]]:
        """Past postings of a worker, most recent first."""
        if not worker_id:
            return []
        return self.history(worker_id)

    def assignments(self, worker_id: str | None = None) -> list[dict[str, Any]]:
        query = Query("worker_assignments").filter(worker_id=worker_id)
        return self.backend.fetch(query.order_by("-start_date", "assignment_id"))

    def history(self, worker_id: str | None = None) -> list[dict[str, Any]]:
        query = Query("worker_history").filter(worker_id=worker_id)
        return self.backend.fetch(query.order_by("-start_date", "history_id"))

    def credentials(self, worker_id: str | None = None) -> list[dict[str, Any]]:
        query = Query("worker_credentials").filter(worker_id=worker_id)
        return self.backend.fetch(query.order_by("-date_awarded", "credential_id"))

    def facility_staff(self, facility_id: str | None, department: str | None = None) -> list[dict[str, Any]]:
        """Workers currently posted at a facility, by department and name."""
        if not facility_id:
            return []
        query = (
            Query("worker_assignments", "a")
            .join("health_workers", "w", ("a.worker_id", "worker_id"), inner=True)
            .where(Eq("a.facility_id", facility_id), IsEmpty("a.end_date"))
            .equals("a.department", department)
            .select(
                "w.worker_id",
                "w.full_name",
                "w.cadre",
                "w.specialty",
                "w.status",
                "a.assignment_id",
                "a.position_title",
                "a.department",
                "a.start_date",
                "a.fte",
            )
            .order_by("a.department", "w.full_name", "w.worker_id")
        )
        return self.backend.fetch(query)

    # ── aggregates ──────────────────────────────────────────────────────

    def kpis(self, scope: Scope | None = None) -> dict[str, Any]:
        """Headcount, active headcount and cadre breakdown within a scope."""
        scope = scope or Scope()
        base = apply_scope(
            open_assignment_join(Query("health_workers", "w")).join(
                "facilities", "f", ("a.facility_id", "facility_id")
            ),
            scope,
        )
        cadres = self.backend.fetch(
            base.aggregate("w.cadre", total=("count", None)).order_by("cadre")
        )
        return {
            "total": self.backend.count("health_workers", base),
            "active": self.backend.count("health_workers", base.where(Eq("w.status", ACTIVE_STATUS))),
            "byCadre": {row["cadre"]: row["total"] for row in cadres if row["cadre"]},
            "scope": scope.level,
            "scopeId": scope.id,
        }

    def staffing(self, scope: Scope | None = None, limit: int | None = 20) -> list[dict[str, Any]]:
        """Required versus assigned doctors, nurses and technicians per facility."""
        scope = scope or Scope()
        quotas = self.backend.fetch(
            apply_scope(
                Query("staff_assignments", "sa").join("facilities", "f", ("sa.facility_id", "facility_id")),
                scope,
            ).select(
                "sa.facility_id",
                "f.name AS facility_name",
                "f.province",
                "f.district",
                "sa.doctors AS required_doctors",
                "sa.nurses AS required_nurses",
                "sa.technicians AS required_technicians",
            )
        )
        actual = self._assigned_by_cadre()

        rows = []
        for quota in quotas:
            counts = actual.get(quota["facility_id"], {})
            row = dict(quota)
            for cadre, suffix in STAFFED_CADRES.items():
                row[f"actual_{suffix}"] = counts.get(cadre, 0)
            rows.append(row)

        rows.sort(key=lambda r: r["facility_id"] or "")
        rows.sort(key=_assigned_total, reverse=True)
        return first_n(rows, limit)

    def _assigned_by_cadre(self) -> dict[str, dict[str, int]]:
        """facility id -> cadre -> number of current assignments."""
        rows = self.backend.fetch(
            Query("worker_assignments", "a")
            .join("health_workers", "w", ("a.worker_id", "worker_id"), inner=True)
            .where(IsEmpty("a.end_date"))
            .aggregate("a.facility_id", "w.cadre", total=("count", None))
        )
        counts: dict[str, dict[str, int]] = {}
        for row in rows:
            if row["facility_id"] is None:
                continue
            counts.setdefault(row["facility_id"], {})[row["cadre"]] = row["total"]
        return counts

    def alerts(self, scope: Scope | None = None) -> list[dict[str, Any]]:
        """Staffing gaps followed by expired and soon-expiring credentials."""
        scope = scope or Scope()
        alerts: list[dict[str, Any]] = []

        for row in self.staffing(scope, limit=None):
            required_doctors = row["required_doctors"] or 0
            if required_doctors > 0 and row["actual_doctors"] == 0:
                alerts.append(
                    _alert(
                        SEVERITY_HIGH,
                        "Centro sin medico",
                        f"Sin medicos asignados. Requeridos: {required_doctors}.",
                        row,
                    )
                )
            required_nurses = row["required_nurses"] or 0
            deficit = required_nurses - row["actual_nurses"]
            if deficit > 0:
                alerts.append(
                    _alert(
                        SEVERITY_HIGH if deficit >= NURSE_DEFICIT_HIGH else SEVERITY_MEDIUM,
                        "Deficit de enfermeria",
                        f"Faltan {deficit} enfermeras. Requeridas: {required_nurses}.",
                        row,
                    )
                )

        today = self.today_iso
        soon = to_iso(add_days(self.today, EXPIRY_HORIZON_DAYS))
        for row in self._credentials_expiring(scope, Compare("c.expires_on", "<=", today)):
            alerts.append(
                _alert(
                    SEVERITY_HIGH,
                    "Certificacion vencida",
                    f"{row['full_name']} ({row['worker_id']}) vencio {row['expires_on']}.",
                    row,
                )
            )
        for row in self._credentials_expiring(
            scope, Compare("c.expires_on", ">", today), Compare("c.expires_on", "<=", soon)
        ):
            alerts.append(
                _alert(
                    SEVERITY_MEDIUM,
                    "Certificacion por vencer",
                    f"{row['full_name']} ({row['worker_id']}) vence {row['expires_on']}.",
                    row,
                )
            )
        return alerts[:MAX_ALERTS]

    def _credentials_expiring(self, scope: Scope, *bounds: Compare) -> list[dict[str, Any]]:
        query = open_assignment_join(
            Query("worker_credentials", "c").join(
                "health_workers", "w", ("c.worker_id", "worker_id"), inner=True
            )
        ).join("facilities", "f", ("a.facility_id", "facility_id"))
        query = apply_scope(query, scope).where(Compare("c.expires_on", "!=", ""), *bounds)
        return self.backend.fetch(
            query.select(
                "c.worker_id",
                "c.name",
                "c.expires_on",
                "w.full_name",
                "f.name AS facility_name",
                "f.facility_id",
            ).top_n(CREDENTIAL_ALERT_LIMIT, "c.expires_on", "c.credential_id")
        )


def _assigned_total(row: dict[str, Any]) -> int:
    return sum(row[f"actual_{suffix}"] for suffix in STAFFED_CADRES.values())


def _alert(severity: str, alert_type: str, message: str, row: dict[str, Any]) -> dict[str, Any]:
    return {
        "severity": severity,
        "type": alert_type,
        "message": message,
        "facility_id": row.get("facility_id"),
        "facility_name": row.get("facility_name"),
    }
