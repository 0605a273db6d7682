"""Patient list, visit timeline and encounter detail."""

from __future__ import annotations

from typing import Any

from sigesalud.generators.encounter import build_encounter
from sigesalud.models import EncounterDetail, PatientFilters
from sigesalud.services._common import Service
from sigesalud.storage.query import Eq, In, Query


class PatientService(Service):
    def _patients(self, filters: PatientFilters) -> Query:
        return (
            Query("patients", "p")
            .search(filters.search, "p.full_name", "p.patient_id")
            .equals("p.sex", filters.sex)
        )

    def list(self, filters: PatientFilters | None = None) -> dict[str, Any]:
        """One page of patients with visit counts derived from their visits."""
        filters = filters or PatientFilters()
        matching = self._patients(filters)
        total = self.backend.count("patients", matching)

        page = self.backend.fetch(
            matching.join("facilities", "f", ("p.facility_id", "facility_id"))
            .select("p.patient_id", "p.full_name", "p.sex", "p.dob", "p.facility_id", "f.name AS facility_name")
            .order_by("p.full_name", "p.patient_id")
            .take(filters.limit, filters.offset)
        )
        stats = self._visit_stats([row["patient_id"] for row in page])
        for row in page:
            visits_count, last_visit = stats.get(row["patient_id"], (0, None))
            row["visits_count"] = visits_count
            row["last_visit"] = last_visit
        return {"total": total, "rows": page}

    def _visit_stats(self, patient_ids: list[str]) -> dict[str, tuple[int, str | None]]:
        if not patient_ids:
            return {}
        rows = self.backend.fetch(
            Query("visits", "v")
            .where(In("v.patient_id", tuple(patient_ids)))
            .aggregate("v.patient_id", visits=("count", None), last_visit=("max", "v.date"))
        )
        return {row["patient_id"]: (row["visits"], row["last_visit"]) for row in rows}

    def timeline(self, patient_id: str | None, limit: int = 25) -> list[dict[str, Any]]:
        """Visits of one patient, newest first."""
        if not patient_id:
            return []
        return self.backend.fetch(
            Query("visits", "v")
            .join("facilities", "f", ("v.facility_id", "facility_id"))
            .where(Eq("v.patient_id", patient_id))
            .select(
                "v.visit_id",
                "v.date",
                "v.service",
                "v.diagnosis_id",
                "v.diagnosis_code",
                "v.outcome",
                "v.facility_id",
                "f.name AS facility_name",
            )
            .top_n(limit, "-v.date", "v.visit_id")
        )


class EncounterService(Service):
    def detail(self, encounter_id: str | None) -> dict[str, Any]:
        """Visit with generated notes and vitals; empty when the visit is unknown."""
        if not encounter_id:
            return EncounterDetail().model_dump()
        visit = self.backend.fetch_one(
            Query("visits", "v")
            .join("facilities", "f", ("v.facility_id", "facility_id"))
            .where(Eq("v.visit_id", encounter_id))
            .select("v.*", "f.name AS facility_name")
        )
        if visit is None:
            return EncounterDetail().model_dump()
        facility_name = visit.pop("facility_name")
        return build_encounter(visit, facility_name).model_dump()
