"""Named operations exposed to the UI shell.

Every operation takes a payload dict and returns plain JSON-compatible data.
Failures inside an operation are logged and converted to the operation's safe
default so the caller only ever sees "no data", never an exception.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from typing import Any

from sigesalud.config import Settings
from sigesalud.exceptions import BackendInitError, UnknownOperationError
from sigesalud.models import FacilityFilters, PatientFilters, Scope, WorkerFilters
from sigesalud.services import (
    DashboardService,
    EncounterService,
    EpidemiologyService,
    FacilityService,
    HrService,
    LaboratoryService,
    MapPositionLookup,
    PatientService,
    PharmacyService,
)
from sigesalud.services.dashboard import empty_summary
from sigesalud.storage import get_backend
from sigesalud.storage.base import StorageBackend

logger = logging.getLogger(__name__)

Payload = dict[str, Any]


@dataclass(frozen=True)
class Operation:
    """A registered operation and the value returned when it fails."""

    name: str
    handler: Callable[[Payload], Any]
    default: Callable[[], Any]


def _empty_list() -> list[Any]:
    return []


def _none() -> None:
    return None


def _empty_patients() -> dict[str, Any]:
    return {"total": 0, "rows": []}


def _empty_encounter() -> dict[str, Any]:
    return {"encounter": None, "notes": [], "vitals": None}


def _int(payload: Payload, key: str, default: int) -> int:
    value = payload.get(key)
    if value is None or value == "":
        return default
    return int(value)


def _scope(payload: Payload) -> Scope:
    scope = payload.get("scope")
    if isinstance(scope, Scope):
        return scope
    return Scope.model_validate(scope or {})


class ReportingApi:
    """Dispatches named operations to the aggregation services."""

    def __init__(
        self,
        backend: StorageBackend | None = None,
        settings: Settings | None = None,
        today: date | None = None,
    ) -> None:
        self.settings = settings or Settings.from_env()
        self.today = today
        self._backend = backend
        self.map_positions = MapPositionLookup(self.settings.data_root)
        self._operations = {op.name: op for op in self._build_operations()}

    @property
    def backend(self) -> StorageBackend:
        if self._backend is None:
            return get_backend(self.settings)
        return self._backend

    @property
    def operations(self) -> list[str]:
        return sorted(self._operations)

    def call(self, name: str, payload: Payload | None = None) -> Any:
        """Run an operation, returning its safe default if it fails."""
        operation = self._operations.get(name)
        if operation is None:
            raise UnknownOperationError(name)
        try:
            return operation.handler(payload or {})
        except BackendInitError:
            raise
        except Exception:
            logger.exception("Operation %s failed, returning safe default", name)
            return operation.default()

    # ── service factories ───────────────────────────────────────────────

    def dashboard(self) -> DashboardService:
        return DashboardService(self.backend, self.today)

    def facilities(self) -> FacilityService:
        return FacilityService(self.backend, self.map_positions, self.today)

    def epidemiology(self) -> EpidemiologyService:
        return EpidemiologyService(self.backend, self.today)

    def pharmacy(self) -> PharmacyService:
        return PharmacyService(self.backend, self.today)

    def laboratory(self) -> LaboratoryService:
        return LaboratoryService(self.backend, self.today)

    def hr(self) -> HrService:
        return HrService(self.backend, self.today)

    def patients(self) -> PatientService:
        return PatientService(self.backend, self.today)

    def encounters(self) -> EncounterService:
        return EncounterService(self.backend, self.today)

    # ── registry ────────────────────────────────────────────────────────

    def _build_operations(self) -> list[Operation]:
        return [
            Operation(
                "dashboard.summary",
                lambda p: self.dashboard().summary(
                    p.get("period"), FacilityFilters.model_validate(p.get("filters") or {})
                ),
                empty_summary,
            ),
            Operation(
                "facilities.list",
                lambda p: self.facilities().list(FacilityFilters.model_validate(p)),
                _empty_list,
            ),
            Operation(
                "epi.trend",
                lambda p: self.epidemiology().trend(
                    p.get("diseaseId") or "MALARIA", _int(p, "weeks", 8)
                ),
                _empty_list,
            ),
            Operation(
                "epi.ranking",
                lambda p: self.epidemiology().ranking(
                    p.get("diseaseId") or "MALARIA", _int(p, "limit", 8)
                ),
                _empty_list,
            ),
            Operation("epi.diseases", lambda p: self.epidemiology().diseases(), _empty_list),
            Operation("pharmacy.summary", lambda p: self.pharmacy().summary(), _none),
            Operation(
                "pharmacy.critical",
                lambda p: self.pharmacy().critical(_int(p, "limit", 30)),
                _empty_list,
            ),
            Operation("lab.summary", lambda p: self.laboratory().summary(p.get("period")), _none),
            Operation(
                "lab.volume",
                lambda p: self.laboratory().volume(p.get("level") or "province", p.get("period")),
                _empty_list,
            ),
            Operation(
                "lab.positivity", lambda p: self.laboratory().positivity(p.get("period")), _empty_list
            ),
            Operation(
                "lab.alerts",
                lambda p: self.laboratory().alerts(p.get("period"), _int(p, "limit", 6)),
                _empty_list,
            ),
            Operation(
                "hr.workers",
                lambda p: self.hr().workers(WorkerFilters.model_validate(p)),
                _empty_list,
            ),
            Operation(
                "hr.assignments", lambda p: self.hr().assignments(p.get("workerId")), _empty_list
            ),
            Operation("hr.history", lambda p: self.hr().history(p.get("workerId")), _empty_list),
            Operation(
                "hr.credentials", lambda p: self.hr().credentials(p.get("workerId")), _empty_list
            ),
            Operation("hr.get", lambda p: self.hr().get(p.get("workerId")), _none),
            Operation("hr.timeline", lambda p: self.hr().timeline(p.get("workerId")), _empty_list),
            Operation(
                "hr.facilityStaff",
                lambda p: self.hr().facility_staff(p.get("facilityId"), p.get("department")),
                _empty_list,
            ),
            Operation("hr.kpis", lambda p: self.hr().kpis(_scope(p)), _none),
            Operation("hr.alerts", lambda p: self.hr().alerts(_scope(p)), _empty_list),
            Operation(
                "hr.staffing",
                lambda p: self.hr().staffing(_scope(p), _int(p, "limit", 20)),
                _empty_list,
            ),
            Operation(
                "patients.list",
                lambda p: self.patients().list(PatientFilters.model_validate(p)),
                _empty_patients,
            ),
            Operation(
                "patients.timeline",
                lambda p: self.patients().timeline(p.get("patientId"), _int(p, "limit", 25)),
                _empty_list,
            ),
            Operation(
                "encounters.detail",
                lambda p: self.encounters().detail(p.get("encounterId")),
                _empty_encounter,
            ),
        ]
