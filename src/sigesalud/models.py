"""Pydantic models for generated records and operation parameters."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StaffingQuota(BaseModel):
    """Required headcount per cadre for one facility."""

    facility_id: str
    doctors: int = Field(default=0, ge=0)
    nurses: int = Field(default=0, ge=0)
    technicians: int = Field(default=0, ge=0)
    support_staff: int = Field(default=0, ge=0)
    cooperation_program: str | None = None


class WorkerContact(BaseModel):
    """Phone and e-mail of a health worker."""

    phone: str | None = None
    email: str | None = None


class Worker(BaseModel):
    """Health worker as written to ``hr.workers.json``."""

    worker_id: str
    full_name: str
    sex: str
    dob: str
    nationality: str
    cadre: str
    specialty: str
    license_number: str | None
    employment_type: str
    status: str
    contact: WorkerContact


class Assignment(BaseModel):
    """Posting of a worker at a facility; ``end_date`` null means current."""

    assignment_id: str
    worker_id: str
    facility_id: str
    position_title: str
    department: str
    start_date: str
    end_date: str | None = None
    fte: float


class WorkHistory(BaseModel):
    """Past posting of a worker."""

    history_id: str
    worker_id: str
    facility_id: str | None
    role: str
    start_date: str
    end_date: str
    notes: str


class Credential(BaseModel):
    """Degree or certification held by a worker."""

    credential_id: str
    worker_id: str
    type: str
    name: str
    institution: str
    country: str
    date_awarded: str
    expires_on: str | None = None


class Roster(BaseModel):
    """The four streams produced by one roster generation run."""

    workers: list[Worker] = Field(default_factory=list)
    assignments: list[Assignment] = Field(default_factory=list)
    history: list[WorkHistory] = Field(default_factory=list)
    credentials: list[Credential] = Field(default_factory=list)


class Visit(BaseModel):
    """A patient encounter at a facility."""

    visit_id: str
    patient_id: str
    facility_id: str | None = None
    date: str
    service: str | None = None
    diagnosis_id: str | None = None
    diagnosis_code: str | None = None
    outcome: str | None = None


class EncounterSummary(Visit):
    """Visit enriched with the facility display name."""

    facility_name: str | None = None


class ClinicalNote(BaseModel):
    """Synthesized note attached to an encounter."""

    note_id: str
    encounter_id: str
    patient_id: str
    note_type: str
    chief_complaint: str
    subjective: str
    objective: str
    assessment: str
    plan: str
    created_at: str
    created_by: str
    is_signed: int


class Vitals(BaseModel):
    """Synthesized vital signs for an encounter."""

    vital_id: str
    encounter_id: str
    bp_sys: int
    bp_dia: int
    temp_c: float
    hr: int
    rr: int
    spo2: int
    weight_kg: float
    height_cm: int


class EncounterDetail(BaseModel):
    """Encounter plus its generated notes and vitals."""

    encounter: EncounterSummary | None = None
    notes: list[ClinicalNote] = Field(default_factory=list)
    vitals: Vitals | None = None


# ── Operation parameters ─────────────────────────────────────────────────


class _Params(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        """Treat empty strings from form inputs as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v


class FacilityFilters(_Params):
    """Region/type/search filters shared by the dashboard and directory."""

    region: str | None = None
    type: str | None = None
    search: str | None = None

    @field_validator("region", "type")
    @classmethod
    def all_means_unset(cls, v: str | None) -> str | None:
        """The UI sends ``todas`` for "no filter"."""
        if v is not None and v.lower() == "todas":
            return None
        return v


class Scope(_Params):
    """Geographic scope for HR aggregates."""

    level: Literal["national", "province", "district"] = "national"
    id: str | None = None

    @property
    def field(self) -> str | None:
        """Facility column the scope filters on, or None for national scope."""
        if self.level in ("province", "district") and self.id:
            return self.level
        return None


class WorkerFilters(_Params):
    """Filters for the worker directory."""

    search: str | None = None
    cadre: str | None = None
    status: str | None = None
    facility_id: str | None = Field(default=None, alias="facilityId")
    province: str | None = None
    district: str | None = None
    employment_type: str | None = Field(default=None, alias="employmentType")


class PatientFilters(_Params):
    """Search, sex filter and pagination for the patient list."""

    search: str | None = None
    sex: str | None = None
    limit: int = Field(default=20, ge=0)
    offset: int = Field(default=0, ge=0)
