"""Entity catalogue shared by the file loader and both backends."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class EntitySpec:
    """How one entity is named, stored and laid out on disk."""

    name: str
    file: str
    columns: tuple[str, ...]
    collection_key: str | None = None
    primary_key: str | None = None
    json_columns: tuple[str, ...] = ()
    hr: bool = False


FACILITIES = EntitySpec(
    name="facilities",
    file="facilities.full.json",
    collection_key="facilities",
    primary_key="facility_id",
    columns=(
        "facility_id",
        "name",
        "region",
        "province",
        "district",
        "city",
        "facility_type",
        "reference_level",
        "ownership",
        "services",
        "contacts",
        "address_note",
        "data_quality",
        "map_pos",
    ),
    json_columns=("services", "contacts", "data_quality", "map_pos"),
)
PATIENTS = EntitySpec(
    name="patients",
    file="patients.json",
    collection_key="patients",
    primary_key="patient_id",
    columns=("patient_id", "full_name", "sex", "dob", "district_id", "municipality_id", "facility_id"),
)
VISITS = EntitySpec(
    name="visits",
    file="visits_2025.json",
    collection_key="visits",
    primary_key="visit_id",
    columns=(
        "visit_id",
        "patient_id",
        "facility_id",
        "date",
        "service",
        "diagnosis_id",
        "diagnosis_code",
        "outcome",
    ),
)
ALERTS = EntitySpec(
    name="alerts",
    file="alerts.generated.json",
    collection_key="alerts",
    primary_key="alert_id",
    columns=(
        "alert_id",
        "date",
        "type",
        "severity",
        "scope",
        "scope_id",
        "province_id",
        "region",
        "message",
    ),
)
STOCK_CATALOG = EntitySpec(
    name="stock_catalog",
    file="stock.catalog.json",
    primary_key="item_id",
    columns=("item_id", "name", "category", "unit"),
)
STOCK_LEVELS = EntitySpec(
    name="stock_levels_monthly",
    file="stock_levels_monthly_2025.json",
    collection_key="records",
    columns=("facility_id", "item_id", "month", "stock_on_hand", "min_level", "expiry_nearest"),
)
STAFF_QUOTAS = EntitySpec(
    name="staff_assignments",
    file="staff_assignments.json",
    collection_key="records",
    primary_key="facility_id",
    columns=(
        "facility_id",
        "doctors",
        "nurses",
        "technicians",
        "support_staff",
        "cooperation_program",
    ),
)
WORKERS = EntitySpec(
    name="health_workers",
    file="hr.workers.json",
    collection_key="workers",
    primary_key="worker_id",
    hr=True,
    columns=(
        "worker_id",
        "full_name",
        "sex",
        "dob",
        "nationality",
        "cadre",
        "specialty",
        "license_number",
        "employment_type",
        "cooperation_program",
        "status",
        "phone",
        "email",
    ),
)
ASSIGNMENTS = EntitySpec(
    name="worker_assignments",
    file="hr.assignments.json",
    collection_key="assignments",
    primary_key="assignment_id",
    hr=True,
    columns=(
        "assignment_id",
        "worker_id",
        "facility_id",
        "position_title",
        "department",
        "start_date",
        "end_date",
        "fte",
        "shift_pattern",
    ),
)
HISTORY = EntitySpec(
    name="worker_history",
    file="hr.history.json",
    collection_key="history",
    primary_key="history_id",
    hr=True,
    columns=("history_id", "worker_id", "facility_id", "role", "start_date", "end_date", "notes"),
)
CREDENTIALS = EntitySpec(
    name="worker_credentials",
    file="hr.credentials.json",
    collection_key="credentials",
    primary_key="credential_id",
    hr=True,
    columns=(
        "credential_id",
        "worker_id",
        "type",
        "name",
        "institution",
        "country",
        "date_awarded",
        "expires_on",
    ),
)
EPI_WEEKLY = EntitySpec(
    name="epi_weekly",
    file="epi_weekly_2025.json",
    collection_key="records",
    columns=("district_id", "province_id", "region", "week", "week_start", "disease_id", "cases"),
)
DISTRICTS = EntitySpec(
    name="districts",
    file="geo.districts.json",
    primary_key="district_id",
    columns=("district_id", "name", "province_id", "region"),
)
DISEASES = EntitySpec(
    name="diseases_catalog",
    file="diseases.catalog.json",
    primary_key="disease_id",
    columns=("disease_id", "name", "icd_like"),
)
LAB_SUMMARY = EntitySpec(
    name="lab_daily_summary",
    file="lab.summary.json",
    collection_key="records",
    columns=(
        "facility_id",
        "date",
        "tests_ordered",
        "tests_completed",
        "avg_turnaround_hours",
        "rejected_samples",
        "tests_by_category",
    ),
    json_columns=("tests_by_category",),
)
LAB_INDICATORS = EntitySpec(
    name="lab_disease_indicators",
    file="lab.disease.json",
    collection_key="records",
    columns=("facility_id", "date", "disease_id", "test_type", "total_tested", "total_positive"),
)
LAB_ALERTS = EntitySpec(
    name="lab_alerts",
    file="lab.alerts.json",
    collection_key="alerts",
    primary_key="alert_id",
    columns=("alert_id", "date", "type", "severity", "facility_id", "message"),
)

ENTITIES: dict[str, EntitySpec] = {
    spec.name: spec
    for spec in (
        FACILITIES,
        PATIENTS,
        VISITS,
        ALERTS,
        STOCK_CATALOG,
        STOCK_LEVELS,
        STAFF_QUOTAS,
        WORKERS,
        ASSIGNMENTS,
        HISTORY,
        CREDENTIALS,
        EPI_WEEKLY,
        DISTRICTS,
        DISEASES,
        LAB_SUMMARY,
        LAB_INDICATORS,
        LAB_ALERTS,
    )
}


def entity(name: str) -> EntitySpec:
    """Look up an entity by table name."""
    try:
        return ENTITIES[name]
    except KeyError:
        raise KeyError(f"Unknown entity: {name}") from None
