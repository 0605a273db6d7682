"""Tests for the patient list, visit timeline and encounter detail."""

from sigesalud.models import PatientFilters
from sigesalud.services import EncounterService, PatientService


def test_patient_list(backend, today):
    """Test the first page with derived visit statistics."""
    result = PatientService(backend, today).list()

    assert result["total"] == 4
    assert [r["patient_id"] for r in result["rows"]] == ["P1", "P2", "P4", "P3"]
    ana = result["rows"][0]
    assert ana["facility_name"] == "Hospital Regional Bata"
    assert ana["visits_count"] == 2
    assert ana["last_visit"] == "2025-03-14"
    rosa = result["rows"][3]
    assert (rosa["visits_count"], rosa["last_visit"]) == (2, "2025-03-12")


def test_patient_list_filters(backend, today):
    """Test search, sex filter and pagination."""
    service = PatientService(backend, today)

    found = service.list(PatientFilters(search="esono"))
    assert found["total"] == 1
    assert found["rows"][0]["patient_id"] == "P3"

    assert [r["patient_id"] for r in service.list(PatientFilters(search="p4"))["rows"]] == ["P4"]
    assert [r["patient_id"] for r in service.list(PatientFilters(search="ÑSUE"))["rows"]] == ["P4"]

    women = service.list(PatientFilters(sex="F"))
    assert women["total"] == 2
    assert [r["patient_id"] for r in women["rows"]] == ["P1", "P3"]

    page = service.list(PatientFilters(limit=2, offset=1))
    assert page["total"] == 4
    assert [r["patient_id"] for r in page["rows"]] == ["P2", "P4"]


def test_patient_list_no_match(backend, today):
    """Test an empty page."""
    assert PatientService(backend, today).list(PatientFilters(search="zzz")) == {"total": 0, "rows": []}


def test_patient_timeline(backend, today):
    """Test visits newest first with facility names."""
    service = PatientService(backend, today)

    timeline = service.timeline("P1")
    assert [v["visit_id"] for v in timeline] == ["V1", "V2"]
    assert timeline[1]["outcome"] == "DEFUNCION"
    assert timeline[0]["facility_name"] == "Hospital Regional Bata"
    assert [v["visit_id"] for v in service.timeline("P1", limit=1)] == ["V1"]
    assert service.timeline(None) == []


def test_encounter_detail(backend, today):
    """Test the encounter with generated notes, stable across calls."""
    service = EncounterService(backend, today)

    detail = service.detail("V3")
    assert detail["encounter"]["visit_id"] == "V3"
    assert detail["encounter"]["facility_name"] == "Hospital Regional Bata"
    assert detail["encounter"]["outcome"] == "INGRESO"
    # Admissions always open with an intake note
    assert detail["notes"][0]["subjective"] == "Diarrea aguda. Ingreso."
    assert detail["notes"][0]["note_id"] == "NOTE_V3_1"
    assert service.detail("V3") == detail


def test_encounter_detail_unknown(backend, today):
    """Test the empty detail for unknown or missing ids."""
    service = EncounterService(backend, today)
    empty = {"encounter": None, "notes": [], "vitals": None}

    assert service.detail("nope") == empty
    assert service.detail(None) == empty
