"""Tests for generated clinical notes and vitals."""

import pytest

from sigesalud.generators import build_encounter
from sigesalud.generators.encounter import (
    DEFAULT_TEMPLATE,
    NOTE_AUTHOR,
    NOTE_TEMPLATES,
    build_vitals,
    note_template,
    select_notes,
)
from sigesalud.models import Visit
from sigesalud.utils import stable_hash


def _visit(**overrides) -> Visit:
    data = {
        "visit_id": "V1",
        "patient_id": "P1",
        "facility_id": "F1",
        "date": "2025-03-14",
        "service": "CONSULTA_EXTERNA",
        "diagnosis_id": "MALARIA",
        "diagnosis_code": "B54",
        "outcome": "ALTA",
    }
    data.update(overrides)
    return Visit(**data)


@pytest.mark.parametrize(
    ("base", "expected"),
    [(0, ["Ingreso", "Evolucion", "Alta"]), (49, ["Ingreso", "Evolucion", "Alta"]), (50, ["Ingreso", "Evolucion"]), (80, ["Ingreso"]), (99, ["Ingreso"])],
)
def test_admission_notes(base, expected):
    """Test the admission decision table."""
    visit = _visit(outcome="INGRESO", service="URGENCIAS")
    assert [spec.suffix for spec in select_notes(visit, base)] == expected


@pytest.mark.parametrize(("base", "count"), [(0, 1), (69, 1), (70, 0), (99, 0)])
def test_emergency_notes(base, count):
    """Test the emergency decision table."""
    notes = select_notes(_visit(service="URGENCIAS"), base)
    assert len(notes) == count
    assert all(spec.suffix == "Urgencias" for spec in notes)


@pytest.mark.parametrize(("base", "expected"), [(10, ["Consulta"]), (75, ["Consulta", "Seguimiento"]), (85, [])])
def test_ambulatory_notes(base, expected):
    """Test the outpatient decision table."""
    assert [spec.suffix for spec in select_notes(_visit(), base)] == expected


def test_note_template_fallback():
    """Test diagnosis templates and the general consult fallback."""
    assert note_template("TB") == NOTE_TEMPLATES["TB"]
    assert note_template("DIABETES") == DEFAULT_TEMPLATE
    assert note_template(None) == DEFAULT_TEMPLATE


def test_build_encounter_idempotent():
    """Test that the same visit always yields the same detail."""
    visit = _visit(visit_id="VIS_000123", outcome="INGRESO")

    first = build_encounter(visit, "Hospital Regional Bata").model_dump_json()
    second = build_encounter(visit.model_dump(), "Hospital Regional Bata").model_dump_json()

    assert first == second


@pytest.mark.parametrize("visit_id", ["V1", "V2", "V3", "VIS_000123", "VIS_000456", "ENC-9"])
def test_build_encounter_notes_and_vitals(visit_id):
    """Test note numbering, authorship and the vitals threshold."""
    visit = _visit(visit_id=visit_id)
    detail = build_encounter(visit, "Hospital Regional Bata")
    base = stable_hash(visit_id) % 100

    assert detail.encounter.visit_id == visit_id
    assert detail.encounter.facility_name == "Hospital Regional Bata"
    assert [n.note_id for n in detail.notes] == [
        f"NOTE_{visit_id}_{i}" for i in range(1, len(detail.notes) + 1)
    ]
    for note in detail.notes:
        assert note.created_by == NOTE_AUTHOR
        assert note.is_signed == 1
        assert note.created_at == f"2025-03-14T0{8 + base % 4}:00:00Z"
        assert note.chief_complaint == "Fiebre y escalofrios"
        assert note.objective.endswith("Servicio: CONSULTA_EXTERNA.")

    if base < 65:
        assert detail.vitals is not None
        assert detail.vitals.vital_id == f"VITAL_{visit_id}"
    else:
        assert detail.vitals is None


def test_build_vitals_ranges():
    """Test that each vital sign stays within its band."""
    for n in range(40):
        vitals = build_vitals(f"VIS_{n:06d}")
        assert 100 <= vitals.bp_sys < 135
        assert 60 <= vitals.bp_dia < 80
        assert 36.0 <= vitals.temp_c < 39.0
        assert 60 <= vitals.hr < 105
        assert 12 <= vitals.rr < 20
        assert 92 <= vitals.spo2 < 99
        assert 50 <= vitals.weight_kg < 95
        assert 150 <= vitals.height_cm < 185


def test_build_vitals_values():
    """Test the hash-derived values directly."""
    vitals = build_vitals("V1")

    assert vitals.bp_sys == 100 + stable_hash("V1_bp") % 35
    assert vitals.bp_dia == 60 + stable_hash("V1_bp") % 20
    assert vitals.spo2 == 92 + stable_hash("V1_spo2") % 7
