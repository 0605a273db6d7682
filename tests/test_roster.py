"""Tests for the synthetic HR roster generator and its writer."""

import json

import pytest

from sigesalud.exceptions import RosterInputError
from sigesalud.generators import generate_roster
from sigesalud.models import StaffingQuota
from sigesalud.writers import ROSTER_FILES, write_roster

QUOTAS = [
    {"facility_id": "F1", "doctors": 2, "nurses": 1, "technicians": 1, "support_staff": 1},
    {"facility_id": "F2", "doctors": 0, "nurses": 2, "technicians": 0, "support_staff": 0},
]
FACILITIES = ["F1", "F2", "F3"]


def test_roster_deterministic():
    """Test that the same seed and quotas give the same roster."""
    first = generate_roster(QUOTAS, FACILITIES, seed=20250108)
    second = generate_roster(QUOTAS, FACILITIES, seed=20250108)

    assert first.model_dump() == second.model_dump()


def test_roster_seed_changes_output():
    """Test that another seed draws other workers."""
    first = generate_roster(QUOTAS, FACILITIES, seed=1)
    second = generate_roster(QUOTAS, FACILITIES, seed=2)

    assert [w.full_name for w in first.workers] != [w.full_name for w in second.workers]


def test_roster_follows_quota_order():
    """Test cadre order within a quota and sequential ids."""
    roster = generate_roster(QUOTAS, FACILITIES, seed=7)

    assert [w.cadre for w in roster.workers] == [
        "MEDICO",
        "MEDICO",
        "ENFERMERIA",
        "TECNICO",
        "APOYO",
        "ENFERMERIA",
        "ENFERMERIA",
    ]
    assert [w.worker_id for w in roster.workers] == [f"HW_{n:06d}" for n in range(1, 8)]
    assert [a.assignment_id for a in roster.assignments] == [f"ASG_{n:06d}" for n in range(1, 8)]


def test_roster_assignments_are_current():
    """Test one open assignment per worker at the quota facility."""
    roster = generate_roster(QUOTAS, FACILITIES, seed=7)

    by_worker = {a.worker_id: a for a in roster.assignments}
    assert len(by_worker) == len(roster.workers)
    for worker in roster.workers[:5]:
        assert by_worker[worker.worker_id].facility_id == "F1"
    for worker in roster.workers[5:]:
        assert by_worker[worker.worker_id].facility_id == "F2"
    assert all(a.end_date is None for a in roster.assignments)
    assert all(a.fte in (0.5, 1.0) for a in roster.assignments)


def test_roster_worker_fields():
    """Test licence prefixes, contacts and drawn categories."""
    roster = generate_roster(QUOTAS, FACILITIES, seed=99)

    for worker in roster.workers:
        assert worker.sex in ("M", "F")
        assert worker.employment_type in ("PUBLICO", "CONTRATO", "COOPERACION")
        assert worker.status in ("ACTIVO", "BAJA", "TRASLADO", "JUBILADO")
        assert worker.contact.phone.startswith("+240")
        assert len(worker.contact.phone) == 13
        assert worker.contact.email.endswith("@sigesalud.ge")
        assert 1965 <= int(worker.dob[:4]) < 1990

    licences = {w.cadre: w.license_number for w in roster.workers}
    assert licences["MEDICO"].startswith("GE-MED-")
    assert licences["ENFERMERIA"].startswith("GE-ENF-")
    assert licences["TECNICO"].startswith("GE-TEC-")
    assert licences["APOYO"] is None


def test_roster_history_excludes_current_facility():
    """Test that past postings never point at the current facility."""
    roster = generate_roster(QUOTAS, FACILITIES, seed=11)
    current = {a.worker_id: a.facility_id for a in roster.assignments}

    for entry in roster.history:
        assert entry.facility_id != current[entry.worker_id]
        assert entry.start_date < entry.end_date
        assert entry.notes == "Rotacion previa"


def test_roster_history_without_other_facilities():
    """Test that a single-facility country leaves history unattached."""
    roster = generate_roster([{"facility_id": "F1", "doctors": 3}], ["F1"], seed=5)

    assert all(entry.facility_id is None for entry in roster.history)


def test_roster_credentials():
    """Test that every worker holds a degree first, certifications optional."""
    roster = generate_roster(QUOTAS, FACILITIES, seed=3)

    degrees = [c for c in roster.credentials if c.type == "TITULO"]
    assert [c.worker_id for c in degrees] == [w.worker_id for w in roster.workers]
    assert all(c.expires_on is None for c in degrees)

    for cert in (c for c in roster.credentials if c.type == "CERTIFICACION"):
        assert cert.institution == "Ministerio de Salud"
        assert cert.expires_on is None or cert.expires_on.endswith("-12-31")


def test_roster_accepts_models():
    """Test that validated quota models are accepted as-is."""
    roster = generate_roster([StaffingQuota(facility_id="F9", nurses=1)], ["F9"], seed=1)

    assert len(roster.workers) == 1
    assert roster.assignments[0].facility_id == "F9"


def test_roster_rejects_bad_quota():
    """Test that unusable quota input raises RosterInputError."""
    with pytest.raises(RosterInputError):
        generate_roster([{"facility_id": "F1", "doctors": -1}], FACILITIES)

    with pytest.raises(RosterInputError):
        generate_roster([{"doctors": 1}], FACILITIES)


def test_write_roster(tmp_path):
    """Test versioned documents, one per roster stream."""
    roster = generate_roster(QUOTAS, FACILITIES, seed=20250108)
    paths = write_roster(roster, tmp_path / "hr")

    assert [p.name for p in paths] == list(ROSTER_FILES.values())
    workers = json.loads((tmp_path / "hr" / "hr.workers.json").read_text(encoding="utf-8"))
    assert workers["version"] == "v1"
    assert len(workers["workers"]) == len(roster.workers)
    assert workers["workers"][0]["contact"]["email"].endswith("@sigesalud.ge")


def test_write_roster_byte_identical(tmp_path):
    """Test that reruns with the same seed produce identical files."""
    write_roster(generate_roster(QUOTAS, FACILITIES, seed=42), tmp_path / "a")
    write_roster(generate_roster(QUOTAS, FACILITIES, seed=42), tmp_path / "b")

    for name in ROSTER_FILES.values():
        assert (tmp_path / "a" / name).read_bytes() == (tmp_path / "b" / name).read_bytes()
