"""On-demand clinical notes and vitals derived from a visit's identity.

Nothing produced here is stored: the same visit always yields the same notes
and vitals because every value comes from :func:`~sigesalud.utils.stable_hash`
of the visit id.
"""

from __future__ import annotations

from typing import Any, NamedTuple

from sigesalud.models import (
    ClinicalNote,
    EncounterDetail,
    EncounterSummary,
    Visit,
    Vitals,
)
from sigesalud.utils import round_to, stable_hash

ADMISSION_OUTCOME = "INGRESO"
EMERGENCY_SERVICE = "URGENCIAS"
NOTE_AUTHOR = "system_generated"
VITALS_THRESHOLD = 65


class NoteSpec(NamedTuple):
    note_type: str
    suffix: str


class NoteTemplate(NamedTuple):
    chief: str
    assessment: str
    plan: str


_INGRESO = NoteSpec("SOAP", "Ingreso")
_EVOLUCION = NoteSpec("EVOLUCION", "Evolucion")
_ALTA = NoteSpec("ALTA", "Alta")
_URGENCIAS = NoteSpec("EVOLUCION", "Urgencias")
_CONSULTA = NoteSpec("SOAP", "Consulta")
_SEGUIMIENTO = NoteSpec("EVOLUCION", "Seguimiento")

# (upper bound of base bucket, notes); first bucket with base < bound wins
ADMISSION_NOTES: list[tuple[int, tuple[NoteSpec, ...]]] = [
    (50, (_INGRESO, _EVOLUCION, _ALTA)),
    (80, (_INGRESO, _EVOLUCION)),
    (100, (_INGRESO,)),
]
EMERGENCY_NOTES: list[tuple[int, tuple[NoteSpec, ...]]] = [
    (70, (_URGENCIAS,)),
    (100, ()),
]
AMBULATORY_NOTES: list[tuple[int, tuple[NoteSpec, ...]]] = [
    (70, (_CONSULTA,)),
    (80, (_CONSULTA, _SEGUIMIENTO)),
    (100, ()),
]

NOTE_TEMPLATES = {
    "MALARIA": NoteTemplate(
        "Fiebre y escalofrios",
        "Sospecha de malaria",
        "Prueba rapida, antipaludico y control en 48h",
    ),
    "ETI_IRA": NoteTemplate(
        "Tos y rinorrea",
        "Infeccion respiratoria aguda",
        "Sintomaticos y signos de alarma",
    ),
    "DIARREA": NoteTemplate(
        "Diarrea aguda",
        "Deshidratacion leve",
        "SRO, dieta y control en 24h",
    ),
    "TB": NoteTemplate(
        "Tos cronica",
        "Probable TB",
        "Derivar al programa TB y solicitar pruebas",
    ),
    "HIV": NoteTemplate(
        "Control VIH",
        "VIH en seguimiento",
        "Consejeria, pruebas y seguimiento",
    ),
}
DEFAULT_TEMPLATE = NoteTemplate(
    "Consulta general",
    "Evaluacion clinica",
    "Indicaciones generales y control",
)

# field -> (hash suffix, offset, modulus, divisor)
VITAL_RULES: dict[str, tuple[str, int, int, int]] = {
    "bp_sys": ("_bp", 100, 35, 1),
    "bp_dia": ("_bp", 60, 20, 1),
    "temp_c": ("_temp", 36, 30, 10),
    "hr": ("_hr", 60, 45, 1),
    "rr": ("_rr", 12, 8, 1),
    "spo2": ("_spo2", 92, 7, 1),
    "weight_kg": ("_wt", 50, 45, 1),
    "height_cm": ("_ht", 150, 35, 1),
}


def note_table(visit: Visit) -> list[tuple[int, tuple[NoteSpec, ...]]]:
    """Decision table that applies to the visit's outcome and service."""
    if visit.outcome == ADMISSION_OUTCOME:
        return ADMISSION_NOTES
    if visit.service == EMERGENCY_SERVICE:
        return EMERGENCY_NOTES
    return AMBULATORY_NOTES


def select_notes(visit: Visit, base: int) -> tuple[NoteSpec, ...]:
    """Note kinds to generate for a visit whose hash bucket is ``base``."""
    for bound, notes in note_table(visit):
        if base < bound:
            return notes
    return ()


def note_template(diagnosis_id: str | None) -> NoteTemplate:
    """Clinical text template for a diagnosis, falling back to a general consult."""
    if diagnosis_id is None:
        return DEFAULT_TEMPLATE
    return NOTE_TEMPLATES.get(diagnosis_id, DEFAULT_TEMPLATE)


def build_notes(visit: Visit, base: int) -> list[ClinicalNote]:
    template = note_template(visit.diagnosis_id)
    created_at = f"{visit.date}T0{8 + base % 4}:00:00Z"
    return [
        ClinicalNote(
            note_id=f"NOTE_{visit.visit_id}_{idx}",
            encounter_id=visit.visit_id,
            patient_id=visit.patient_id,
            note_type=spec.note_type,
            chief_complaint=template.chief,
            subjective=f"{template.chief}. {spec.suffix}.",
            objective=f"TA normal, sin signos de alarma. Servicio: {visit.service}.",
            assessment=template.assessment,
            plan=template.plan,
            created_at=created_at,
            created_by=NOTE_AUTHOR,
            is_signed=1,
        )
        for idx, spec in enumerate(select_notes(visit, base), start=1)
    ]


def build_vitals(visit_id: str) -> Vitals:
    """Vital signs derived field by field from hashes of the visit id."""
    values: dict[str, Any] = {}
    for name, (suffix, offset, modulus, divisor) in VITAL_RULES.items():
        h = stable_hash(f"{visit_id}{suffix}")
        if divisor == 1:
            values[name] = offset + h % modulus
        else:
            values[name] = round_to(offset + (h % modulus) / divisor, 1)
    return Vitals(vital_id=f"VITAL_{visit_id}", encounter_id=visit_id, **values)


def build_encounter(visit: Visit | dict[str, Any], facility_name: str | None) -> EncounterDetail:
    """Compose an encounter with its generated notes and optional vitals."""
    if not isinstance(visit, Visit):
        visit = Visit.model_validate(visit)

    base = stable_hash(visit.visit_id) % 100
    return EncounterDetail(
        encounter=EncounterSummary(**visit.model_dump(), facility_name=facility_name),
        notes=build_notes(visit, base),
        vitals=build_vitals(visit.visit_id) if base < VITALS_THRESHOLD else None,
    )
