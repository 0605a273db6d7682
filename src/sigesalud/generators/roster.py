"""Synthetic HR roster: workers, assignments, history and credentials."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from sigesalud.config import DEFAULT_ROSTER_SEED
from sigesalud.exceptions import RosterInputError
from sigesalud.models import (
    Assignment,
    Credential,
    Roster,
    StaffingQuota,
    Worker,
    WorkerContact,
    WorkHistory,
)
from sigesalud.utils import IDGenerator, pad, pick, seeded_rng, weighted_pick

logger = logging.getLogger(__name__)

# Sample data pools
FIRST_NAMES_M = [
    "Juan",
    "Luis",
    "Pedro",
    "Carlos",
    "Miguel",
    "Jose",
    "Andres",
    "Ramon",
    "Victor",
    "Samuel",
]
FIRST_NAMES_F = [
    "Maria",
    "Ana",
    "Carmen",
    "Luisa",
    "Elena",
    "Rosa",
    "Teresa",
    "Alicia",
    "Patricia",
    "Sonia",
]
LAST_NAMES = ["Ndong", "Nze", "Obiang", "Esono", "Ela", "Biyogo", "Abaga", "Okori", "Mba", "Nsue"]

DEPARTMENTS = [
    "CONSULTA_EXTERNA",
    "URGENCIAS",
    "MATERNIDAD",
    "LABORATORIO",
    "CIRUGIA",
    "MEDICINA_INTERNA",
]
CADRE_SPECIALTIES = {
    "MEDICO": ["MEDICINA_GENERAL", "PEDIATRIA", "GINECOLOGIA", "CIRUGIA", "MEDICINA_INTERNA"],
    "ENFERMERIA": ["ENFERMERIA_GENERAL", "OBSTETRICA", "PEDIATRICA"],
    "TECNICO": ["LABORATORIO", "RADIOLOGIA", "FARMACIA"],
    "APOYO": ["ADMINISTRATIVO", "LOGISTICA", "ADMISION"],
}
POSITION_TITLES = {
    "MEDICO": ["Medico General", "Medico Especialista"],
    "ENFERMERIA": ["Enfermera", "Enfermera Jefe"],
    "TECNICO": ["Tecnico", "Tecnico Senior"],
    "APOYO": ["Administrativo", "ApoyoLogistico"],
}
EMPLOYMENT_TYPES = [("PUBLICO", 70), ("CONTRATO", 25), ("COOPERACION", 5)]
STATUS_TYPES = [("ACTIVO", 95), ("BAJA", 2), ("TRASLADO", 2), ("JUBILADO", 1)]
LICENSE_PREFIX = {"MEDICO": "GE-MED", "ENFERMERIA": "GE-ENF", "TECNICO": "GE-TEC"}
HISTORY_ROLES = {"APOYO": "Apoyo", "ENFERMERIA": "Enfermeria", "MEDICO": "Medico"}
DEGREE_NAMES = {
    "MEDICO": "Doctor en Medicina",
    "ENFERMERIA": "Licenciatura en Enfermeria",
    "TECNICO": "Tecnico Superior",
}

# Quota field -> cadre, in generation order
QUOTA_CADRES = [
    ("doctors", "MEDICO"),
    ("nurses", "ENFERMERIA"),
    ("technicians", "TECNICO"),
    ("support_staff", "APOYO"),
]

NATIONALITY = "Guinea Ecuatorial"
EMAIL_DOMAIN = "sigesalud.ge"


@dataclass
class RosterContext:
    """State shared by every draw of one generation run."""

    rng: Callable[[], float]
    facility_ids: list[str]
    ids: IDGenerator = field(default_factory=IDGenerator)
    roster: Roster = field(default_factory=Roster)


def _draw_date(rng: Callable[[], float], first_year: int, year_span: int) -> str:
    year = first_year + math.floor(rng() * year_span)
    return _month_day(rng, year)


def _month_day(rng: Callable[[], float], year: int) -> str:
    month = pad(1 + math.floor(rng() * 12), 2)
    day = pad(1 + math.floor(rng() * 28), 2)
    return f"{year}-{month}-{day}"


def generate_roster(
    quotas: Iterable[StaffingQuota | dict[str, Any]],
    facility_ids: Sequence[str],
    seed: int = DEFAULT_ROSTER_SEED,
) -> Roster:
    """Generate the HR roster for the given staffing quotas.

    Quotas are processed in order; within a quota doctors come first, then
    nurses, technicians and support staff. The same seed and quotas always
    produce the same roster.
    """
    try:
        records = [
            q if isinstance(q, StaffingQuota) else StaffingQuota.model_validate(q) for q in quotas
        ]
    except ValueError as e:
        raise RosterInputError(f"Invalid staffing quota: {e}") from e

    ctx = RosterContext(rng=seeded_rng(seed), facility_ids=list(facility_ids))
    for record in records:
        for quota_field, cadre in QUOTA_CADRES:
            for _ in range(getattr(record, quota_field)):
                _add_worker(ctx, record.facility_id, cadre)

    roster = ctx.roster
    logger.info(
        "Generated roster: %d workers, %d assignments, %d history, %d credentials",
        len(roster.workers),
        len(roster.assignments),
        len(roster.history),
        len(roster.credentials),
    )
    return roster


def _add_worker(ctx: RosterContext, facility_id: str, cadre: str) -> None:
    """Draw one worker with its assignment, history and credentials."""
    rng = ctx.rng
    sex = "M" if rng() < 0.5 else "F"
    first = pick(rng, FIRST_NAMES_M if sex == "M" else FIRST_NAMES_F)
    last1 = pick(rng, LAST_NAMES)
    last2 = pick(rng, LAST_NAMES)
    dob = _draw_date(rng, 1965, 25)
    specialty = pick(rng, CADRE_SPECIALTIES.get(cadre, ["GENERAL"]))
    employment_type = weighted_pick(rng, EMPLOYMENT_TYPES)
    status = weighted_pick(rng, STATUS_TYPES)
    worker_id = ctx.ids.sequential("HW")
    prefix = LICENSE_PREFIX.get(cadre)
    license_number = f"{prefix}-{pad(math.floor(rng() * 99999), 5)}" if prefix else None
    phone = f"+240{pad(600000000 + math.floor(rng() * 199999999), 9)}"

    ctx.roster.workers.append(
        Worker(
            worker_id=worker_id,
            full_name=f"{first} {last1} {last2}",
            sex=sex,
            dob=dob,
            nationality=NATIONALITY,
            cadre=cadre,
            specialty=specialty,
            license_number=license_number,
            employment_type=employment_type,
            status=status,
            contact=WorkerContact(
                phone=phone,
                email=f"{first.lower()}.{last1.lower()}@{EMAIL_DOMAIN}",
            ),
        )
    )

    ctx.roster.assignments.append(
        Assignment(
            assignment_id=ctx.ids.sequential("ASG"),
            worker_id=worker_id,
            facility_id=facility_id,
            position_title=pick(rng, POSITION_TITLES.get(cadre, ["Personal"])),
            department=pick(rng, DEPARTMENTS),
            start_date=_draw_date(rng, 2021, 4),
            end_date=None,
            fte=0.5 if rng() < 0.1 else 1.0,
        )
    )

    _add_history(ctx, worker_id, facility_id, cadre)
    _add_credentials(ctx, worker_id, cadre)


def _add_history(ctx: RosterContext, worker_id: str, facility_id: str, cadre: str) -> None:
    rng = ctx.rng
    past_facilities = [fid for fid in ctx.facility_ids if fid != facility_id]
    for _ in range(math.floor(rng() * 3)):
        previous = pick(rng, past_facilities)
        start_year = 2016 + math.floor(rng() * 4)
        end_year = start_year + 1 + math.floor(rng() * 2)
        ctx.roster.history.append(
            WorkHistory(
                history_id=ctx.ids.sequential("HIS"),
                worker_id=worker_id,
                facility_id=previous,
                role=HISTORY_ROLES.get(cadre, "Tecnico"),
                start_date=_month_day(rng, start_year),
                end_date=_month_day(rng, end_year),
                notes="Rotacion previa",
            )
        )


def _add_credentials(ctx: RosterContext, worker_id: str, cadre: str) -> None:
    rng = ctx.rng
    ctx.roster.credentials.append(
        Credential(
            credential_id=ctx.ids.sequential("CRD"),
            worker_id=worker_id,
            type="TITULO",
            name=DEGREE_NAMES.get(cadre, "Administracion"),
            institution="Universidad Nacional",
            country=NATIONALITY,
            date_awarded=_draw_date(rng, 2006, 10),
            expires_on=None,
        )
    )

    if rng() < 0.25:
        credential_id = ctx.ids.sequential("CRD")
        date_awarded = _draw_date(rng, 2018, 6)
        expires_on = f"{2026 + math.floor(rng() * 3)}-12-31" if rng() < 0.3 else None
        ctx.roster.credentials.append(
            Credential(
                credential_id=credential_id,
                worker_id=worker_id,
                type="CERTIFICACION",
                name="Certificacion en servicio",
                institution="Ministerio de Salud",
                country=NATIONALITY,
                date_awarded=date_awarded,
                expires_on=expires_on,
            )
        )
