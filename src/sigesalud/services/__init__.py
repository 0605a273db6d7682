"""Aggregation services, each a function of parameters and the active backend."""

from sigesalud.services.dashboard import DashboardService
from sigesalud.services.epidemiology import EpidemiologyService
from sigesalud.services.facilities import FacilityService, MapPositionLookup
from sigesalud.services.hr import HrService
from sigesalud.services.laboratory import LaboratoryService
from sigesalud.services.patients import EncounterService, PatientService
from sigesalud.services.pharmacy import PharmacyService

__all__ = [
    "DashboardService",
    "EncounterService",
    "EpidemiologyService",
    "FacilityService",
    "HrService",
    "LaboratoryService",
    "MapPositionLookup",
    "PatientService",
    "PharmacyService",
]
