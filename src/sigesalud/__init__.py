"""SIGESALUD - health-sector reporting core with synthetic data generators."""

from dotenv import load_dotenv

from sigesalud.api import ReportingApi
from sigesalud.config import Settings
from sigesalud.exceptions import (
    BackendInitError,
    DataSourceError,
    RosterInputError,
    SigesaludError,
    UnknownOperationError,
)
from sigesalud.generators import build_encounter, generate_roster
from sigesalud.storage import get_backend, reset_backend
from sigesalud.utils import LehmerRNG, stable_hash

__version__ = "0.3.0"

# Load environment variables from .env file at package init
# This ensures SIGESALUD_* settings are available when using as a library
load_dotenv()


__all__ = [
    "__version__",
    "BackendInitError",
    "DataSourceError",
    "LehmerRNG",
    "ReportingApi",
    "RosterInputError",
    "Settings",
    "SigesaludError",
    "UnknownOperationError",
    "build_encounter",
    "generate_roster",
    "get_backend",
    "reset_backend",
    "stable_hash",
]
