"""Deterministic synthetic data generators."""

from sigesalud.generators.encounter import build_encounter
from sigesalud.generators.roster import generate_roster

__all__ = ["build_encounter", "generate_roster"]
