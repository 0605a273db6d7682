"""Helpers shared by the aggregation services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any

from sigesalud.models import FacilityFilters, Scope
from sigesalud.storage.base import StorageBackend
from sigesalud.storage.query import Contains, Eq, IsEmpty, Query
from sigesalud.utils import to_iso, utc_today, window_start

FACILITY_SEARCH_FIELDS = ("name", "city", "district")


@dataclass(frozen=True)
class Period:
    """A reporting period: days looked back from the window end and nominal length."""

    days_back: int
    nominal_days: int


DASHBOARD_PERIODS = {
    "today": Period(0, 1),
    "hoy": Period(0, 1),
    "7d": Period(6, 7),
    "30d": Period(29, 30),
}
LAB_PERIODS = {
    "yesterday": Period(0, 1),
    "ayer": Period(0, 1),
    "7d": Period(6, 7),
    "30d": Period(29, 30),
}


def resolve_period(periods: dict[str, Period], name: str | None, default: str) -> Period:
    """Look up a period by name; unknown names fall back to the 30-day window."""
    if name is None:
        return periods[default]
    return periods.get(name.lower(), periods["30d"])


@dataclass(frozen=True)
class Window:
    """Inclusive ISO date range."""

    start: str
    end: str

    @classmethod
    def ending(cls, end: str, period: Period) -> Window:
        return cls(window_start(end, period.days_back), end)


class Service:
    """Base for services: a backend plus an injectable notion of today."""

    def __init__(self, backend: StorageBackend, today: date | None = None) -> None:
        self.backend = backend
        self._today = today

    @property
    def today(self) -> date:
        return self._today or utc_today()

    @property
    def today_iso(self) -> str:
        return to_iso(self.today)


def apply_facility_filters(query: Query, filters: FacilityFilters, alias: str) -> Query:
    """Constrain ``alias`` (a facilities row) by region, type and search term."""
    prefix = f"{alias}." if alias else ""
    if filters.region is not None:
        query = query.where(Eq(f"{prefix}region", filters.region))
    if filters.type is not None:
        query = query.where(Eq(f"{prefix}facility_type", filters.type))
    if filters.search is not None:
        query = query.where(
            Contains(tuple(f"{prefix}{field}" for field in FACILITY_SEARCH_FIELDS), filters.search)
        )
    return query


def apply_scope(query: Query, scope: Scope, alias: str = "f") -> Query:
    """Constrain the facility alias to the scope's province or district."""
    if scope.field is None:
        return query
    return query.where(Eq(f"{alias}.{scope.field}", scope.id))


def open_assignment_join(query: Query, worker_ref: str = "w.worker_id", alias: str = "a") -> Query:
    """Left join the worker's current assignment (``end_date`` null or empty)."""
    return query.join(
        "worker_assignments",
        alias,
        (worker_ref, "worker_id"),
        IsEmpty(f"{alias}.end_date"),
    )


def first_n(rows: list[Any], limit: int | None) -> list[Any]:
    """Leading ``limit`` rows of an in-process result, with :meth:`Query.take` semantics."""
    if limit is None:
        return rows
    if limit < 0:
        raise ValueError(f"limit must be >= 0, got {limit}")
    return rows[:limit]
