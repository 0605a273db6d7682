"""Headline indicators for the dashboard."""

from __future__ import annotations

import logging
from typing import Any

from sigesalud.models import FacilityFilters
from sigesalud.services._common import (
    DASHBOARD_PERIODS,
    FACILITY_SEARCH_FIELDS,
    Service,
    Window,
    apply_facility_filters,
    resolve_period,
)
from sigesalud.storage.query import AnyOf, CompareFields, Contains, Eq, Query
from sigesalud.utils import round_half_up

logger = logging.getLogger(__name__)

DEATH_MARKER = "DEF"
SUSPECTED_FLOOR = 6
SUSPECTED_SHARE = 0.08
VISITS_PER_FACILITY = 35
OCCUPANCY_CAP = 95


def empty_summary() -> dict[str, Any]:
    """Zeroed summary returned when the dashboard cannot be computed."""
    return {
        "visits": 0,
        "suspected": 0,
        "alerts": 0,
        "occupancyRate": 0,
        "stockouts": 0,
        "mortalityRate": 0,
        "startDate": None,
        "endDate": None,
    }


class DashboardService(Service):
    """Visit, case, alert, stock and occupancy indicators for a period."""

    def summary(self, period: str | None = "7d", filters: FacilityFilters | None = None) -> dict[str, Any]:
        filters = filters or FacilityFilters()
        window = self.window(period)

        visits_query = self._visits(window, filters)
        visits = self.backend.count("visits", visits_query)
        deaths = self.backend.count(
            "visits", visits_query.where(Contains(("v.outcome",), DEATH_MARKER))
        )
        suspected = self.suspected_cases(window, filters, visits)
        facility_count = self.backend.count(
            "facilities", apply_facility_filters(Query("facilities", "f"), filters, "f")
        )

        return {
            "visits": visits,
            "suspected": suspected,
            "alerts": self.alert_count(filters),
            "occupancyRate": occupancy_rate(visits, facility_count),
            "stockouts": self.stockouts(filters),
            "mortalityRate": mortality_rate(deaths, visits),
            "startDate": window.start,
            "endDate": window.end,
        }

    def window(self, period: str | None) -> Window:
        """Period window ending at the latest visit date (today when there are none)."""
        end = self.backend.max_value("visits", "date") or self.today_iso
        return Window.ending(end, resolve_period(DASHBOARD_PERIODS, period, "7d"))

    def _visits(self, window: Window, filters: FacilityFilters) -> Query:
        query = (
            Query("visits", "v")
            .join("facilities", "f", ("v.facility_id", "facility_id"))
            .date_window("v.date", window.start, window.end)
        )
        return apply_facility_filters(query, filters, "f")

    def suspected_cases(self, window: Window, filters: FacilityFilters, visits: int) -> int:
        """Epidemiological cases in the window, with a floor when none are recorded."""
        query = (
            Query("epi_weekly", "e")
            .date_window("e.week_start", window.start, window.end)
            .equals("e.region", filters.region)
        )
        total = self.backend.scalar(query.aggregate(total=("sum", "e.cases")), "total") or 0
        if total == 0:
            return max(SUSPECTED_FLOOR, round_half_up(visits * SUSPECTED_SHARE))
        return total

    def alert_count(self, filters: FacilityFilters) -> int:
        """Alerts whose own region or scoped facility matches the filters."""
        query = Query("alerts", "a").join("facilities", "f", ("a.scope_id", "facility_id"))
        if filters.region is not None:
            query = query.where(AnyOf((Eq("a.region", filters.region), Eq("f.region", filters.region))))
        if filters.type is not None:
            query = query.where(Eq("f.facility_type", filters.type))
        if filters.search is not None:
            query = query.where(
                Contains(tuple(f"f.{field}" for field in FACILITY_SEARCH_FIELDS), filters.search)
            )
        return self.backend.count("alerts", query)

    def stockouts(self, filters: FacilityFilters) -> int:
        """Facilities with at least one item at or below its minimum in the latest month."""
        latest = self.backend.max_value("stock_levels_monthly", "month")
        if not latest:
            return 0
        query = (
            Query("stock_levels_monthly", "s")
            .join("facilities", "f", ("s.facility_id", "facility_id"))
            .where(Eq("s.month", latest), CompareFields("s.stock_on_hand", "<=", "s.min_level"))
        )
        query = apply_facility_filters(query, filters, "f")
        total = self.backend.scalar(
            query.aggregate(total=("count_distinct", "s.facility_id")), "total"
        )
        return int(total or 0)


def mortality_rate(deaths: int, visits: int) -> int:
    """Deaths per hundred visits, 0 without visits."""
    if visits <= 0:
        return 0
    return round_half_up(deaths / visits * 100)


def occupancy_rate(visits: int, facility_count: int) -> int:
    """Bed occupancy estimate capped at 95%."""
    if facility_count <= 0:
        return 0
    return min(OCCUPANCY_CAP, round_half_up(visits / (facility_count * VISITS_PER_FACILITY) * 100))
