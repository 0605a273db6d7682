"""Backend-neutral query plans.

A :class:`Query` describes one read against the store: a base entity, optional
joins, filter predicates, an optional group-by with reducers, ordering and a
limit/offset window. Each backend compiles or interprets the same plan, so
services never branch on the physical representation.

Field references are ``"alias.column"`` strings; a bare ``"column"`` refers
to the base entity. NULL handling follows SQL: a comparison involving a null
value is false, sums over only-null values are null, an aggregate without a
group-by yields exactly one row, and nulls sort first ascending and last
descending.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Literal

CompareOp = Literal["<", "<=", ">", ">=", "=", "!="]
ReduceFunc = Literal["sum", "count", "count_distinct", "max", "min", "avg"]

COMPARE_OPS: tuple[str, ...] = ("<", "<=", ">", ">=", "=", "!=")


class Predicate:
    """Marker base class for filter predicates."""


@dataclass(frozen=True)
class Eq(Predicate):
    """``field = value``."""

    field: str
    value: Any


@dataclass(frozen=True)
class In(Predicate):
    """``field IN values``; an empty value list matches nothing."""

    field: str
    values: tuple[Any, ...]


@dataclass(frozen=True)
class Contains(Predicate):
    """Case-insensitive substring match against any of ``fields``."""

    fields: tuple[str, ...]
    term: str


@dataclass(frozen=True)
class Between(Predicate):
    """Inclusive ``start <= field <= end``."""

    field: str
    start: Any
    end: Any


@dataclass(frozen=True)
class Compare(Predicate):
    """``field <op> value``."""

    field: str
    op: CompareOp
    value: Any


@dataclass(frozen=True)
class CompareFields(Predicate):
    """``left <op> right`` between two fields of the same row."""

    left: str
    op: CompareOp
    right: str


@dataclass(frozen=True)
class IsEmpty(Predicate):
    """Field is null or the empty string."""

    field: str


@dataclass(frozen=True)
class IsNull(Predicate):
    """Field is null; with ``negate`` the field is not null."""

    field: str
    negate: bool = False


@dataclass(frozen=True)
class AnyOf(Predicate):
    """Disjunction of predicates."""

    predicates: tuple[Predicate, ...]


@dataclass(frozen=True)
class Join:
    """Join ``entity AS alias ON left = alias.right`` plus right-side conditions."""

    entity: str
    alias: str
    left: str
    right: str
    conditions: tuple[Predicate, ...] = ()
    inner: bool = False


@dataclass(frozen=True)
class Reducer:
    """Aggregate function over a field; ``count`` with no field counts rows."""

    func: ReduceFunc
    field: str | None
    label: str


@dataclass(frozen=True)
class OrderBy:
    """Sort key: an output label or a field reference."""

    key: str
    descending: bool = False


@dataclass(frozen=True)
class Column:
    """Projected column; ``name`` ending in ``*`` expands to all columns of an alias."""

    name: str
    label: str


def split_ref(ref: str, default_alias: str) -> tuple[str, str]:
    """Split ``"alias.column"`` into its parts, defaulting the alias."""
    if "." in ref:
        alias, column = ref.split(".", 1)
        return alias, column
    return default_alias, ref


def parse_column(spec: str) -> Column:
    """Parse ``"a.col"``, ``"a.col AS label"`` or ``"a.*"``."""
    name, sep, label = spec.partition(" AS ")
    name = name.strip()
    if sep:
        return Column(name, label.strip())
    return Column(name, name.rsplit(".", 1)[-1])


@dataclass(frozen=True)
class Query:
    """Immutable query plan; builder methods return new plans."""

    entity: str
    alias: str = "t"
    joins: tuple[Join, ...] = ()
    predicates: tuple[Predicate, ...] = ()
    columns: tuple[Column, ...] = ()
    group_by: tuple[str, ...] = ()
    reducers: tuple[Reducer, ...] = ()
    order: tuple[OrderBy, ...] = ()
    limit: int | None = None
    offset: int = 0
    aggregated: bool = field(default=False)

    # ── filter ──────────────────────────────────────────────────────────

    def where(self, *predicates: Predicate, **equals: Any) -> Query:
        """Add predicates; keyword arguments are equality tests on base columns."""
        extra = list(predicates)
        extra.extend(Eq(name, value) for name, value in equals.items())
        return replace(self, predicates=self.predicates + tuple(extra))

    def filter(self, **equals: Any) -> Query:
        """Equality filter skipping ``None`` values, for optional UI filters."""
        return self.where(*(Eq(ref, value) for ref, value in equals.items() if value is not None))

    def equals(self, ref: str, value: Any) -> Query:
        """Equality on a (possibly joined) field; ``None`` leaves the plan unchanged."""
        if value is None:
            return self
        return self.where(Eq(ref, value))

    def search(self, term: str | None, *fields: str) -> Query:
        """Case-insensitive substring search over ``fields``; blank terms are ignored."""
        if term is None or not term.strip():
            return self
        return self.where(Contains(tuple(fields), term.strip()))

    # ── date window ─────────────────────────────────────────────────────

    def date_window(self, ref: str, start: str, end: str) -> Query:
        """Keep rows whose ``ref`` falls in ``[start, end]``."""
        return self.where(Between(ref, start, end))

    # ── join ────────────────────────────────────────────────────────────

    def join(
        self,
        entity: str,
        alias: str,
        on: tuple[str, str],
        *conditions: Predicate,
        inner: bool = False,
    ) -> Query:
        """Left join (or inner join) ``entity`` on ``left_ref = alias.right_column``."""
        left, right = on
        joined = Join(entity, alias, left, right, tuple(conditions), inner)
        return replace(self, joins=self.joins + (joined,))

    # ── aggregate ───────────────────────────────────────────────────────

    def aggregate(self, *group_by: str, **reducers: tuple[str, str | None]) -> Query:
        """Group by field references and compute ``label=(func, field)`` reducers."""
        built = tuple(Reducer(func, ref, label) for label, (func, ref) in reducers.items())  # type: ignore[arg-type]
        return replace(
            self,
            group_by=self.group_by + tuple(group_by),
            reducers=self.reducers + built,
            aggregated=True,
        )

    # ── top N ───────────────────────────────────────────────────────────

    def order_by(self, *keys: str) -> Query:
        """Append sort keys; a leading ``-`` sorts descending."""
        parsed = tuple(OrderBy(k[1:], True) if k.startswith("-") else OrderBy(k) for k in keys)
        return replace(self, order=self.order + parsed)

    def top_n(self, n: int | None, *keys: str) -> Query:
        """Order by ``keys`` and keep the first ``n`` rows."""
        return self.order_by(*keys).take(n, self.offset)

    def take(self, limit: int | None, offset: int = 0) -> Query:
        """Set the limit/offset window.

        Negative values raise ``ValueError``.
        """
        if limit is not None and limit < 0:
            raise ValueError(f"limit must be >= 0, got {limit}")
        if offset < 0:
            raise ValueError(f"offset must be >= 0, got {offset}")
        return replace(self, limit=limit, offset=offset)

    # ── projection ──────────────────────────────────────────────────────

    def select(self, *specs: str) -> Query:
        """Project columns: ``"a.col"``, ``"a.col AS label"`` or ``"a.*"``."""
        return replace(self, columns=self.columns + tuple(parse_column(s) for s in specs))

    # ── introspection ───────────────────────────────────────────────────

    @property
    def aliases(self) -> dict[str, str]:
        """Alias -> entity for the base entity and every join."""
        found = {self.alias: self.entity}
        for join in self.joins:
            found[join.alias] = join.entity
        return found

    def ref(self, ref: str) -> tuple[str, str]:
        """Resolve a field reference to ``(alias, column)``."""
        return split_ref(ref, self.alias)

    def output_labels(self) -> set[str]:
        """Labels of reducers and projected columns."""
        labels = {r.label for r in self.reducers}
        labels.update(c.label for c in self.columns if not c.name.endswith("*"))
        return labels
