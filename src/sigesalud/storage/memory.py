"""In-memory backend answering query plans from the static JSON collections."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from sigesalud.exceptions import BackendInitError, DataSourceError
from sigesalud.storage.base import Row, StorageBackend
from sigesalud.storage.catalog import ENTITIES, entity
from sigesalud.storage.files import load_all
from sigesalud.storage.query import (
    AnyOf,
    Between,
    Column,
    Compare,
    CompareFields,
    Contains,
    Eq,
    In,
    IsEmpty,
    IsNull,
    Predicate,
    Query,
    Reducer,
)

logger = logging.getLogger(__name__)

# alias -> row (None for an unmatched left join)
Env = dict[str, Row | None]

_COMPARATORS: dict[str, Callable[[Any, Any], bool]] = {
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
    "=": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
}


class MemoryBackend(StorageBackend):
    """Backend over collections held in process memory.

    Rows are indexed by primary key at initialization; foreign-key indexes are
    built the first time a plan filters or joins on a column.
    """

    name = "memory"

    def __init__(
        self,
        data_root: Path | None = None,
        hr_root: Path | None = None,
        collections: dict[str, list[Row]] | None = None,
    ) -> None:
        super().__init__()
        self.data_root = data_root
        self.hr_root = hr_root
        self._source = collections
        self._tables: dict[str, list[Row]] = {}
        self._by_id: dict[str, dict[Any, Row]] = {}
        self._indexes: dict[tuple[str, str], dict[Any, list[Row]]] = {}

    def initialize(self) -> None:
        if self._source is not None:
            loaded = {name: list(self._source.get(name, [])) for name in ENTITIES}
        elif self.data_root is not None:
            try:
                loaded = load_all(self.data_root, self.hr_root)
            except DataSourceError as e:
                raise BackendInitError(f"Cannot load {self.data_root}: {e}") from e
        else:
            loaded = {name: [] for name in ENTITIES}

        self._tables = loaded
        for name, spec in ENTITIES.items():
            if spec.primary_key:
                self._by_id[name] = {row[spec.primary_key]: row for row in loaded[name]}
        logger.info(
            "Memory backend ready: %s",
            ", ".join(f"{name}={len(rows)}" for name, rows in loaded.items() if rows),
        )

    # ── indexes ─────────────────────────────────────────────────────────

    def index(self, entity_name: str, column: str) -> dict[Any, list[Row]]:
        """Rows of ``entity_name`` grouped by ``column``, built on first use."""
        key = (entity_name, column)
        found = self._indexes.get(key)
        if found is None:
            built: dict[Any, list[Row]] = defaultdict(list)
            for row in self._tables.get(entity_name, []):
                value = row.get(column)
                if value is not None:
                    built[value].append(row)
            found = self._indexes[key] = dict(built)
        return found

    def _lookup(self, entity_name: str, column: str, value: Any) -> list[Row]:
        spec = entity(entity_name)
        if column == spec.primary_key:
            row = self._by_id.get(entity_name, {}).get(value)
            return [row] if row is not None else []
        return self.index(entity_name, column).get(value, [])

    # ── execution ───────────────────────────────────────────────────────

    def _execute(self, query: Query) -> list[Row]:
        envs = self._scan(query)
        for join in query.joins:
            envs = list(self._join(envs, query, join))
        envs = [env for env in envs if all(_holds(p, env, query) for p in query.predicates)]

        if query.aggregated:
            pairs = self._aggregate(envs, query)
        else:
            pairs = [(env, self._project(env, query)) for env in envs]

        pairs = _sort(pairs, query)
        rows = [out for _, out in pairs]
        start = query.offset or 0
        end = None if query.limit is None else start + query.limit
        return rows[start:end]

    def _scan(self, query: Query) -> list[Env]:
        """Base rows, narrowed by an index when the plan has an equality on the base entity."""
        candidates: Iterable[Row] | None = None
        for predicate in query.predicates:
            if isinstance(predicate, Eq) and predicate.value is not None:
                alias, column = query.ref(predicate.field)
                if alias == query.alias:
                    candidates = self._lookup(query.entity, column, predicate.value)
                    break
        if candidates is None:
            candidates = self._tables.get(query.entity, [])
        return [{query.alias: row} for row in candidates]

    def _join(self, envs: list[Env], query: Query, join: Any) -> Iterable[Env]:
        for env in envs:
            value = _resolve(env, join.left, query)
            matches = [] if value is None else self._lookup(join.entity, join.right, value)
            matched = False
            for right in matches:
                candidate = {**env, join.alias: right}
                if all(_holds(p, candidate, query) for p in join.conditions):
                    matched = True
                    yield candidate
            if not matched and not join.inner:
                yield {**env, join.alias: None}

    def _project(self, env: Env, query: Query) -> Row:
        columns = query.columns or (Column(f"{query.alias}.*", "*"),)
        out: Row = {}
        for column in columns:
            if column.name.endswith("*"):
                alias = column.name.split(".", 1)[0] if "." in column.name else query.alias
                row = env.get(alias)
                for name in entity(query.aliases[alias]).columns:
                    out[name] = None if row is None else row.get(name)
            else:
                out[column.label] = _resolve(env, column.name, query)
        return out

    def _aggregate(self, envs: list[Env], query: Query) -> list[tuple[Env, Row]]:
        groups: dict[tuple[Any, ...], list[Env]] = {}
        for env in envs:
            key = tuple(_resolve(env, ref, query) for ref in query.group_by)
            groups.setdefault(key, []).append(env)
        if not query.group_by and not groups:
            groups[()] = []

        labels = _group_labels(query)
        results = []
        for key, members in groups.items():
            out: Row = dict(zip(labels, key, strict=True))
            for reducer in query.reducers:
                out[reducer.label] = _reduce(reducer, members, query)
            results.append(({}, out))
        return results


# ── plan evaluation helpers ─────────────────────────────────────────────


def _resolve(env: Env, ref: str, query: Query) -> Any:
    alias, column = query.ref(ref)
    row = env.get(alias)
    return None if row is None else row.get(column)


def _holds(predicate: Predicate, env: Env, query: Query) -> bool:
    if isinstance(predicate, Eq):
        value = _resolve(env, predicate.field, query)
        return value is not None and predicate.value is not None and value == predicate.value
    if isinstance(predicate, In):
        value = _resolve(env, predicate.field, query)
        return value is not None and value in predicate.values
    if isinstance(predicate, Contains):
        term = predicate.term.lower()
        for ref in predicate.fields:
            value = _resolve(env, ref, query)
            if value is not None and term in str(value).lower():
                return True
        return False
    if isinstance(predicate, Between):
        value = _resolve(env, predicate.field, query)
        return value is not None and predicate.start <= value <= predicate.end
    if isinstance(predicate, Compare):
        value = _resolve(env, predicate.field, query)
        if value is None or predicate.value is None:
            return False
        return _COMPARATORS[predicate.op](value, predicate.value)
    if isinstance(predicate, CompareFields):
        left = _resolve(env, predicate.left, query)
        right = _resolve(env, predicate.right, query)
        if left is None or right is None:
            return False
        return _COMPARATORS[predicate.op](left, right)
    if isinstance(predicate, IsEmpty):
        value = _resolve(env, predicate.field, query)
        return value is None or value == ""
    if isinstance(predicate, IsNull):
        is_null = _resolve(env, predicate.field, query) is None
        return not is_null if predicate.negate else is_null
    if isinstance(predicate, AnyOf):
        return any(_holds(p, env, query) for p in predicate.predicates)
    raise TypeError(f"Unsupported predicate: {predicate!r}")


def _group_labels(query: Query) -> list[str]:
    """Output labels of the group-by fields, honouring ``select`` relabelling."""
    relabel = {c.name: c.label for c in query.columns}
    return [relabel.get(ref, query.ref(ref)[1]) for ref in query.group_by]


def _reduce(reducer: Reducer, members: list[Env], query: Query) -> Any:
    if reducer.field is None:
        if reducer.func != "count":
            raise ValueError(f"{reducer.func} needs a field")
        return len(members)

    values = [_resolve(env, reducer.field, query) for env in members]
    values = [v for v in values if v is not None]
    if reducer.func == "count":
        return len(values)
    if reducer.func == "count_distinct":
        return len(set(values))
    if not values:
        return None
    if reducer.func == "sum":
        return sum(values)
    if reducer.func == "avg":
        return sum(values) / len(values)
    if reducer.func == "max":
        return max(values)
    if reducer.func == "min":
        return min(values)
    raise ValueError(f"Unsupported reducer: {reducer.func}")


def _sort_value(env: Env, out: Row, key: str, query: Query) -> Any:
    if query.aggregated:
        if key in out:
            return out[key]
        labels = dict(zip(query.group_by, _group_labels(query), strict=True))
        return out[labels[key]]
    if "." not in key and key in query.output_labels():
        return out.get(key)
    return _resolve(env, key, query)


def _sort(pairs: list[tuple[Env, Row]], query: Query) -> list[tuple[Env, Row]]:
    """Stable multi-key sort; nulls first ascending, last descending."""
    ordered = list(pairs)
    for order in reversed(query.order):

        def sort_key(pair: tuple[Env, Row], key: str = order.key) -> tuple[bool, Any]:
            value = _sort_value(pair[0], pair[1], key, query)
            return (value is not None, value if value is not None else 0)

        ordered.sort(key=sort_key, reverse=order.descending)
    return ordered
