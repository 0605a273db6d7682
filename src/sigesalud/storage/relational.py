"""Relational backend: query plans compiled to SQLAlchemy Core statements."""

from __future__ import annotations

import logging
import operator
from typing import Any

from sqlalchemy import and_, create_engine, distinct, event, false, func, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import ColumnElement, Select

from sigesalud.exceptions import BackendInitError
from sigesalud.storage.base import Row, StorageBackend
from sigesalud.storage.catalog import entity
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
from sigesalud.storage.schema import TABLES, Base

logger = logging.getLogger(__name__)

_OPERATORS = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "=": operator.eq,
    "!=": operator.ne,
}


class RelationalBackend(StorageBackend):
    """Backend over a SQL database reached through SQLAlchemy."""

    name = "relational"

    def __init__(
        self,
        database_url: str = "sqlite:///sigesalud-demo.sqlite",
        engine: Engine | None = None,
        create_schema: bool = True,
    ) -> None:
        super().__init__()
        self.database_url = database_url
        self.create_schema = create_schema
        self._engine = engine

    @property
    def engine(self) -> Engine:
        self.ensure_ready()
        assert self._engine is not None
        return self._engine

    def initialize(self) -> None:
        try:
            if self._engine is None:
                self._engine = create_engine(self.database_url)
            if self._engine.dialect.name == "sqlite":
                event.listen(self._engine, "connect", _register_sqlite_functions)
            if self.create_schema:
                Base.metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            raise BackendInitError(f"Cannot open database {self.database_url}: {e}") from e
        logger.info("Relational backend ready: %s", self._engine.url.render_as_string(hide_password=True))

    def _execute(self, query: Query) -> list[Row]:
        statement = compile_query(query)
        assert self._engine is not None
        with self._engine.connect() as conn:
            return [dict(row) for row in conn.execute(statement).mappings()]

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()


def _unicode_lower(value: Any) -> str | None:
    return None if value is None else str(value).lower()


def _register_sqlite_functions(dbapi_connection: Any, connection_record: Any) -> None:
    """Replace SQLite's ASCII-only ``lower()`` with Python's Unicode lowercasing."""
    dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)


class _Compiler:
    """Translates one plan into a ``select``."""

    def __init__(self, query: Query) -> None:
        self.query = query
        self.tables = {alias: TABLES[name].alias(alias) for alias, name in query.aliases.items()}

    def column(self, ref: str) -> ColumnElement[Any]:
        alias, name = self.query.ref(ref)
        return self.tables[alias].c[name]

    def predicate(self, p: Predicate) -> ColumnElement[bool]:
        if isinstance(p, Eq):
            if p.value is None:
                return false()
            return self.column(p.field) == p.value
        if isinstance(p, In):
            return self.column(p.field).in_(list(p.values))
        if isinstance(p, Contains):
            term = p.term.lower()
            return or_(
                *(func.lower(self.column(ref)).contains(term, autoescape=True) for ref in p.fields)
            )
        if isinstance(p, Between):
            return self.column(p.field).between(p.start, p.end)
        if isinstance(p, Compare):
            if p.value is None:
                return false()
            return _OPERATORS[p.op](self.column(p.field), p.value)
        if isinstance(p, CompareFields):
            return _OPERATORS[p.op](self.column(p.left), self.column(p.right))
        if isinstance(p, IsEmpty):
            col = self.column(p.field)
            return or_(col.is_(None), col == "")
        if isinstance(p, IsNull):
            col = self.column(p.field)
            return col.is_not(None) if p.negate else col.is_(None)
        if isinstance(p, AnyOf):
            return or_(*(self.predicate(inner) for inner in p.predicates))
        raise TypeError(f"Unsupported predicate: {p!r}")

    def reducer(self, r: Reducer) -> ColumnElement[Any]:
        if r.field is None:
            if r.func != "count":
                raise ValueError(f"{r.func} needs a field")
            return func.count()
        col = self.column(r.field)
        if r.func == "count_distinct":
            return func.count(distinct(col))
        return getattr(func, r.func)(col)

    def build(self) -> Select[Any]:
        q = self.query
        source = self.tables[q.alias]
        for join in q.joins:
            right = self.tables[join.alias]
            onclause = and_(
                self.column(join.left) == right.c[join.right],
                *(self.predicate(c) for c in join.conditions),
            )
            source = source.join(right, onclause, isouter=not join.inner)

        labelled: dict[str, ColumnElement[Any]] = {}
        outputs: list[Any] = []
        if q.aggregated:
            relabel = {c.name: c.label for c in q.columns}
            group_exprs = []
            for ref in q.group_by:
                label = relabel.get(ref, q.ref(ref)[1])
                expr = self.column(ref)
                group_exprs.append(expr)
                outputs.append(expr.label(label))
                labelled[label] = expr
                labelled[ref] = expr
            for r in q.reducers:
                expr = self.reducer(r)
                outputs.append(expr.label(r.label))
                labelled[r.label] = expr
            stmt = select(*outputs).select_from(source)
            if group_exprs:
                stmt = stmt.group_by(*group_exprs)
        else:
            specs = q.columns or (Column(f"{q.alias}.*", "*"),)
            for spec in specs:
                if spec.name.endswith("*"):
                    alias = spec.name.split(".", 1)[0] if "." in spec.name else q.alias
                    table = self.tables[alias]
                    for name in entity(q.aliases[alias]).columns:
                        outputs.append(table.c[name].label(name))
                else:
                    expr = self.column(spec.name)
                    labelled[spec.label] = expr
                    outputs.append(expr.label(spec.label))
            stmt = select(*outputs).select_from(source)

        if q.predicates:
            stmt = stmt.where(*(self.predicate(p) for p in q.predicates))

        for order in q.order:
            expr = self.sort_expr(order.key, labelled)
            stmt = stmt.order_by(expr.desc().nulls_last() if order.descending else expr.asc().nulls_first())

        if q.limit is not None:
            stmt = stmt.limit(q.limit)
        if q.offset:
            stmt = stmt.offset(q.offset)
        return stmt

    def sort_expr(self, key: str, labelled: dict[str, ColumnElement[Any]]) -> ColumnElement[Any]:
        if self.query.aggregated:
            return labelled[key]
        if "." not in key and key in labelled:
            return labelled[key]
        return self.column(key)


def compile_query(query: Query) -> Select[Any]:
    """Compile a plan to a SQLAlchemy ``select``."""
    return _Compiler(query).build()
