"""Offline population of the relational store from the static files."""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import create_engine, delete, func, insert, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from sigesalud.exceptions import BackendInitError
from sigesalud.storage.catalog import ENTITIES
from sigesalud.storage.files import load_collection
from sigesalud.storage.schema import TABLES, Base

logger = logging.getLogger(__name__)


def populate(
    target: Engine | str,
    data_root: Path,
    hr_root: Path | None = None,
    replace: bool = False,
) -> dict[str, int]:
    """Create the schema and load every collection into its table.

    Tables that already hold rows are left alone unless ``replace`` is set.
    Returns the number of rows inserted per table.
    """
    engine = create_engine(target) if isinstance(target, str) else target
    try:
        Base.metadata.create_all(engine)
    except SQLAlchemyError as e:
        raise BackendInitError(f"Cannot create schema: {e}") from e

    Session = sessionmaker(bind=engine)
    inserted: dict[str, int] = {}
    with Session() as session, session.begin():
        for name, spec in ENTITIES.items():
            table = TABLES[name]
            if replace:
                session.execute(delete(table))
            elif session.scalar(select(func.count()).select_from(table)):
                logger.info("Skipping %s: table already populated", name)
                inserted[name] = 0
                continue

            rows = load_collection(spec, data_root, hr_root)
            if rows:
                session.execute(insert(table), rows)
            inserted[name] = len(rows)
            logger.info("Loaded %d rows into %s", len(rows), name)
    return inserted
