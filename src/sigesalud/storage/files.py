"""Load entity collections from the static JSON files."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from sigesalud.exceptions import DataSourceError
from sigesalud.storage.catalog import ENTITIES, EntitySpec

logger = logging.getLogger(__name__)

# Defaults for JSON columns that are absent from a record
JSON_DEFAULTS: dict[str, Any] = {
    "services": list,
    "contacts": dict,
    "data_quality": dict,
    "tests_by_category": dict,
}


def entity_path(spec: EntitySpec, data_root: Path, hr_root: Path | None = None) -> Path:
    """Location of an entity's file; HR streams live under ``hr_root``."""
    if spec.hr:
        return (hr_root or data_root / "hr") / spec.file
    return data_root / spec.file


def read_document(path: Path) -> Any | None:
    """Parse a JSON file; ``None`` when the file does not exist."""
    if not path.exists():
        return None
    try:
        with open(path, encoding="utf-8-sig") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise DataSourceError(str(path), str(e)) from e
    except OSError as e:
        logger.warning("Could not read %s: %s", path, e)
        return None


def extract_records(document: Any, spec: EntitySpec, path: Path) -> list[dict[str, Any]]:
    """Pull the record list out of a bare list or a keyed document."""
    if document is None:
        return []
    if isinstance(document, list):
        records = document
    elif isinstance(document, dict):
        records = document.get(spec.collection_key or "records")
        if records is None and spec.collection_key != "records":
            records = document.get("records")
        if records is None:
            records = []
    else:
        raise DataSourceError(str(path), f"expected a list or object, got {type(document).__name__}")

    if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
        raise DataSourceError(str(path), "collection must be a list of objects")
    return records


def normalize_record(spec: EntitySpec, record: dict[str, Any]) -> dict[str, Any]:
    """Project a raw record onto the entity's columns."""
    source = dict(record)
    contact = source.pop("contact", None)
    if isinstance(contact, dict):
        source.setdefault("phone", contact.get("phone"))
        source.setdefault("email", contact.get("email"))

    row: dict[str, Any] = {}
    for column in spec.columns:
        value = source.get(column)
        if value is None and column in JSON_DEFAULTS:
            value = JSON_DEFAULTS[column]()
        row[column] = value
    return row


def load_collection(
    spec: EntitySpec | str,
    data_root: Path,
    hr_root: Path | None = None,
) -> list[dict[str, Any]]:
    """Load and normalize one entity collection.

    A missing file yields an empty collection; a malformed one raises
    :class:`~sigesalud.exceptions.DataSourceError`.
    """
    if isinstance(spec, str):
        spec = ENTITIES[spec]
    path = entity_path(spec, data_root, hr_root)
    document = read_document(path)
    if document is None:
        logger.warning("Data file not found for %s: %s", spec.name, path)
        return []
    rows = [normalize_record(spec, r) for r in extract_records(document, spec, path)]
    logger.debug("Loaded %d %s rows from %s", len(rows), spec.name, path)
    return rows


def load_all(data_root: Path, hr_root: Path | None = None) -> dict[str, list[dict[str, Any]]]:
    """Load every catalogued collection keyed by entity name."""
    return {name: load_collection(spec, data_root, hr_root) for name, spec in ENTITIES.items()}


def load_map_positions(data_root: Path) -> dict[str, Any]:
    """Facility id -> map position from the facilities file."""
    spec = ENTITIES["facilities"]
    path = entity_path(spec, data_root)
    document = read_document(path)
    positions: dict[str, Any] = {}
    for facility in extract_records(document, spec, path):
        if facility.get("facility_id") and facility.get("map_pos"):
            positions[facility["facility_id"]] = facility["map_pos"]
    return positions
