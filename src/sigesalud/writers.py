"""Writers for the versioned HR roster documents."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from sigesalud.models import Roster

DOCUMENT_VERSION = "v1"

# Roster stream -> file name under the HR root
ROSTER_FILES = {
    "workers": "hr.workers.json",
    "assignments": "hr.assignments.json",
    "history": "hr.history.json",
    "credentials": "hr.credentials.json",
}


def write_roster(roster: Roster, output_path: Path) -> list[Path]:
    """Write each roster stream as ``{"version": "v1", <stream>: [...]}``."""
    output_path.mkdir(parents=True, exist_ok=True)

    written = []
    for key, file_name in ROSTER_FILES.items():
        records = [item.model_dump(mode="json") for item in getattr(roster, key)]
        file_path = output_path / file_name
        write_json(file_path, {"version": DOCUMENT_VERSION, key: records})
        written.append(file_path)
    return written


def write_json(file_path: Path, document: Any) -> None:
    """Write a document as indented JSON with a trailing newline."""
    with open(file_path, "w", encoding="utf-8") as f:
        json.dump(document, f, indent=2, ensure_ascii=False)
        f.write("\n")
