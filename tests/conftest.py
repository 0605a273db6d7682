"""Shared fixtures: the JSON dataset and both storage backends over it."""

import json
from datetime import date
from pathlib import Path

import pytest

from sigesalud.config import Settings
from sigesalud.storage import MemoryBackend, RelationalBackend, reset_backend
from sigesalud.storage.catalog import ENTITIES
from sigesalud.storage.files import entity_path
from sigesalud.storage.seed import populate

FIXTURE_DATA = Path(__file__).parent / "fixtures" / "data"
TODAY = date(2025, 3, 20)
BACKEND_KINDS = ["memory", "relational"]


def write_dataset(root: Path, collections: dict[str, list[dict]]) -> Path:
    """Write collections as data files laid out the way the loader expects."""
    root.mkdir(parents=True, exist_ok=True)
    for name, rows in collections.items():
        spec = ENTITIES[name]
        path = entity_path(spec, root)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps({spec.collection_key or "records": rows}), encoding="utf-8")
    return root


def open_backend(kind: str, data_root: Path, workdir: Path):
    """Open a ready backend of ``kind`` over the files under ``data_root``."""
    if kind == "memory":
        backend = MemoryBackend(data_root, data_root / "hr")
    else:
        url = f"sqlite:///{workdir / f'{data_root.name}.sqlite'}"
        populate(url, data_root, data_root / "hr")
        backend = RelationalBackend(url)
    backend.ensure_ready()
    return backend


@pytest.fixture(params=BACKEND_KINDS)
def backend(request, tmp_path):
    """Each test using this fixture runs once per backend over the fixture dataset."""
    opened = open_backend(request.param, FIXTURE_DATA, tmp_path)
    yield opened
    opened.close()


@pytest.fixture
def backend_pair(tmp_path):
    """Memory and relational backends over the same dataset."""
    memory = open_backend("memory", FIXTURE_DATA, tmp_path)
    relational = open_backend("relational", FIXTURE_DATA, tmp_path)
    yield memory, relational
    memory.close()
    relational.close()


@pytest.fixture(params=BACKEND_KINDS)
def make_backend(request, tmp_path):
    """Factory building a backend of the current kind over ad hoc collections."""
    opened = []

    def _make(collections: dict[str, list[dict]], name: str = "data"):
        data_root = write_dataset(tmp_path / name, collections)
        built = open_backend(request.param, data_root, tmp_path)
        opened.append(built)
        return built

    yield _make
    for built in opened:
        built.close()


@pytest.fixture
def settings(tmp_path):
    return Settings(data_root=FIXTURE_DATA, database_url=f"sqlite:///{tmp_path / 'cli.sqlite'}")


@pytest.fixture(autouse=True)
def _fresh_backend():
    """No test sees the process-wide backend of another."""
    reset_backend()
    yield
    reset_backend()


@pytest.fixture
def data_root():
    return FIXTURE_DATA


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def dataset(tmp_path):
    """Writer for ad hoc collections under a temporary data root."""

    def _write(collections: dict[str, list[dict]], name: str = "data") -> Path:
        return write_dataset(tmp_path / name, collections)

    return _write
