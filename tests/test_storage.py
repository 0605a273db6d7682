"""Tests for the file loader and the query-plan contract of both backends."""

import json
import threading
import time

import pytest

from sigesalud.exceptions import BackendInitError, DataSourceError
from sigesalud.storage import (
    MemoryBackend,
    RelationalBackend,
    create_backend,
    get_backend,
    reset_backend,
    set_backend,
)
from sigesalud.storage.catalog import ENTITIES
from sigesalud.storage.files import load_collection, load_map_positions
from sigesalud.storage.query import (
    AnyOf,
    Compare,
    CompareFields,
    Contains,
    Eq,
    In,
    IsEmpty,
    IsNull,
    Query,
)
from sigesalud.storage.seed import populate

FACILITIES = [
    {"facility_id": "F1", "name": "Hospital Bata", "region": "Continental", "province": "Litoral", "city": "Bata"},
    {"facility_id": "F2", "name": "Centro Malabo", "region": "Insular", "province": None, "city": "Malabo"},
    {"facility_id": "F3", "name": "Puesto Mongomo", "region": "Continental", "province": "Wele-Nzas", "city": ""},
]
VISITS = [
    {"visit_id": "V1", "patient_id": "P1", "facility_id": "F1", "date": "2025-03-01", "outcome": "ALTA"},
    {"visit_id": "V2", "patient_id": "P1", "facility_id": "F1", "date": "2025-03-02", "outcome": "DEFUNCION"},
    {"visit_id": "V3", "patient_id": "P2", "facility_id": "F2", "date": None, "outcome": "ALTA"},
    {"visit_id": "V4", "patient_id": "P3", "facility_id": "F9", "date": "2025-03-04", "outcome": None},
]
STOCK = [
    {"facility_id": "F1", "item_id": "A", "month": "2025-03", "stock_on_hand": 2, "min_level": 5},
    {"facility_id": "F1", "item_id": "B", "month": "2025-03", "stock_on_hand": 9, "min_level": 5},
    {"facility_id": "F2", "item_id": "A", "month": "2025-03", "stock_on_hand": None, "min_level": 5},
]


@pytest.fixture
def store(make_backend):
    return make_backend({"facilities": FACILITIES, "visits": VISITS, "stock_levels_monthly": STOCK})


# ── file loading ─────────────────────────────────────────────────────────


def test_load_collection_keyed_document(data_root):
    """Test loading a keyed document and defaulting JSON columns."""
    rows = load_collection("facilities", data_root)

    assert [r["facility_id"] for r in rows] == ["F1", "F2", "F3"]
    assert rows[2]["services"] == []
    assert rows[2]["contacts"] == {}
    assert rows[2]["map_pos"] is None


def test_load_collection_bare_list_and_contact(data_root):
    """Test bare-list files and contact flattening for workers."""
    districts = load_collection("districts", data_root)
    workers = load_collection("health_workers", data_root, data_root / "hr")

    assert len(districts) == 4
    assert workers[0]["phone"] == "+240600000001"
    assert workers[0]["email"] == "juan.obiang@sigesalud.ge"
    assert "contact" not in workers[0]


def test_load_collection_missing_file(tmp_path):
    """Test that a missing file yields an empty collection."""
    assert load_collection("visits", tmp_path) == []


def test_load_collection_malformed_file(tmp_path):
    """Test that malformed JSON raises DataSourceError."""
    (tmp_path / ENTITIES["visits"].file).write_text("{not json", encoding="utf-8")

    with pytest.raises(DataSourceError) as exc_info:
        load_collection("visits", tmp_path)
    assert exc_info.value.path.endswith("visits_2025.json")


def test_load_collection_wrong_shape(tmp_path):
    """Test that a document that is not a record list is rejected."""
    (tmp_path / ENTITIES["visits"].file).write_text(json.dumps({"visits": [1, 2]}), encoding="utf-8")

    with pytest.raises(DataSourceError):
        load_collection("visits", tmp_path)


def test_load_collection_bom(tmp_path):
    """Test files saved with a UTF-8 byte order mark."""
    payload = json.dumps({"records": [{"district_id": "Bata"}]})
    (tmp_path / ENTITIES["districts"].file).write_bytes(b"\xef\xbb\xbf" + payload.encode("utf-8"))

    assert load_collection("districts", tmp_path)[0]["district_id"] == "Bata"


def test_load_map_positions(data_root):
    """Test the facility map-position side lookup."""
    positions = load_map_positions(data_root)

    assert positions == {"F1": {"x": 0.31, "y": 0.62}, "F2": {"x": 0.12, "y": 0.08}}


# ── query contract ───────────────────────────────────────────────────────


def test_eq_and_in(store):
    """Test equality and membership filters."""
    assert len(store.fetch(Query("visits", "v").where(Eq("v.patient_id", "P1")))) == 2
    assert store.fetch(Query("visits", "v").where(Eq("v.visit_id", "V3")))[0]["facility_id"] == "F2"
    assert len(store.fetch(Query("visits", "v").where(In("v.patient_id", ("P1", "P3"))))) == 3
    assert store.fetch(Query("visits", "v").where(In("v.patient_id", ()))) == []


def test_filter_skips_none(store):
    """Test that optional filters set to None are ignored."""
    assert len(store.fetch(Query("visits").filter(patient_id=None))) == 4
    assert len(store.fetch(Query("visits").filter(patient_id="P2"))) == 1


def test_contains_case_insensitive(store):
    """Test substring search over several fields."""
    rows = store.fetch(Query("facilities", "f").search("BATA", "f.name", "f.city").order_by("f.facility_id"))
    assert [r["facility_id"] for r in rows] == ["F1"]

    rows = store.fetch(Query("facilities", "f").where(Contains(("f.name",), "O M")).order_by("f.facility_id"))
    assert [r["facility_id"] for r in rows] == ["F2", "F3"]


def test_contains_folds_accented_capitals(make_backend):
    """Test that search lowercases accented capitals the same way on every backend."""
    store = make_backend(
        {
            "facilities": [
                {"facility_id": "F1", "name": "Centro Éweng", "city": "ÑEFANG"},
                {"facility_id": "F2", "name": "Centro Eweng", "city": "Nefang"},
            ]
        }
    )

    def ids(term):
        query = Query("facilities", "f").search(term, "f.name", "f.city").order_by("f.facility_id")
        return [r["facility_id"] for r in store.fetch(query)]

    assert ids("éweng") == ["F1"]
    assert ids("ÉWENG") == ["F1"]
    assert ids("ñefang") == ["F1"]
    assert ids("eweng") == ["F2"]


def test_null_comparisons_are_false(store):
    """Test SQL null semantics in comparisons."""
    rows = store.fetch(Query("visits", "v").where(Compare("v.date", ">=", "2025-03-02")).order_by("v.visit_id"))
    assert [r["visit_id"] for r in rows] == ["V2", "V4"]

    rows = store.fetch(Query("visits", "v").where(Compare("v.outcome", "!=", "ALTA")))
    assert [r["visit_id"] for r in rows] == ["V2"]

    rows = store.fetch(
        Query("stock_levels_monthly", "s")
        .where(CompareFields("s.stock_on_hand", "<=", "s.min_level"))
    )
    assert [(r["facility_id"], r["item_id"]) for r in rows] == [("F1", "A")]


def test_is_empty_and_is_null(store):
    """Test null and empty-string predicates."""
    empty = store.fetch(Query("facilities", "f").where(IsEmpty("f.city")))
    assert [r["facility_id"] for r in empty] == ["F3"]

    null = store.fetch(Query("facilities", "f").where(IsNull("f.province")))
    assert [r["facility_id"] for r in null] == ["F2"]

    present = store.fetch(
        Query("facilities", "f").where(IsNull("f.province", negate=True)).order_by("f.facility_id")
    )
    assert [r["facility_id"] for r in present] == ["F1", "F3"]


def test_any_of(store):
    """Test disjunctions."""
    rows = store.fetch(
        Query("visits", "v")
        .where(AnyOf((Eq("v.outcome", "DEFUNCION"), Eq("v.patient_id", "P3"))))
        .order_by("v.visit_id")
    )
    assert [r["visit_id"] for r in rows] == ["V2", "V4"]


def test_left_and_inner_join(store):
    """Test that left joins keep unmatched rows with null columns."""
    left = store.fetch(
        Query("visits", "v")
        .join("facilities", "f", ("v.facility_id", "facility_id"))
        .select("v.visit_id", "f.name AS facility_name")
        .order_by("v.visit_id")
    )
    assert left[-1] == {"visit_id": "V4", "facility_name": None}
    assert len(left) == 4

    inner = store.fetch(
        Query("visits", "v")
        .join("facilities", "f", ("v.facility_id", "facility_id"), inner=True)
        .select("v.visit_id")
    )
    assert len(inner) == 3


def test_join_conditions(store):
    """Test extra conditions on the joined side."""
    rows = store.fetch(
        Query("visits", "v")
        .join("facilities", "f", ("v.facility_id", "facility_id"), Eq("f.region", "Insular"))
        .select("v.visit_id", "f.facility_id AS matched")
        .order_by("v.visit_id")
    )
    assert [r["matched"] for r in rows] == [None, None, "F2", None]


def test_wildcard_projection(store):
    """Test that ``alias.*`` expands to the entity's columns."""
    row = store.fetch_one(
        Query("visits", "v")
        .join("facilities", "f", ("v.facility_id", "facility_id"))
        .where(Eq("v.visit_id", "V1"))
        .select("v.*", "f.name AS facility_name")
    )
    assert list(row) == list(ENTITIES["visits"].columns) + ["facility_name"]
    assert row["facility_name"] == "Hospital Bata"


def test_nulls_sort_first_ascending_last_descending(store):
    """Test null placement in ordering."""
    ascending = store.fetch(Query("visits", "v").select("v.visit_id").order_by("v.date"))
    assert [r["visit_id"] for r in ascending] == ["V3", "V1", "V2", "V4"]

    descending = store.fetch(Query("visits", "v").select("v.visit_id").order_by("-v.date"))
    assert [r["visit_id"] for r in descending] == ["V4", "V2", "V1", "V3"]


def test_order_by_output_label(store):
    """Test ordering by a projected label."""
    rows = store.fetch(
        Query("facilities", "f").select("f.facility_id", "f.name AS label").order_by("-label")
    )
    assert [r["facility_id"] for r in rows] == ["F3", "F1", "F2"]


def test_take_and_offset(store):
    """Test limit/offset windows."""
    query = Query("visits", "v").select("v.visit_id").order_by("v.visit_id")

    assert [r["visit_id"] for r in store.fetch(query.take(2, 1))] == ["V2", "V3"]
    assert [r["visit_id"] for r in store.fetch(query.take(None, 3))] == ["V4"]


def test_negative_window_rejected():
    """Test that negative limits and offsets never reach a backend."""
    query = Query("visits", "v").order_by("v.visit_id")

    with pytest.raises(ValueError):
        query.take(-1)
    with pytest.raises(ValueError):
        query.take(2, -1)
    with pytest.raises(ValueError):
        query.top_n(-1, "v.date")
    assert query.top_n(0, "v.date").limit == 0


def test_aggregate_group_by(store):
    """Test grouping with reducers and relabelled group columns."""
    rows = store.fetch(
        Query("visits", "v")
        .select("v.patient_id AS pid")
        .aggregate("v.patient_id", visits=("count", None), last=("max", "v.date"))
        .order_by("-visits", "pid")
    )
    assert rows == [
        {"pid": "P1", "visits": 2, "last": "2025-03-02"},
        {"pid": "P2", "visits": 1, "last": None},
        {"pid": "P3", "visits": 1, "last": "2025-03-04"},
    ]


def test_aggregate_reducers(store):
    """Test sum/avg/min/count_distinct and null skipping."""
    row = store.fetch_one(
        Query("stock_levels_monthly", "s").aggregate(
            total=("sum", "s.stock_on_hand"),
            mean=("avg", "s.stock_on_hand"),
            low=("min", "s.stock_on_hand"),
            counted=("count", "s.stock_on_hand"),
            facilities=("count_distinct", "s.facility_id"),
        )
    )
    assert row == {"total": 11, "mean": 5.5, "low": 2, "counted": 2, "facilities": 2}


def test_aggregate_without_rows(store):
    """Test that an ungrouped aggregate always yields one row."""
    rows = store.fetch(
        Query("visits", "v")
        .where(Eq("v.patient_id", "nobody"))
        .aggregate(total=("count", None), cases=("sum", "v.date"))
    )
    assert rows == [{"total": 0, "cases": None}]

    grouped = store.fetch(
        Query("visits", "v").where(Eq("v.patient_id", "nobody")).aggregate("v.facility_id", total=("count", None))
    )
    assert grouped == []


def test_helpers(store):
    """Test count, max_value and scalar helpers."""
    assert store.count("visits") == 4
    assert store.count("visits", Query("visits").where(Eq("facility_id", "F1"))) == 2
    assert store.max_value("visits", "date") == "2025-03-04"
    assert store.max_value("alerts", "date") is None
    assert store.fetch_one(Query("visits").where(Eq("visit_id", "nope"))) is None


# ── lifecycle ────────────────────────────────────────────────────────────


def test_backends_return_identical_rows(backend_pair):
    """Test that both backends load the same fixture rows."""
    memory, relational = backend_pair
    for name, spec in ENTITIES.items():
        order = spec.primary_key or spec.columns[0]
        query = Query(name).order_by(*([order] if spec.primary_key else spec.columns[:4]))
        assert memory.fetch(query) == relational.fetch(query), name


def test_populate_skips_loaded_tables(tmp_path, data_root):
    """Test that population is idempotent unless asked to replace."""
    url = f"sqlite:///{tmp_path / 'seed.sqlite'}"

    first = populate(url, data_root)
    second = populate(url, data_root)
    third = populate(url, data_root, replace=True)

    assert first["visits"] == 6
    assert first["health_workers"] == 5
    assert second["visits"] == 0
    assert third == first


def test_relational_init_failure(tmp_path):
    """Test that an unopenable database raises BackendInitError."""
    backend = RelationalBackend(f"sqlite:///{tmp_path / 'missing' / 'dir' / 'db.sqlite'}")

    with pytest.raises(BackendInitError):
        backend.ensure_ready()
    assert not backend.ready


def test_get_backend_singleton(settings):
    """Test the process-wide backend lifecycle."""
    first = get_backend(settings)
    assert first is get_backend(settings)
    assert first.ready

    reset_backend()
    assert get_backend(settings) is not first


def test_set_backend(settings):
    """Test injecting a backend."""
    injected = create_backend(settings)
    set_backend(injected)

    assert get_backend() is injected


class SlowBackend(MemoryBackend):
    """Memory backend whose initialization takes a while and is counted."""

    def __init__(self) -> None:
        super().__init__(collections={})
        self.initializations = 0

    def initialize(self) -> None:
        self.initializations += 1
        time.sleep(0.05)
        super().initialize()


def test_concurrent_first_calls_share_initialization():
    """Test that threads racing on first use initialize the backend once."""
    backend = SlowBackend()
    start = threading.Barrier(8)
    counts = []

    def first_call():
        start.wait()
        counts.append(backend.count("facilities"))

    threads = [threading.Thread(target=first_call) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert backend.initializations == 1
    assert counts == [0] * 8


def test_memory_backend_malformed_file(tmp_path):
    """Test that a corrupt data file fails initialization instead of loading empty."""
    (tmp_path / ENTITIES["visits"].file).write_text("{not json", encoding="utf-8")
    backend = MemoryBackend(tmp_path, tmp_path / "hr")

    with pytest.raises(BackendInitError) as exc_info:
        backend.ensure_ready()
    assert isinstance(exc_info.value.__cause__, DataSourceError)
    assert not backend.ready
