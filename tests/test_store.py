import json
import threading

import pytest

from waste_tracker.db.database import WasteStore
from waste_tracker.db.models import WasteEntry, WasteItem
from waste_tracker.errors import NotFoundError, PersistenceError


def _entry(timestamp="2026-10-01T12:00:00+00:00", image_hash="", total=None):
    return WasteEntry(id=None, image_path="/uploads/x.jpg", timestamp=timestamp,
                      total_estimated_value=total, image_hash=image_hash)


def _item(name="rice", value=1.0, category="side"):
    return WasteItem(id=None, waste_entry_id=None, name=name, category=category, estimated_value=value)


@pytest.fixture
def store(tmp_path):
    return WasteStore(tmp_path / "waste.json")


def test_append_assigns_ids_and_joins_items(store):
    saved = store.append(_entry(), [_item("rice", 1.5), _item("beans", 2.0)])
    assert saved.id == 1
    assert [i.id for i in saved.items] == [1, 2]
    assert all(i.waste_entry_id == 1 for i in saved.items)
    assert saved.total_estimated_value == 3.5
    assert saved.created_at


def test_append_keeps_supplied_total(store):
    saved = store.append(_entry(total=12.4), [_item("rice", 1.0)])
    assert saved.total_estimated_value == 12.4


def test_ids_never_reused_after_delete(store):
    first = store.append(_entry(), [_item()])
    second = store.append(_entry(), [_item(), _item()])
    store.delete(second.id)
    third = store.append(_entry(), [_item()])
    assert third.id == 3
    assert third.items[0].id == 4
    store.delete(first.id)
    assert store.append(_entry(), []).id == 4


def test_delete_cascades_only_target(store):
    keep = store.append(_entry(), [_item("a"), _item("b")])
    doomed = store.append(_entry(), [_item("c"), _item("d")])
    result = store.delete(doomed.id)
    assert result == {"success": True, "message": f"Entry #{doomed.id} deleted"}
    entries, items = store.snapshot()
    assert [e.id for e in entries] == [keep.id]
    assert sorted(i.name for i in items) == ["a", "b"]


def test_delete_unknown_raises(store):
    with pytest.raises(NotFoundError) as exc:
        store.delete(42)
    assert "#42" in exc.value.message


def test_clear_all_resets_counters(store):
    store.append(_entry(), [_item(), _item()])
    store.append(_entry(), [_item()])
    assert store.clear_all()["success"] is True
    assert store.list_entries() == []
    saved = store.append(_entry(), [_item()])
    assert saved.id == 1
    assert saved.items[0].id == 1


def test_list_sorted_newest_first_with_limit(store):
    store.append(_entry("2026-10-01T08:00:00+00:00"), [])
    store.append(_entry("2026-10-03T08:00:00+00:00"), [_item()])
    store.append(_entry("2026-10-02T08:00:00+00:00"), [])
    entries = store.list_entries(limit=2)
    assert [e.timestamp[:10] for e in entries] == ["2026-10-03", "2026-10-02"]
    assert entries[1].items == []


def test_list_filters_by_time_range(store):
    for day in ("01", "05", "09"):
        store.append(_entry(f"2026-10-{day}T08:00:00+00:00"), [])
    entries = store.list_entries(start="2026-10-05T08:00:00+00:00", end="2026-10-09T00:00:00+00:00")
    assert [e.timestamp[:10] for e in entries] == ["2026-10-05"]


def test_hash_lookup_returns_most_recent(store):
    store.append(_entry("2026-10-01T08:00:00+00:00", image_hash="abc"), [_item("old")])
    newer = store.append(_entry("2026-10-02T08:00:00+00:00", image_hash="abc"), [_item("new")])
    store.append(_entry("2026-09-01T08:00:00+00:00", image_hash="abc"), [])
    found = store.find_most_recent_by_hash("abc")
    assert found.id == newer.id
    assert [i.name for i in found.items] == ["new"]
    assert store.find_most_recent_by_hash("") is None
    assert store.find_most_recent_by_hash("missing") is None


def test_hash_lookup_tie_prefers_highest_id(store):
    ts = "2026-10-01T08:00:00+00:00"
    store.append(_entry(ts, image_hash="abc"), [])
    second = store.append(_entry(ts, image_hash="abc"), [])
    assert store.find_most_recent_by_hash("abc").id == second.id


def test_hash_lookup_falls_back_after_delete(store):
    older = store.append(_entry("2026-10-01T08:00:00+00:00", image_hash="abc"), [])
    newer = store.append(_entry("2026-10-02T08:00:00+00:00", image_hash="abc"), [])
    store.delete(newer.id)
    assert store.find_most_recent_by_hash("abc").id == older.id
    store.delete(older.id)
    assert store.find_most_recent_by_hash("abc") is None


def test_reload_restores_entries_and_counters(tmp_path):
    path = tmp_path / "waste.json"
    store = WasteStore(path)
    store.append(_entry(image_hash="abc"), [_item("rice", 2.0)])
    store.delete(store.append(_entry(), [_item()]).id)

    reloaded = WasteStore(path)
    assert reloaded.load_warning is None
    assert [e.id for e in reloaded.list_entries()] == [1]
    assert reloaded.find_most_recent_by_hash("abc").items[0].name == "rice"
    assert reloaded.append(_entry(), [_item()]).id == 3


def test_missing_counters_are_recomputed(tmp_path):
    path = tmp_path / "waste.json"
    path.write_text(json.dumps({
        "entries": [{"id": 7, "image_path": "/uploads/a.jpg", "timestamp": "2026-10-01T08:00:00Z",
                     "total_estimated_value": 3}],
        "items": [{"id": 11, "waste_entry_id": 7, "name": "toast", "estimated_value": 3}],
    }))
    store = WasteStore(path)
    saved = store.append(_entry(), [_item()])
    assert saved.id == 8
    assert saved.items[0].id == 12
    loaded = store.get(7)
    assert loaded.items[0].category == "unknown"
    assert loaded.items[0].condition == "unknown"


def test_corrupt_file_starts_empty_with_warning(tmp_path):
    path = tmp_path / "waste.json"
    path.write_text("{not json")
    store = WasteStore(path)
    assert store.list_entries() == []
    assert store.load_warning
    assert store.append(_entry(), []).id == 1


def test_failed_write_leaves_state_untouched(tmp_path):
    store = WasteStore(tmp_path / "waste.json")
    store.append(_entry(), [_item()])
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    good_path = store.path
    store.path = blocker / "waste.json"

    with pytest.raises(PersistenceError):
        store.append(_entry(), [_item()])
    with pytest.raises(PersistenceError):
        store.clear_all()
    assert len(store.list_entries()) == 1

    store.path = good_path
    saved = store.append(_entry(), [_item()])
    assert saved.id == 2
    assert saved.items[0].id == 2


def test_write_is_valid_json_without_temp_leftovers(tmp_path):
    store = WasteStore(tmp_path / "waste.json")
    store.append(_entry(), [_item()])
    data = json.loads((tmp_path / "waste.json").read_text())
    assert data["nextEntryId"] == 2
    assert data["nextItemId"] == 2
    assert "items" not in data["entries"][0]
    assert [p.name for p in tmp_path.iterdir()] == ["waste.json"]


def test_concurrent_appends_get_unique_contiguous_ids(tmp_path):
    path = tmp_path / "waste.json"
    store = WasteStore(path)
    saved = []

    def worker():
        for _ in range(10):
            saved.append(store.append(_entry(), [_item(), _item("beans")]))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(e.id for e in saved) == list(range(1, 81))
    item_ids = sorted(i.id for e in saved for i in e.items)
    assert item_ids == list(range(1, 161))

    reloaded = WasteStore(path)
    assert reloaded.load_warning is None
    assert len(reloaded.list_entries(limit=1000)) == 80
    assert reloaded.append(_entry(), [_item()]).id == 81
