from datetime import datetime

from postaltracker.history import MAX_HISTORY, HistoryStore
from postaltracker.models import HistoryEntry
from postaltracker.normalizer import normalize_object


def _entry(code, **kwargs):
    return HistoryEntry(code=code, last_status="In transit", **kwargs)


def test_empty_history(tmp_path):
    assert HistoryStore(tmp_path / "missing.json").list() == []


def test_most_recent_first_and_deduplicated(tmp_path):
    store = HistoryStore(tmp_path / "history.json")
    store.add(_entry("AA123456789BR"))
    store.add(_entry("LB987654321US", is_import=True))
    store.add(_entry("AA123456789BR", description="SEDEX"))

    entries = store.list()
    assert [e.code for e in entries] == ["AA123456789BR", "LB987654321US"]
    assert entries[0].description == "SEDEX"
    assert entries[1].is_import is True


def test_bounded_to_max_entries(tmp_path):
    store = HistoryStore(tmp_path / "history.json")
    for i in range(MAX_HISTORY + 5):
        store.add(_entry(f"AA{i:09d}BR"))
    entries = store.list()
    assert len(entries) == MAX_HISTORY
    assert entries[0].code == f"AA{MAX_HISTORY + 4:09d}BR"


def test_remove_and_clear(tmp_path):
    store = HistoryStore(tmp_path / "history.json")
    store.add(_entry("AA123456789BR"))
    store.add(_entry("LB987654321US"))
    store.remove("AA123456789BR")
    assert [e.code for e in store.list()] == ["LB987654321US"]
    assert store.get("LB987654321US") is not None
    store.clear()
    assert store.list() == []
    store.clear()


def test_add_record(tmp_path, delivered_payload):
    store = HistoryStore(tmp_path / "history.json")
    store.add_record(normalize_object(delivered_payload))
    entry = store.list()[0]
    assert entry.code == "AA123456789BR"
    assert entry.description == "SEDEX A VISTA"
    assert entry.last_status == "Delivered"
    assert entry.is_import is False


def test_file_uses_camel_case_keys(tmp_path):
    path = tmp_path / "history.json"
    HistoryStore(path).add(_entry("AA123456789BR", queried_at=datetime(2026, 2, 19, 11, 22, 32)))
    text = path.read_text(encoding="utf-8")
    assert '"lastStatus"' in text
    assert '"queriedAt": "2026-02-19T11:22:32"' in text


def test_corrupt_file_is_ignored(tmp_path, caplog):
    path = tmp_path / "history.json"
    path.write_text("{not json", encoding="utf-8")
    store = HistoryStore(path)
    assert store.list() == []
    assert "corrupt history" in caplog.text
    store.add(_entry("AA123456789BR"))
    assert [e.code for e in store.list()] == ["AA123456789BR"]


def test_write_failure_is_not_fatal(tmp_path, caplog):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    store = HistoryStore(blocker / "history.json")
    store.add(_entry("AA123456789BR"))
    assert store.list() == []
    assert "could not write history" in caplog.text
