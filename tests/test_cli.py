import json

import pytest

from postaltracker import cli
from postaltracker.errors import InvalidTrackingCodeError
from postaltracker.history import HistoryStore
from postaltracker.normalizer import normalize_object


@pytest.fixture
def history_file(tmp_path, monkeypatch):
    path = tmp_path / "history.json"
    monkeypatch.setenv("POSTALTRACKER_HISTORY_FILE", str(path))
    monkeypatch.setenv("RAPIDAPI_KEY", "test-key")
    return path


def test_track_prints_record_and_records_history(monkeypatch, capsys, history_file, delivered_payload):
    record = normalize_object(delivered_payload)
    monkeypatch.setattr(cli, "track_sync", lambda code, carrier=None: record)

    assert cli.main(["track", "AA123456789BR"]) == 0
    out = capsys.readouterr().out
    assert "Code: AA123456789BR" in out
    assert "Delivered: yes" in out
    assert "Expected delivery: 21/02/2026" in out
    assert "- 19/02/2026 at 11:22: Delivered" in out
    assert "Location: Sao Paulo / SP" in out

    assert [e.code for e in HistoryStore(history_file).list()] == ["AA123456789BR"]


def test_track_json_without_history(monkeypatch, capsys, history_file, delivered_payload):
    record = normalize_object(delivered_payload)
    monkeypatch.setattr(cli, "track_sync", lambda code, carrier=None: record)

    assert cli.main(["track", "AA123456789BR", "--json", "--no-history"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["lastStatus"] == "Delivered"
    assert not history_file.exists()


def test_track_not_found(monkeypatch, capsys, history_file):
    monkeypatch.setattr(cli, "track_sync", lambda code, carrier=None: None)
    assert cli.main(["track", "AA123456789BR"]) == 1
    assert "Object not found" in capsys.readouterr().out


def test_track_invalid_code(monkeypatch, capsys, history_file):
    def boom(code, carrier=None):
        raise InvalidTrackingCodeError("Invalid tracking code.")

    monkeypatch.setattr(cli, "track_sync", boom)
    assert cli.main(["track", "nope"]) == 2
    assert "Invalid tracking code." in capsys.readouterr().out

    with pytest.raises(InvalidTrackingCodeError):
        cli.main(["track", "nope", "--strict"])


def test_history_commands(capsys, history_file, delivered_payload):
    store = HistoryStore(history_file)
    store.add_record(normalize_object(delivered_payload))

    assert cli.main(["history"]) == 0
    assert "AA123456789BR" in capsys.readouterr().out

    assert cli.main(["history", "--json"]) == 0
    assert json.loads(capsys.readouterr().out)[0]["code"] == "AA123456789BR"

    assert cli.main(["history", "--remove", "aa123456789br"]) == 0
    assert store.list() == []

    assert cli.main(["history"]) == 0
    assert "No queries yet" in capsys.readouterr().out


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 1
    assert "usage" in capsys.readouterr().out
