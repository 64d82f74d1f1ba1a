from __future__ import annotations

import json

import pytest

from models.spam_message import SpamMessage
from services.dataset_store import DatasetStore
from services.statistics_service import StatisticsService


def test_dataset_store_roundtrip(tmp_path):
    store = DatasetStore(tmp_path / "datasets.db")
    records = [SpamMessage(1, 1.0).to_structured_record(), SpamMessage(0, 0.0, 1.0).to_structured_record()]

    assert store.read("messages") == []
    assert store.write("messages", records) == 2
    assert store.read("messages") == records

    # Other datasets should not collide
    assert store.read("other") == []
    assert store.datasets() == ["messages"]

    store.truncate("messages")
    assert store.read("messages") == []


def test_dataset_store_appends_in_order(tmp_path):
    store = DatasetStore(tmp_path / "datasets.db")
    store.write("messages", [SpamMessage(1, 1.0).to_structured_record()])
    store.write("messages", [SpamMessage(0, 0.0).to_structured_record()])

    assert [SpamMessage.from_structured_record(r) for r in store.read("messages")] == [
        SpamMessage(1, 1.0),
        SpamMessage(0, 0.0),
    ]


def test_model_store_roundtrip(models):
    models.save("modelFileSet", "output", {"model": None, "num_features": 3})
    assert models.exists("modelFileSet", "output")
    assert models.load("modelFileSet", "output") == {"model": None, "num_features": 3}


def test_model_store_missing_model(models):
    assert not models.exists("modelFileSet", "nothing")
    with pytest.raises(FileNotFoundError, match="modelFileSet"):
        models.load("modelFileSet", "nothing")


def test_model_store_rejects_escaping_paths(models):
    with pytest.raises(ValueError, match="escapes"):
        models.save("modelFileSet", "../../elsewhere", {})
    with pytest.raises(ValueError, match="file set name"):
        models.exists("", "output")


def test_statistics_track_runs_per_app(stats):
    stats.record_run("train", "COMPLETED", {"source": 10, "sink": 0})
    stats.record_run("train", "FAILED", {"source": 10})
    stats.record_run("classify", "COMPLETED", {"source": 4, "compute": 4})

    snapshot = stats.snapshot()
    assert snapshot["runs"] == 3
    assert snapshot["statuses"] == {"COMPLETED": 2, "FAILED": 1}
    assert snapshot["apps"]["train"]["runs"] == 2
    assert snapshot["apps"]["train"]["last_run"]["status"] == "FAILED"
    assert snapshot["apps"]["classify"]["last_run"]["records_out"] == {"source": 4, "compute": 4}


def test_statistics_reset_corrupt_file(tmp_path):
    stats_file = tmp_path / "stats.json"
    stats_file.write_text("{not json", encoding="utf-8")
    stats = StatisticsService(stats_file)

    assert stats.snapshot() == {}
    assert json.loads(stats_file.read_text(encoding="utf-8")) == {}
