from __future__ import annotations

import json
import multiprocessing
import threading
from pathlib import Path

import pytest

from askexcel.history import HISTORY_KEY, HistoryStore, KeyValueStore, state_directory


@pytest.fixture
def store(tmp_path: Path) -> KeyValueStore:
    return KeyValueStore(tmp_path / "storage.json")


def test_record_puts_newest_first(store: KeyValueStore) -> None:
    history = HistoryStore(store)
    history.record("bold row 1", timestamp=1)
    history.record("autofit columns", timestamp=2)

    assert [entry.instruction for entry in history.entries()] == ["autofit columns", "bold row 1"]


def test_resubmission_moves_entry_to_front(store: KeyValueStore) -> None:
    history = HistoryStore(store)
    history.record("a", timestamp=1)
    history.record("b", timestamp=2)
    entries = history.record("a", timestamp=3)

    assert [(entry.instruction, entry.timestamp) for entry in entries] == [("a", 3), ("b", 2)]


def test_history_is_capped_at_ten(store: KeyValueStore) -> None:
    history = HistoryStore(store)
    for index in range(15):
        history.record(f"instruction {index}", timestamp=index)

    entries = history.entries()
    assert len(entries) == 10
    assert entries[0].instruction == "instruction 14"
    assert entries[-1].instruction == "instruction 5"


def test_history_persists_as_json_array(store: KeyValueStore) -> None:
    HistoryStore(store).record("freeze top row", timestamp=1700000000000)

    on_disk = json.loads(store.path.read_text(encoding="utf-8"))
    assert json.loads(on_disk[HISTORY_KEY]) == [{"instruction": "freeze top row", "timestamp": 1700000000000}]
    assert [entry.instruction for entry in HistoryStore(KeyValueStore(store.path)).entries()] == ["freeze top row"]


def test_clear_removes_history(store: KeyValueStore) -> None:
    history = HistoryStore(store)
    history.record("bold row 1")
    history.clear()

    assert history.entries() == []
    assert store.get(HISTORY_KEY) is None


def test_corrupt_store_reads_as_empty(tmp_path: Path) -> None:
    path = tmp_path / "storage.json"
    path.write_text("{not json", encoding="utf-8")
    assert HistoryStore(KeyValueStore(path)).entries() == []

    path.write_text(json.dumps({HISTORY_KEY: "[1, {\"instruction\": 5}]"}), encoding="utf-8")
    assert HistoryStore(KeyValueStore(path)).entries() == []


def test_loaded_duplicates_are_collapsed(store: KeyValueStore) -> None:
    payload = [
        {"instruction": "a", "timestamp": 3},
        {"instruction": "b", "timestamp": 2},
        {"instruction": "a", "timestamp": 1},
    ]
    store.set(HISTORY_KEY, json.dumps(payload))

    assert [(entry.instruction, entry.timestamp) for entry in HistoryStore(store).entries()] == [("a", 3), ("b", 2)]


def test_concurrent_records_do_not_lose_updates(store: KeyValueStore) -> None:
    history = HistoryStore(store)
    threads = [
        threading.Thread(target=history.record, args=(f"instruction {index}",), kwargs={"timestamp": index})
        for index in range(8)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(entry.instruction for entry in history.entries()) == sorted(f"instruction {index}" for index in range(8))


def _record_many(path: str, worker: int, count: int) -> None:
    history = HistoryStore(KeyValueStore(Path(path)), limit=100)
    for round_ in range(count):
        history.record(f"w{worker}-r{round_}")


def test_separate_processes_do_not_lose_updates(tmp_path: Path) -> None:
    path = tmp_path / "storage.json"
    ctx = multiprocessing.get_context("spawn")
    workers = [ctx.Process(target=_record_many, args=(str(path), index, 20)) for index in range(4)]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join(timeout=60)

    assert [worker.exitcode for worker in workers] == [0, 0, 0, 0]
    instructions = {entry.instruction for entry in HistoryStore(KeyValueStore(path), limit=100).entries()}
    assert instructions == {f"w{index}-r{round_}" for index in range(4) for round_ in range(20)}
    assert list(tmp_path.glob("*.tmp")) == []


def test_state_directory_honours_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    target = tmp_path / "state"
    monkeypatch.setenv("ASKEXCEL_STATE_DIR", str(target))

    assert state_directory() == target.resolve()
    assert target.is_dir()
    assert KeyValueStore().path == target.resolve() / "storage.json"
