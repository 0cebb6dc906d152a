"""Recent-instruction history persisted in a small JSON key-value file."""
from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from pathlib import Path
from threading import RLock
from typing import IO, Any, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)

_STATE_DIR_ENV = "ASKEXCEL_STATE_DIR"
_DEFAULT_STATE_SUBDIR = "askexcel"
_STORAGE_FILENAME = "storage.json"

HISTORY_KEY = "history"
HISTORY_LIMIT = 10


def state_directory(override: Path | None = None) -> Path:
    if override is not None:
        path = override
    else:
        env = os.environ.get(_STATE_DIR_ENV)
        if env:
            path = Path(env).expanduser().resolve()
        else:
            path = Path.home() / f".{_DEFAULT_STATE_SUBDIR}"
    path.mkdir(parents=True, exist_ok=True)
    return path


class KeyValueStore:
    """String keys to string values, stored as one JSON object on disk.

    Every read-modify-write runs inside :meth:`transaction`, which holds an
    in-process ``RLock`` and an exclusive ``flock`` on a sidecar lock file so
    separate ``askexcel`` processes are serialized too.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or state_directory() / _STORAGE_FILENAME
        self._lock_path = self._path.with_name(self._path.name + ".lock")
        self._lock = RLock()
        self._depth = 0
        self._lock_file: Optional[IO[str]] = None

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            # flock is per open file; only the outermost entry takes it.
            if self._depth == 0:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                self._lock_file = open(self._lock_path, "a+", encoding="utf-8")
                try:
                    fcntl.flock(self._lock_file.fileno(), fcntl.LOCK_EX)
                except OSError:
                    self._lock_file.close()
                    self._lock_file = None
                    raise
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
                if self._depth == 0 and self._lock_file is not None:
                    fcntl.flock(self._lock_file.fileno(), fcntl.LOCK_UN)
                    self._lock_file.close()
                    self._lock_file = None

    def get(self, key: str) -> Optional[str]:
        with self.transaction():
            value = self._read().get(key)
            return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        with self.transaction():
            data = self._read()
            data[key] = value
            self._write(data)

    def delete(self, key: str) -> None:
        with self.transaction():
            data = self._read()
            if data.pop(key, None) is not None:
                self._write(data)

    def _read(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable store %s: %s", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any]) -> None:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=self._path.parent,
            prefix=f".{self._path.stem}-",
            suffix=".tmp",
            delete=False,
        ) as handle:
            json.dump(data, handle, indent=2)
            tmp_path = Path(handle.name)
        try:
            os.replace(tmp_path, self._path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise


@dataclass(frozen=True)
class HistoryEntry:
    instruction: str
    timestamp: int

    @classmethod
    def from_dict(cls, data: Any) -> Optional["HistoryEntry"]:
        if not isinstance(data, dict):
            return None
        instruction = data.get("instruction")
        timestamp = data.get("timestamp")
        if not isinstance(instruction, str) or not isinstance(timestamp, (int, float)):
            return None
        return cls(instruction=instruction, timestamp=int(timestamp))


class HistoryStore:
    """Newest-first, de-duplicated, capped list of submitted instructions."""

    def __init__(self, store: KeyValueStore | None = None, *, limit: int = HISTORY_LIMIT) -> None:
        self._store = store or KeyValueStore()
        self._limit = limit

    def entries(self) -> List[HistoryEntry]:
        with self._store.transaction():
            return self._load()

    def record(self, instruction: str, *, timestamp: int | None = None) -> List[HistoryEntry]:
        stamp = int(time.time() * 1000) if timestamp is None else int(timestamp)
        with self._store.transaction():
            current = [entry for entry in self._load() if entry.instruction != instruction]
            updated = [HistoryEntry(instruction, stamp), *current][: self._limit]
            self._store.set(HISTORY_KEY, json.dumps([asdict(entry) for entry in updated]))
            return updated

    def clear(self) -> None:
        with self._store.transaction():
            self._store.delete(HISTORY_KEY)

    def _load(self) -> List[HistoryEntry]:
        raw = self._store.get(HISTORY_KEY)
        if not raw:
            return []
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding corrupt history payload")
            return []
        if not isinstance(payload, list):
            return []
        entries: List[HistoryEntry] = []
        seen: set[str] = set()
        for item in payload:
            entry = HistoryEntry.from_dict(item)
            if entry is None or entry.instruction in seen:
                continue
            seen.add(entry.instruction)
            entries.append(entry)
        return entries[: self._limit]


__all__ = ["HISTORY_KEY", "HISTORY_LIMIT", "HistoryEntry", "HistoryStore", "KeyValueStore", "state_directory"]
