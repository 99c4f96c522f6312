"""Concrete implementations for key-value persistence adapters.

Every adapter stores opaque string values under named string keys. The public
API is asynchronous: the blocking primitive of each implementation runs on a
worker thread and any failure surfaces as a ``StorageError``. Reads are
bounded by ``timeout`` seconds; writes always run to completion.
"""

import asyncio
import json
import logging
import os
import sqlite3
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, TypeVar
from urllib.parse import quote

from .errors import StorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 5.0


def _atomic_write(path: Path, text: str) -> None:
    """Writes ``text`` to ``path`` through a sibling temp file and a rename."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def _discard_outcome(task: "asyncio.Future") -> None:
    if not task.cancelled():
        task.exception()


class KeyValue(ABC):
    """Interface for durable get/set/remove over named string keys."""

    def __init__(self, timeout: Optional[float] = DEFAULT_TIMEOUT):
        self.timeout = timeout
        self._locks: Dict[str, asyncio.Lock] = {}

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        """Blocking read of a single key. Returns None when the key is absent."""
        pass

    @abstractmethod
    def write(self, key: str, value: str):
        """Blocking, all-or-nothing write of a single key."""
        pass

    @abstractmethod
    def delete(self, keys: Iterable[str]):
        """Blocking removal of several keys in one batch."""
        pass

    def lock(self, key: str) -> asyncio.Lock:
        """Returns the lock that serializes read-modify-write cycles on ``key``."""
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    async def get(self, key: str) -> Optional[str]:
        return await self._run(f"get {key}", self.read, key)

    async def set(self, key: str, value: str):
        if not isinstance(value, str):
            raise TypeError(f"Values must be strings, got {type(value).__name__}")
        await self._run(f"set {key}", self.write, key, value, mutates=True)

    async def remove(self, keys: Iterable[str]):
        keys = list(keys)
        if keys:
            await self._run(f"remove {', '.join(keys)}", self.delete, keys, mutates=True)

    async def _run(self, op: str, func: Callable[..., T], *args, mutates: bool = False) -> T:
        """Runs ``func`` on a worker thread.

        A read that outlives ``timeout`` fails with ``StorageError``. A write
        cannot be stopped once its thread has started, so a slow write is
        awaited to completion and reports its real outcome; the caller's key
        lock stays held until it has landed.
        """
        task = asyncio.ensure_future(asyncio.to_thread(func, *args))
        try:
            try:
                return await asyncio.wait_for(asyncio.shield(task), self.timeout)
            except asyncio.TimeoutError as exc:
                if not mutates:
                    task.add_done_callback(_discard_outcome)
                    logger.error("Storage %s timed out after %ss", op, self.timeout)
                    raise StorageError(f"Storage operation timed out: {op}") from exc
                logger.warning(
                    "Storage %s still running after %ss; waiting for it", op, self.timeout
                )
                return await task
        except (OSError, sqlite3.Error, ValueError) as exc:
            logger.error("Storage %s failed: %s", op, exc)
            raise StorageError(f"Storage operation failed: {op}: {exc}") from exc


class InMemory(KeyValue):
    """Keeps values in a process-local dictionary."""

    def __init__(self, timeout: Optional[float] = DEFAULT_TIMEOUT):
        super().__init__(timeout)
        self._data: Dict[str, str] = {}

    def read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def write(self, key: str, value: str):
        self._data[key] = value

    def delete(self, keys: Iterable[str]):
        for key in keys:
            self._data.pop(key, None)


class File(KeyValue):
    """Stores each key as its own file inside ``base_dir``."""

    def __init__(self, base_dir: str, timeout: Optional[float] = DEFAULT_TIMEOUT):
        super().__init__(timeout)
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.base_dir / f"{quote(key, safe='')}.json"

    def read(self, key: str) -> Optional[str]:
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def write(self, key: str, value: str):
        _atomic_write(self._path(key), value)

    def delete(self, keys: Iterable[str]):
        for key in keys:
            self._path(key).unlink(missing_ok=True)


class JSONFile(KeyValue):
    """Stores every key in one JSON document on disk.

    Writers in the same process are serialized by a file-wide lock, and each
    rewrite replaces the document atomically.
    """

    def __init__(self, path: str, timeout: Optional[float] = DEFAULT_TIMEOUT):
        super().__init__(timeout)
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file_lock = threading.Lock()

    def _load(self) -> Dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        data = json.loads(raw) if raw.strip() else {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not hold a JSON object")
        return data

    def _dump(self, data: Dict[str, str]):
        _atomic_write(self.path, json.dumps(data, indent=2, ensure_ascii=False))

    def read(self, key: str) -> Optional[str]:
        with self._file_lock:
            return self._load().get(key)

    def write(self, key: str, value: str):
        with self._file_lock:
            data = self._load()
            data[key] = value
            self._dump(data)

    def delete(self, keys: Iterable[str]):
        with self._file_lock:
            data = self._load()
            removed = [key for key in keys if data.pop(key, None) is not None]
            if removed:
                self._dump(data)


class SQLite(KeyValue):
    """Stores values in a single ``kv`` table of an SQLite database."""

    def __init__(self, db_path: str, timeout: Optional[float] = DEFAULT_TIMEOUT):
        super().__init__(timeout)
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute(
                "CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
            )
        conn.close()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, timeout=self.timeout or 5.0)

    def read(self, key: str) -> Optional[str]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        finally:
            conn.close()
        return row[0] if row else None

    def write(self, key: str, value: str):
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    "INSERT INTO kv (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (key, value),
                )
        finally:
            conn.close()

    def delete(self, keys: Iterable[str]):
        conn = self._connect()
        try:
            with conn:
                conn.executemany("DELETE FROM kv WHERE key = ?", [(k,) for k in keys])
        finally:
            conn.close()
