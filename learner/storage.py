"""
Preference Stores - Key-value persistence backends

The learner only ever persists a small summary (counters, a bounded list of
pattern keys), so the backing store is a plain key -> JSON-able value map:
- MemoryPreferenceStore: process-local, for tests and ephemeral engines
- JsonPreferenceStore: a single JSON file, written on commit
- RedisPreferenceStore: an injected redis client, one key per entry

Any backend fault is raised as StorageError.
"""

import json
import logging
import os
import tempfile
import threading
from typing import Any, Dict

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """A preference store could not be read or written"""


class PreferenceStore:
    """Interface: get / put / commit"""

    def get(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    def put(self, key: str, value: Any):
        raise NotImplementedError

    def commit(self):
        """Flush pending writes; a no-op for write-through stores"""


class MemoryPreferenceStore(PreferenceStore):

    def __init__(self, initial: Dict[str, Any] = None):
        self._lock = threading.Lock()
        self._data: Dict[str, Any] = dict(initial or {})
        self.commits = 0

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def put(self, key: str, value: Any):
        with self._lock:
            self._data[key] = value

    def commit(self):
        with self._lock:
            self.commits += 1

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._data)


class JsonPreferenceStore(PreferenceStore):
    """
    Entries live in memory until commit() rewrites the file. The rewrite goes
    through a temporary file in the same directory, so a crash mid-write
    leaves the previous version intact.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()
        self._data: Dict[str, Any] = self._read()

    def _read(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f"Cannot read preference file {self.path}: {e}")
        if not isinstance(data, dict):
            raise StorageError(f"Preference file {self.path} does not hold an object")
        return data

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def put(self, key: str, value: Any):
        with self._lock:
            self._data[key] = value

    def commit(self):
        with self._lock:
            snapshot = dict(self._data)
        directory = os.path.dirname(os.path.abspath(self.path))
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
            with os.fdopen(fd, 'w') as f:
                json.dump(snapshot, f, indent=2)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StorageError(f"Cannot write preference file {self.path}: {e}")
        logger.debug(f"Committed {len(snapshot)} preferences to {self.path}")


class RedisPreferenceStore(PreferenceStore):
    """Values are JSON-encoded under '<namespace>:<key>'"""

    def __init__(self, redis_client, namespace: str = "learner"):
        if redis_client is None:
            raise ValueError("RedisPreferenceStore requires a redis client")
        self.redis = redis_client
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get(self, key: str, default: Any = None) -> Any:
        try:
            raw = self.redis.get(self._key(key))
        except Exception as e:
            raise StorageError(f"Redis read failed for {key}: {e}")
        if raw is None:
            return default
        if isinstance(raw, bytes):
            raw = raw.decode()
        try:
            return json.loads(raw)
        except ValueError as e:
            raise StorageError(f"Corrupt value stored under {key}: {e}")

    def put(self, key: str, value: Any):
        try:
            self.redis.set(self._key(key), json.dumps(value))
        except Exception as e:
            raise StorageError(f"Redis write failed for {key}: {e}")


def open_store(path: str = None) -> PreferenceStore:
    """JSON file store when a path is given, in-memory otherwise"""
    if path:
        return JsonPreferenceStore(path)
    return MemoryPreferenceStore()
