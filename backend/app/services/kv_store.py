"""
Durable key-value persistence for usage counters and ledger snapshots.

Every backend honours the same contract:
    get(key)        -> serialized string | None
    set(key, value) -> True on success, False on failure

Backend failures are logged and degrade to "absent" — they never raise into
the ledger code.
"""
import json
import logging
import os
import tempfile
import threading
from typing import Dict, Optional

logger = logging.getLogger("sitebook-kv")


class KeyValueStore:
    """Base class; subclasses implement _get/_set and may raise freely."""

    name = "base"

    def get(self, key: str) -> Optional[str]:
        try:
            return self._get(key)
        except Exception as e:
            logger.warning(f"KV read failed ({self.name}) for key {key!r}: {e}")
            return None

    def set(self, key: str, value: str) -> bool:
        try:
            self._set(key, value)
            return True
        except Exception as e:
            logger.warning(f"KV write failed ({self.name}) for key {key!r}: {e}")
            return False

    def _get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def _set(self, key: str, value: str) -> None:
        raise NotImplementedError


class InMemoryStore(KeyValueStore):
    name = "memory"

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def _get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def _set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStore(KeyValueStore):
    """
    All keys live in one JSON object on disk. Each set() rewrites the whole
    file through a temp file + os.replace so a crash never leaves half a
    document behind.
    """

    name = "file"

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def _read_all(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not hold a JSON object")
        return data

    def _get(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def _set(self, key: str, value: str) -> None:
        with self._lock:
            try:
                data = self._read_all()
            except ValueError as e:
                # Unreadable document: start over rather than lose every future write
                logger.warning(f"Discarding corrupt KV file {self.path}: {e}")
                data = {}
            data[key] = value
            directory = os.path.dirname(self.path) or "."
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".kv-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f)
                os.replace(tmp_path, self.path)
            except Exception:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise


class RedisStore(KeyValueStore):
    name = "redis"

    def __init__(self, url: str = "redis://localhost:6379/0", client=None, prefix: str = "sitebook:"):
        if client is None:
            import redis
            client = redis.Redis.from_url(url, socket_timeout=2.0, decode_responses=True)
        self._client = client
        self._prefix = prefix

    def _get(self, key: str) -> Optional[str]:
        value = self._client.get(self._prefix + key)
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    def _set(self, key: str, value: str) -> None:
        self._client.set(self._prefix + key, value)


def build_store(backend: str = "file", file_path: str = "", redis_url: str = "") -> KeyValueStore:
    """Pick a backend from configuration; unknown names fall back to memory."""
    backend = (backend or "memory").lower()
    if backend == "file" and file_path:
        return JsonFileStore(file_path)
    if backend == "redis":
        try:
            return RedisStore(redis_url or "redis://localhost:6379/0")
        except Exception as e:
            logger.warning(f"Redis store unavailable ({e}) — using in-memory store")
            return InMemoryStore()
    if backend not in ("memory", "file"):
        logger.warning(f"Unknown KV_BACKEND {backend!r} — using in-memory store")
    return InMemoryStore()
