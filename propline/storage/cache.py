"""TTL caches for upstream responses."""

from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union
import hashlib
import json
import logging
import threading
import time

logger = logging.getLogger(__name__)


class CacheStore:
    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        raise NotImplementedError

    def invalidate(self, key: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemoryCache(CacheStore):
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._data: Dict[str, Tuple[Any, float]] = {}
        self._clock = clock
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._data[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        with self._lock:
            self._data[key] = (value, self._clock() + ttl_seconds)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()


class FileCache(CacheStore):
    """JSON-on-disk cache; values must be JSON serializable."""

    def __init__(self, cache_dir: Union[str, Path]) -> None:
        self._dir = Path(cache_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        path = self._path_for_key(key)
        if not path.exists():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.debug("Discarding unreadable cache entry %s: %s", path.name, exc)
            return None
        if time.time() >= float(payload.get("expires_at", 0)):
            path.unlink(missing_ok=True)
            return None
        return payload.get("value")

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        payload = {
            "key": key,
            "expires_at": time.time() + ttl_seconds,
            "value": value,
        }
        path = self._path_for_key(key)
        tmp_path = path.with_suffix(".tmp")
        with self._lock:
            tmp_path.write_text(json.dumps(payload), encoding="utf-8")
            tmp_path.replace(path)

    def invalidate(self, key: str) -> None:
        self._path_for_key(key).unlink(missing_ok=True)

    def clear(self) -> None:
        with self._lock:
            for path in self._dir.glob("*.json"):
                path.unlink(missing_ok=True)

    def _path_for_key(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._dir / f"{digest}.json"
