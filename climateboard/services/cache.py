"""TTL response cache over a pluggable key-value store.

Entries are persisted as JSON text, shaped ``{"data": ..., "timestamp": ms}``
(weather) or ``{"alerts": ..., "timestamp": ms}`` (alerts). The in-memory
store is per process; ``JsonFileStore`` survives a restart within the TTL.

Store failures never reach callers: a broken store behaves like an empty one.
"""

import hashlib
import json
import logging
import os
import re
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 600


def _coord(value: float) -> str:
    text = f"{float(value):.3f}"
    return "0.000" if text == "-0.000" else text


def weather_cache_key(lat: float, lon: float) -> str:
    """Rounded to 3 decimals (~100 m) so nearby lookups share a slot."""
    return f"weather_{_coord(lat)}_{_coord(lon)}"


def alerts_cache_key(temperature: Any, air_quality: Any, humidity: Any) -> str:
    return f"alerts_{temperature}_{air_quality}_{humidity}"


class KeyValueStore(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...

    def clear(self) -> None: ...


class MemoryStore:
    def __init__(self):
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def clear(self) -> None:
        self._items.clear()


class JsonFileStore:
    """One ``<key>-<digest>.json`` file per entry under ``directory``.

    The key is sanitised for readability; the digest keeps distinct keys apart.
    """

    _UNSAFE = re.compile(r"[^A-Za-z0-9_.\-]")

    def __init__(self, directory: str | os.PathLike):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]
        return self.directory / f"{self._UNSAFE.sub('_', key)}-{digest}.json"

    def get_item(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)

    def remove_item(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def clear(self) -> None:
        for path in self.directory.glob("*.json"):
            path.unlink(missing_ok=True)


class ResponseCache:
    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        store: KeyValueStore | None = None,
        payload_field: str = "data",
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_ms = int(ttl_seconds * 1000)
        self.payload_field = payload_field
        self._store = store if store is not None else MemoryStore()
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def lookup(self, key: str) -> tuple[bool, Any]:
        """Return ``(found, payload)``; a fresh entry may hold a None payload."""
        try:
            raw = self._store.get_item(key)
            if raw is None:
                logger.debug("Cache miss: %s", key)
                return False, None
            entry = json.loads(raw)
            age_ms = self._now_ms() - entry["timestamp"]
            if age_ms < self.ttl_ms:
                logger.debug("Cache hit: %s (age %.1f min)", key, age_ms / 60000)
                return True, entry[self.payload_field]
            logger.debug("Cache expired: %s", key)
            self._store.remove_item(key)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Error reading cache entry %s: %s", key, e)
        return False, None

    def get(self, key: str) -> Any | None:
        return self.lookup(key)[1]

    def put(self, key: str, payload: Any) -> None:
        try:
            entry = {self.payload_field: payload, "timestamp": self._now_ms()}
            self._store.set_item(key, json.dumps(entry))
        except (OSError, ValueError, TypeError) as e:
            logger.warning("Error caching %s: %s", key, e)

    def delete(self, key: str) -> None:
        try:
            self._store.remove_item(key)
        except OSError as e:
            logger.warning("Error removing cache entry %s: %s", key, e)

    def clear(self) -> None:
        try:
            self._store.clear()
        except OSError as e:
            logger.warning("Error clearing cache: %s", e)
