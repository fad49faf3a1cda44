"""Key-value store implementations.

Values are kept as JSON text so both stores behave the same way: callers
always receive fresh copies, and unreadable data is reported as absent.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from domain.repositories import KeyValueStore

logger = logging.getLogger(__name__)


class InMemoryKeyValueStore(KeyValueStore):
    """In-memory implementation of KeyValueStore"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._storage: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[Any]:
        raw = self._storage.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable value for key %s", key)
            return None

    async def set(self, key: str, value: Any) -> None:
        self._storage[key] = json.dumps(value)


class JsonFileKeyValueStore(KeyValueStore):
    """One JSON document per key inside a directory"""

    def __init__(self, directory: str):
        self._directory = Path(directory)
        self._directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self._directory / f"{key}.json"

    async def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except ValueError:
            logger.warning("Discarding unreadable file %s", path)
            return None

    async def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(value), encoding="utf-8")
        tmp.replace(path)
