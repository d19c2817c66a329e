"""Key-value storage backends and the JSON persistence adapter."""

import json
import os
import re
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Protocol

from clinic.exceptions import PersistenceError, StorageQuotaExceededError
from clinic.utils.logging import get_logger

logger = get_logger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class StorageBackend(Protocol):
    """Interface for durable key-value storage of string blobs."""

    def get_item(self, key: str) -> str | None:
        """Return the value stored under ``key``, or None if never written."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Replace the value stored under ``key``.

        Raises:
            OSError or StorageQuotaExceededError if the value cannot be stored
        """
        ...

    def remove_item(self, key: str) -> None:
        """Remove ``key``; removing a missing key is not an error."""
        ...

    def clear(self) -> None:
        """Remove every key."""
        ...


class InMemoryStorage:
    """Dict-backed storage for tests and throwaway sessions.

    An optional quota mimics the size limit of browser local storage: a write
    that would push the total UTF-8 encoded size over it is refused.
    """

    def __init__(self, quota_bytes: int | None = None):
        """Initialize empty storage with an optional size quota."""
        self.items: dict[str, str] = {}
        self.quota_bytes = quota_bytes

    def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            used = sum(_size(v) for k, v in self.items.items() if k != key)
            if used + _size(value) > self.quota_bytes:
                raise StorageQuotaExceededError(key, f"quota of {self.quota_bytes} bytes exceeded")
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)

    def clear(self) -> None:
        self.items.clear()


class FileStorage:
    """Directory-backed storage keeping one ``<key>.json`` file per key.

    Writes land in a temporary file that is then renamed over the target, so
    a reader sees either the old or the new document, never a partial one.
    """

    def __init__(self, directory: str | Path):
        """Initialize storage rooted at ``directory`` (created if missing)."""
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def get_item(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def remove_item(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def clear(self) -> None:
        for path in self.directory.glob("*.json"):
            path.unlink(missing_ok=True)

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"


class PersistenceAdapter:
    """Reads and writes named collections as JSON arrays.

    This is the only component that talks to a storage backend.
    """

    def __init__(self, backend: StorageBackend):
        """Initialize adapter over a storage backend."""
        self.backend = backend

    def exists(self, key: str) -> bool:
        """Check whether ``key`` has ever been saved."""
        return self.backend.get_item(key) is not None

    def load(self, key: str) -> list[dict[str, Any]]:
        """Load the collection stored under ``key``.

        Returns:
            The stored documents, or an empty list if the key was never saved

        Raises:
            PersistenceError: If the stored value is unreadable or not a JSON array
        """
        try:
            raw = self.backend.get_item(key)
        except OSError as e:
            raise PersistenceError(key, str(e)) from e

        if raw is None:
            return []

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise PersistenceError(key, f"stored value is not valid JSON ({e})") from e

        if not isinstance(data, list):
            raise PersistenceError(key, "stored value is not a JSON array")
        return data

    def save(self, key: str, records: Sequence[dict[str, Any]]) -> None:
        """Replace the collection stored under ``key``.

        Raises:
            PersistenceError: If the records cannot be serialized or stored
        """
        try:
            payload = json.dumps(list(records), ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise PersistenceError(key, f"records are not JSON serializable ({e})") from e

        try:
            self.backend.set_item(key, payload)
        except PersistenceError:
            raise
        except OSError as e:
            raise PersistenceError(key, str(e)) from e

        logger.debug(f"Saved {len(records)} records under '{key}'")

    def clear(self, key: str) -> None:
        """Remove the collection stored under ``key``."""
        try:
            self.backend.remove_item(key)
        except OSError as e:
            raise PersistenceError(key, str(e)) from e


def _size(value: str) -> int:
    return len(value.encode("utf-8"))
