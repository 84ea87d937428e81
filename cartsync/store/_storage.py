"""
Storage port — where the serialized cart lives.

Storage — key → blob persistence, synchronous like browser storage.
Faults are raised as StorageError; CartStore absorbs them.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Protocol, runtime_checkable


# ═══════════════════════════════════════════════════════════════════════════════
# Storage Error
# ═══════════════════════════════════════════════════════════════════════════════


class StorageError(Exception):
    """Persistence failure (quota exceeded, I/O error, database error)."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class QuotaExceededError(StorageError):
    """Blob does not fit in the remaining storage space."""


# ═══════════════════════════════════════════════════════════════════════════════
# Storage Protocol
# ═══════════════════════════════════════════════════════════════════════════════


@runtime_checkable
class Storage(Protocol):
    """
    Key/blob persistence protocol.

    Note: Every write replaces the whole blob — no partial persistence.

    Example — Redis implementation:

        class RedisStorage:
            def __init__(self, client: redis.Redis):
                self.client = client

            def read(self, key: str) -> str | None:
                value = self.client.get(key)
                return value.decode() if value is not None else None

            def write(self, key: str, blob: str) -> None:
                self.client.set(key, blob)

            def remove(self, key: str) -> None:
                self.client.delete(key)
    """

    def read(self, key: str) -> str | None:
        """Return the stored blob, or None if absent."""
        ...

    def write(self, key: str, blob: str) -> None:
        """Replace the blob stored under key."""
        ...

    def remove(self, key: str) -> None:
        """Delete key. Missing keys are not an error."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Storage: For Testing
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryStorage:
    """
    In-memory storage.

    Note: Single process only; contents vanish with the object.
    quota (bytes, summed over all keys) simulates a full browser storage.
    """

    def __init__(self, quota: int | None = None) -> None:
        self._blobs: dict[str, str] = {}
        self._quota = quota

    def read(self, key: str) -> str | None:
        return self._blobs.get(key)

    def write(self, key: str, blob: str) -> None:
        if self._quota is not None:
            used = sum(len(v.encode()) for k, v in self._blobs.items() if k != key)
            if used + len(blob.encode()) > self._quota:
                raise QuotaExceededError(
                    f"Storage quota of {self._quota} bytes exceeded writing {key!r}"
                )
        self._blobs[key] = blob

    def remove(self, key: str) -> None:
        self._blobs.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._blobs)


# ═══════════════════════════════════════════════════════════════════════════════
# File Storage: one JSON file per key
# ═══════════════════════════════════════════════════════════════════════════════


class FileStorage:
    """
    Directory-backed storage: each key is a file named <key>.json.

    Writes go to a temporary file first and are moved into place, so a
    crash mid-write never leaves a truncated cart behind.
    """

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key in {".", ".."}:
            raise ValueError(f"Invalid storage key: {key!r}")
        return self._directory / f"{key}.json"

    def read(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read {path}", e) from e

    def write(self, key: str, blob: str) -> None:
        path = self._path(key)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self._directory, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(blob)
                os.replace(tmp, path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write {path}", e) from e

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to remove {path}", e) from e


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "StorageError",
    "QuotaExceededError",
    "Storage",
    "MemoryStorage",
    "FileStorage",
)
