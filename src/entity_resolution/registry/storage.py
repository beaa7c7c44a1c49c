"""Blob storage backends for alias registries."""

from __future__ import annotations

import hashlib
import re
import threading
from itertools import count
from pathlib import Path
from typing import Dict, Iterator, List, Protocol, runtime_checkable

from ..errors import StorageUnavailable
from ..io import atomic_write
from ..utils.helpers import ensure_directory
from ..utils.logging import get_logger

_LOGGER = get_logger(module=__name__)
_SLUG_RE = re.compile(r"[^a-z0-9]+")


@runtime_checkable
class RegistryStorage(Protocol):
    """Abstract key/blob store holding one serialized entry per id."""

    def list_entries(self) -> Iterator[str]:
        ...

    def read_entry(self, storage_id: str) -> bytes:
        ...

    def write_entry(self, storage_id: str, blob: bytes) -> None:
        ...

    def create_entry(self, blob: bytes, *, hint: str | None = None) -> str:
        ...

    def relocate_entry(self, storage_id: str) -> None:
        ...


def _slugify(text: str) -> str:
    slug = _SLUG_RE.sub("-", text.lower()).strip("-")
    return slug[:48] or "entry"


def storage_id_for(hint: str) -> str:
    """Readable, collision-resistant id derived from an entry key."""

    digest = hashlib.sha1(hint.encode("utf-8")).hexdigest()[:10]
    return f"{_slugify(hint)}-{digest}"


def _unavailable(operation: str, detail: str) -> StorageUnavailable:
    _LOGGER.error("Registry storage operation failed", operation=operation, detail=detail)
    return StorageUnavailable(operation, detail)


class FilesystemRegistryStorage:
    """One JSON file per entry under ``entries/``; removed entries move to ``deleted/``."""

    suffix = ".json"

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).expanduser()
        self.entries_dir = self.root / "entries"
        self.deleted_dir = self.root / "deleted"
        try:
            ensure_directory(self.entries_dir)
            ensure_directory(self.deleted_dir)
        except OSError as exc:
            raise _unavailable("init", str(exc)) from exc

    def _path(self, storage_id: str) -> Path:
        return self.entries_dir / f"{storage_id}{self.suffix}"

    def list_entries(self) -> Iterator[str]:
        try:
            paths = sorted(self.entries_dir.glob(f"*{self.suffix}"))
        except OSError as exc:
            raise _unavailable("list", str(exc)) from exc
        for path in paths:
            yield path.stem

    def read_entry(self, storage_id: str) -> bytes:
        try:
            return self._path(storage_id).read_bytes()
        except OSError as exc:
            raise _unavailable("read", f"{storage_id}: {exc}") from exc

    def write_entry(self, storage_id: str, blob: bytes) -> None:
        text = blob.decode("utf-8")
        try:
            atomic_write(self._path(storage_id), lambda handle: handle.write(text))
        except OSError as exc:
            raise _unavailable("write", f"{storage_id}: {exc}") from exc

    def create_entry(self, blob: bytes, *, hint: str | None = None) -> str:
        base = storage_id_for(hint) if hint else "entry"
        storage_id = base
        for attempt in count(1):
            if not self._path(storage_id).exists():
                break
            storage_id = f"{base}-{attempt}"
        self.write_entry(storage_id, blob)
        _LOGGER.debug("Created registry entry", storage_id=storage_id, root=str(self.root))
        return storage_id

    def relocate_entry(self, storage_id: str) -> None:
        source = self._path(storage_id)
        target = self.deleted_dir / source.name
        for attempt in count(1):
            if not target.exists():
                break
            target = self.deleted_dir / f"{storage_id}.{attempt}{self.suffix}"
        try:
            source.replace(target)
        except OSError as exc:
            raise _unavailable("relocate", f"{storage_id}: {exc}") from exc
        _LOGGER.debug("Relocated registry entry", storage_id=storage_id, target=str(target))


class InMemoryRegistryStorage:
    """Dictionary-backed storage used by tests and throwaway registries."""

    def __init__(self) -> None:
        self._blobs: Dict[str, bytes] = {}
        self.deleted: Dict[str, bytes] = {}
        self._counter = count(1)
        self._lock = threading.Lock()

    def list_entries(self) -> Iterator[str]:
        with self._lock:
            ids: List[str] = sorted(self._blobs)
        return iter(ids)

    def read_entry(self, storage_id: str) -> bytes:
        with self._lock:
            try:
                return self._blobs[storage_id]
            except KeyError as exc:
                raise _unavailable("read", f"unknown entry {storage_id}") from exc

    def write_entry(self, storage_id: str, blob: bytes) -> None:
        with self._lock:
            self._blobs[storage_id] = bytes(blob)

    def create_entry(self, blob: bytes, *, hint: str | None = None) -> str:
        with self._lock:
            storage_id = f"entry-{next(self._counter):06d}"
            self._blobs[storage_id] = bytes(blob)
        return storage_id

    def relocate_entry(self, storage_id: str) -> None:
        with self._lock:
            try:
                self.deleted[storage_id] = self._blobs.pop(storage_id)
            except KeyError as exc:
                raise _unavailable("relocate", f"unknown entry {storage_id}") from exc


__all__ = [
    "RegistryStorage",
    "FilesystemRegistryStorage",
    "InMemoryRegistryStorage",
    "storage_id_for",
]
