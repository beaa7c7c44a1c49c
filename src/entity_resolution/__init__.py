"""Entity resolution: record comparison, grouping, and canonical-name registries."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("entity-resolution")
except PackageNotFoundError:  # pragma: no cover - running from a source checkout
    __version__ = "0.1.0"

from .config.settings import Settings
from .errors import (
    AlreadyExists,
    DuplicateKey,
    NotFound,
    RegistryError,
    ResolutionError,
    StorageUnavailable,
    TypeMismatch,
)

__all__ = [
    "__version__",
    "Settings",
    "ResolutionError",
    "TypeMismatch",
    "RegistryError",
    "DuplicateKey",
    "AlreadyExists",
    "NotFound",
    "StorageUnavailable",
]
