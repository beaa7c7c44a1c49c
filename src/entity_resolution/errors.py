"""Error hierarchy shared by comparators, registries, and storage backends."""

from __future__ import annotations


class ResolutionError(RuntimeError):
    """Base class for every error raised by the resolution core."""


class TypeMismatch(ResolutionError):
    """Raised when two comparable values of incompatible kinds are compared."""

    def __init__(self, left_kind: object, right_kind: object, *, field: str | None = None) -> None:
        self.left_kind = left_kind
        self.right_kind = right_kind
        self.field = field
        location = f" in field '{field}'" if field else ""
        super().__init__(f"Cannot compare {left_kind} with {right_kind}{location}")


class RegistryError(ResolutionError):
    """Base class for alias registry invariant violations."""

    def __init__(self, key: str, message: str) -> None:
        self.key = key
        super().__init__(message)


class DuplicateKey(RegistryError):
    """Raised when adding an entry whose primary key is already registered."""

    def __init__(self, key: str, message: str | None = None) -> None:
        super().__init__(key, message or f"Primary key '{key}' already exists in the registry")


class AlreadyExists(RegistryError):
    """Raised when a reassignment targets a key that is already a primary elsewhere."""

    def __init__(self, key: str) -> None:
        super().__init__(key, f"Key '{key}' is already a primary key in the registry")


class NotFound(RegistryError):
    """Raised when a mutation names a key the registry does not hold."""

    def __init__(self, key: str) -> None:
        super().__init__(key, f"Key '{key}' was not found in the registry")


class StorageUnavailable(ResolutionError):
    """Raised when the registry storage backend cannot complete an operation."""

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Registry storage failed during {operation}: {detail}")


__all__ = [
    "ResolutionError",
    "TypeMismatch",
    "RegistryError",
    "DuplicateKey",
    "AlreadyExists",
    "NotFound",
    "StorageUnavailable",
]
