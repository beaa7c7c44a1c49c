"""General-purpose helpers for deterministic record processing."""

from __future__ import annotations

import random
import re
import unicodedata
from pathlib import Path
from typing import List, Sequence, TypeVar

T = TypeVar("T")
_WORD_BOUNDARY_PATTERN = re.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    """Collapse repeated whitespace into single spaces."""

    return _WORD_BOUNDARY_PATTERN.sub(" ", text.strip())


def fold_diacritics(text: str) -> str:
    """Remove diacritics by decomposing unicode characters."""

    normalized = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in normalized if not unicodedata.combining(ch))


def normalize_key(value: str) -> str:
    """Return the registry key form of a term: trimmed and upper-cased."""

    return value.strip().upper()


def normalize_for_comparison(value: str | None) -> str:
    """Case-fold and trim a field value before scoring it."""

    if not value:
        return ""
    return normalize_whitespace(fold_diacritics(value)).casefold()


def ensure_directory(path: Path | str) -> Path:
    """Ensure that a directory exists and return the resolved Path."""

    target = Path(path)
    target.mkdir(parents=True, exist_ok=True)
    return target.resolve()


def stable_shuffle(items: Sequence[T], seed: int) -> List[T]:
    """Return a deterministically shuffled copy of the input sequence."""

    result = list(items)
    random.Random(seed).shuffle(result)
    return result


__all__ = [
    "normalize_whitespace",
    "fold_diacritics",
    "normalize_key",
    "normalize_for_comparison",
    "ensure_directory",
    "stable_shuffle",
]
