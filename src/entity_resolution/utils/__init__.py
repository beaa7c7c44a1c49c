"""Utility helpers shared across entity resolution modules."""

from .helpers import (
    ensure_directory,
    fold_diacritics,
    normalize_for_comparison,
    normalize_key,
    normalize_whitespace,
    stable_shuffle,
)
from .logging import configure_logging, get_logger, log_timing, logging_context
from .similarity import (
    CostTable,
    StringSimilarity,
    jaro_winkler_similarity,
    vowel_weighted_similarity,
    weighted_edit_distance,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "log_timing",
    "logging_context",
    "ensure_directory",
    "fold_diacritics",
    "normalize_for_comparison",
    "normalize_key",
    "normalize_whitespace",
    "stable_shuffle",
    "CostTable",
    "StringSimilarity",
    "jaro_winkler_similarity",
    "vowel_weighted_similarity",
    "weighted_edit_distance",
]
