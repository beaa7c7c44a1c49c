"""Character-level similarity metrics used by every field comparator."""

from __future__ import annotations

from functools import lru_cache, partial
from typing import NamedTuple, Tuple

import jellyfish

from ..config.policies import SimilarityPolicy
from .helpers import normalize_for_comparison


class CostTable(NamedTuple):
    """Hashable snapshot of the edit costs so results can be cached."""

    vowels: str
    vowel_vowel: float
    vowel_consonant: float
    consonant_consonant: float
    other: float
    insertion: float
    deletion: float

    @classmethod
    def from_policy(cls, policy: SimilarityPolicy) -> "CostTable":
        costs = policy.costs
        return cls(
            vowels=policy.vowels,
            vowel_vowel=costs.vowel_vowel,
            vowel_consonant=costs.vowel_consonant,
            consonant_consonant=costs.consonant_consonant,
            other=costs.other,
            insertion=costs.insertion,
            deletion=costs.deletion,
        )


DEFAULT_COST_TABLE = CostTable.from_policy(SimilarityPolicy())


def _ordered_pair(text1: str, text2: str) -> Tuple[str, str]:
    """Return a deterministic ordering of two strings for cache keys."""

    return (text1, text2) if text1 <= text2 else (text2, text1)


def substitution_cost(ch1: str, ch2: str, table: CostTable = DEFAULT_COST_TABLE) -> float:
    """Cost of replacing ``ch1`` with ``ch2`` under the vowel-weighted table."""

    if ch1 == ch2:
        return 0.0
    vowel_1 = ch1 in table.vowels
    vowel_2 = ch2 in table.vowels
    if vowel_1 and vowel_2:
        return table.vowel_vowel
    if ch1.isalpha() and ch2.isalpha():
        return table.vowel_consonant if vowel_1 != vowel_2 else table.consonant_consonant
    return table.other


def weighted_edit_distance(text1: str, text2: str, table: CostTable = DEFAULT_COST_TABLE) -> float:
    """Levenshtein distance with vowel-aware substitution costs.

    Inputs are used as given; callers normalise them first.
    """

    if text1 == text2:
        return 0.0
    if not text1:
        return len(text2) * table.insertion
    if not text2:
        return len(text1) * table.deletion

    previous = [index * table.insertion for index in range(len(text2) + 1)]
    for row, ch1 in enumerate(text1, start=1):
        current = [row * table.deletion]
        for column, ch2 in enumerate(text2, start=1):
            current.append(
                min(
                    previous[column] + table.deletion,
                    current[column - 1] + table.insertion,
                    previous[column - 1] + substitution_cost(ch1, ch2, table),
                )
            )
        previous = current
    return previous[-1]


def _vowel_weighted_score(text1: str, text2: str, table: CostTable) -> float:
    distance = weighted_edit_distance(text1, text2, table)
    score = 1.0 - distance / max(len(text1), len(text2))
    return min(1.0, max(0.0, score))


def vowel_weighted_similarity(
    text1: str | None,
    text2: str | None,
    table: CostTable = DEFAULT_COST_TABLE,
) -> float:
    """Return ``1 - distance / max(len)`` for two case-folded, trimmed strings.

    Two empty strings are a perfect match; exactly one empty string is no match.
    """

    normalized_1 = normalize_for_comparison(text1)
    normalized_2 = normalize_for_comparison(text2)
    if not normalized_1 and not normalized_2:
        return 1.0
    if not normalized_1 or not normalized_2:
        return 0.0
    if normalized_1 == normalized_2:
        return 1.0
    ordered_1, ordered_2 = _ordered_pair(normalized_1, normalized_2)
    return _vowel_weighted_score(ordered_1, ordered_2, table)


def jaro_winkler_similarity(text1: str | None, text2: str | None) -> float:
    """Jaro-Winkler similarity with the same empty-string conventions."""

    normalized_1 = normalize_for_comparison(text1)
    normalized_2 = normalize_for_comparison(text2)
    if not normalized_1 and not normalized_2:
        return 1.0
    if not normalized_1 or not normalized_2:
        return 0.0
    ordered_1, ordered_2 = _ordered_pair(normalized_1, normalized_2)
    return min(1.0, max(0.0, jellyfish.jaro_winkler_similarity(ordered_1, ordered_2)))


class StringSimilarity:
    """Policy-bound similarity callable shared by the field comparators.

    Scores are memoised per instance on the order-normalised input pair, in an
    LRU cache of ``policy.cache_size`` entries (0 disables it).
    """

    def __init__(self, policy: SimilarityPolicy | None = None) -> None:
        self.policy = policy or SimilarityPolicy()
        self.table = CostTable.from_policy(self.policy)
        if self.policy.metric == "jaro_winkler":
            metric = jaro_winkler_similarity
        else:
            metric = partial(vowel_weighted_similarity, table=self.table)
        self._score = lru_cache(maxsize=self.policy.cache_size)(metric)

    def __call__(self, text1: str | None, text2: str | None) -> float:
        return self._score(*_ordered_pair(text1 or "", text2 or ""))

    def cache_info(self):
        return self._score.cache_info()

    def best_of(self, text: str | None, candidates: "list[str] | tuple[str, ...]") -> float:
        """Highest similarity between ``text`` and any candidate (0.0 when none)."""

        return max((self(text, candidate) for candidate in candidates), default=0.0)


__all__ = [
    "CostTable",
    "DEFAULT_COST_TABLE",
    "StringSimilarity",
    "substitution_cost",
    "weighted_edit_distance",
    "vowel_weighted_similarity",
    "jaro_winkler_similarity",
]
