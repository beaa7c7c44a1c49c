"""Name comparison for individuals and single-string entity names."""

from __future__ import annotations

from typing import Dict

from ..config.policies import NameWeights
from ..entities.records import EntityName, IndividualName
from ..utils.similarity import StringSimilarity
from .engine import WeightedComparisonEngine, WeightedScore

_NAME_PARTS = ("last", "first", "other")


class NameComparator:
    def __init__(
        self,
        weights: NameWeights | None = None,
        similarity: StringSimilarity | None = None,
    ) -> None:
        self.weights = weights or NameWeights()
        self.similarity = similarity or StringSimilarity()
        self.engine = WeightedComparisonEngine(self.weights.as_map(), label="name")

    def evaluate_individual(self, left: IndividualName, right: IndividualName) -> WeightedScore:
        """Weighted last/first/other similarity.

        A part blank on both sides is skipped; a part present on only one side
        scores zero.
        """

        scores: Dict[str, float] = {}
        for part in _NAME_PARTS:
            value_left = getattr(left, part)
            value_right = getattr(right, part)
            if not value_left and not value_right:
                continue
            scores[part] = self.similarity(value_left, value_right)
        return self.engine.combine(scores)

    def compare_individual(self, left: IndividualName, right: IndividualName) -> float | None:
        result = self.evaluate_individual(left, right)
        return result.score if result.has_data else None

    def compare_entity(self, left: EntityName, right: EntityName) -> float:
        return self.similarity(left.value, right.value)

    def compare_display(self, left: str, right: str) -> float | None:
        """Compare names of different kinds through their display strings."""

        if not left or not right:
            return None
        return self.similarity(left, right)


__all__ = ["NameComparator"]
