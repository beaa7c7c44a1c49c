"""Weighted aggregation of field similarities with conditional re-weighting."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional, Tuple

from ..config.policies import BoostPolicy
from ..entities.records import Comparable
from ..errors import TypeMismatch

FieldComparator = Callable[[Comparable, Comparable], Optional[float]]


@dataclass
class WeightedScore:
    """Outcome of one weighted comparison."""

    score: float
    components: Dict[str, float]
    base_weights: Dict[str, float]
    weights: Dict[str, float]
    adjustment: str | None = None
    adjusted_field: str | None = None

    @property
    def compared_fields(self) -> Tuple[str, ...]:
        return tuple(self.components)

    @property
    def has_data(self) -> bool:
        return bool(self.components)

    def component(self, name: str) -> float | None:
        return self.components.get(name)

    def effective_weights(self) -> Dict[str, float]:
        """Adjusted weights renormalised over the fields actually compared."""

        total = sum(self.weights[name] for name in self.components)
        if total <= 0.0:
            return {name: 0.0 for name in self.components}
        return {name: self.weights[name] / total for name in self.components}


@dataclass
class WeightedComparisonEngine:
    """Apply a base weight map to sub-scores, with boost or override rules.

    ``boost`` implements the primary-field boost: when exactly one of the two
    primary fields agrees perfectly (or clears the near threshold while the
    other does not) its weight grows by a fixed delta taken from every other
    field in proportion to their base weights. ``override_weight`` implements
    the perfect-match override: the first field scoring exactly 1.0 takes that
    weight and the remaining fields share the remainder. At most one adjustment
    applies per comparison. The final score is normalised over the fields that
    were present on both sides.
    """

    weights: Mapping[str, float]
    boost: BoostPolicy | None = None
    override_weight: float | None = None
    label: str = "record"
    _base: Dict[str, float] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.weights:
            raise ValueError("weight map must not be empty")
        if any(weight < 0.0 for weight in self.weights.values()):
            raise ValueError("weights must be non-negative")
        self._base = dict(self.weights)
        if self.boost is not None and self.boost.enabled:
            missing = [name for name in self.boost.primary_fields if name not in self._base]
            if missing:
                raise ValueError(f"boost fields {missing} are not part of the {self.label} weight map")

    @property
    def fields(self) -> Tuple[str, ...]:
        return tuple(self._base)

    def redistribute(self, target: str, delta: float) -> Dict[str, float]:
        """Add ``delta`` to ``target`` and take it from the other fields pro rata."""

        weights = dict(self._base)
        others = {name: weight for name, weight in weights.items() if name != target}
        others_total = sum(others.values())
        delta = min(delta, others_total)
        if delta <= 0.0 or others_total <= 0.0:
            return weights
        weights[target] += delta
        for name, weight in others.items():
            weights[name] = weight - delta * (weight / others_total)
        return weights

    def dominate(self, target: str, dominant: float) -> Dict[str, float]:
        """Raise ``target`` to the dominant share; the rest split the remainder pro rata."""

        total = sum(self._base.values())
        desired = max(self._base[target], dominant * total)
        return self.redistribute(target, desired - self._base[target])

    def _select_boost(self, scores: Mapping[str, float]) -> Tuple[str, float, str] | None:
        policy = self.boost
        if policy is None or not policy.enabled:
            return None
        first, second = policy.primary_fields
        if first not in scores or second not in scores:
            return None
        score_1, score_2 = scores[first], scores[second]
        if score_1 == 1.0 and score_2 != 1.0:
            return first, policy.exact_delta, "boost:exact"
        if score_2 == 1.0 and score_1 != 1.0:
            return second, policy.exact_delta, "boost:exact"
        if score_1 > policy.near_threshold and score_2 <= policy.near_threshold:
            return first, policy.near_delta, "boost:near"
        if score_2 > policy.near_threshold and score_1 <= policy.near_threshold:
            return second, policy.near_delta, "boost:near"
        return None

    def _select_override(self, scores: Mapping[str, float]) -> str | None:
        if self.override_weight is None:
            return None
        for name in self._base:
            if scores.get(name) == 1.0:
                return name
        return None

    def combine(self, scores: Mapping[str, float | None]) -> WeightedScore:
        """Aggregate raw sub-scores; ``None`` marks a field that was not compared."""

        present: Dict[str, float] = {}
        for name in self._base:
            value = scores.get(name)
            if value is None:
                continue
            if math.isnan(value):
                raise ValueError(f"score for '{name}' is NaN")
            present[name] = min(1.0, max(0.0, float(value)))

        weights = dict(self._base)
        adjustment: str | None = None
        adjusted_field: str | None = None

        override_field = self._select_override(present)
        if override_field is not None and self.override_weight is not None:
            weights = self.dominate(override_field, self.override_weight)
            adjustment, adjusted_field = "override", override_field
        else:
            boost = self._select_boost(present)
            if boost is not None:
                adjusted_field, delta, adjustment = boost
                weights = self.redistribute(adjusted_field, delta)

        used = sum(weights[name] for name in present)
        if used <= 0.0:
            score = 0.0
        else:
            score = sum(weights[name] * value for name, value in present.items()) / used
        return WeightedScore(
            score=min(1.0, max(0.0, score)),
            components=present,
            base_weights=dict(self._base),
            weights=weights,
            adjustment=adjustment,
            adjusted_field=adjusted_field,
        )

    def compare(
        self,
        left: Mapping[str, Comparable | None],
        right: Mapping[str, Comparable | None],
        comparator: FieldComparator,
    ) -> WeightedScore:
        """Score every field present on both sides, then combine.

        Raises :class:`TypeMismatch` when a field holds values of different
        comparable kinds.
        """

        scores: Dict[str, float] = {}
        for name in self._base:
            value_left = left.get(name)
            value_right = right.get(name)
            if value_left is None or value_right is None:
                continue
            if value_left.kind != value_right.kind:
                raise TypeMismatch(value_left.kind.value, value_right.kind.value, field=name)
            result = comparator(value_left, value_right)
            if result is not None:
                scores[name] = result
        return self.combine(scores)


__all__ = ["WeightedComparisonEngine", "WeightedScore", "FieldComparator"]
