"""Record-level comparison across individuals, households, and organizations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Sequence, Tuple

from ..config.policies import MatchingPolicy, Policies
from ..entities.records import (
    Comparable,
    HouseholdRecord,
    IndividualRecord,
    Record,
)
from .engine import WeightedComparisonEngine, WeightedScore
from .fields import FieldComparators

_RECORD_KINDS = ("individual", "household", "organization")


class MatchVerdict(str, Enum):
    TRUE_MATCH = "true_match"
    NEAR_MATCH = "near_match"
    NO_MATCH = "no_match"


@dataclass
class RecordComparison:
    """Scores for one record pair along with how they were obtained."""

    left_key: str
    right_key: str
    overall: float
    components: Dict[str, float] = field(default_factory=dict)
    weights: Dict[str, float] = field(default_factory=dict)
    adjustment: str | None = None
    adjusted_field: str | None = None
    path: str = "direct"
    matched_member: str | None = None

    @classmethod
    def from_score(
        cls,
        left_key: str,
        right_key: str,
        result: WeightedScore,
        *,
        path: str = "direct",
        matched_member: str | None = None,
    ) -> "RecordComparison":
        return cls(
            left_key=left_key,
            right_key=right_key,
            overall=result.score,
            components=dict(result.components),
            weights=dict(result.weights),
            adjustment=result.adjustment,
            adjusted_field=result.adjusted_field,
            path=path,
            matched_member=matched_member,
        )

    @property
    def name(self) -> float | None:
        return self.components.get("name")

    @property
    def contact(self) -> float | None:
        return self.components.get("contact")

    def scores(self) -> Dict[str, float | None]:
        """The component view consumed by match criteria."""

        return {"overall": self.overall, "name": self.name, "contact": self.contact}

    def to_dict(self) -> Dict[str, object]:
        return {
            "left_key": self.left_key,
            "right_key": self.right_key,
            "overall": self.overall,
            "components": dict(self.components),
            "weights": dict(self.weights),
            "adjustment": self.adjustment,
            "adjusted_field": self.adjusted_field,
            "path": self.path,
            "matched_member": self.matched_member,
        }


class MatchClassifier:
    """Turn component scores into a match verdict using the configured rules."""

    def __init__(self, policy: MatchingPolicy | None = None) -> None:
        self.policy = policy or MatchingPolicy()

    def is_true_match(self, scores: Mapping[str, float | None]) -> bool:
        return self.policy.true_match.passes(scores)

    def is_near_match(self, scores: Mapping[str, float | None]) -> bool:
        return self.policy.near_match.passes(scores)

    def classify(self, comparison: RecordComparison | Mapping[str, float | None]) -> MatchVerdict:
        scores = comparison.scores() if isinstance(comparison, RecordComparison) else comparison
        if self.is_true_match(scores):
            return MatchVerdict.TRUE_MATCH
        if self.is_near_match(scores):
            return MatchVerdict.NEAR_MATCH
        return MatchVerdict.NO_MATCH


def _record_fields(record: Record) -> Dict[str, Comparable | None]:
    contact = record.contact
    if contact is not None and contact.is_empty():
        contact = None
    return {
        "name": record.name,
        "contact": contact,
        "other": record.other_info,
        "legacy": record.legacy_info,
    }


class RecordComparator:
    """Compare any two records, descending into household members when needed.

    Individuals are matched against households through the household's members
    (which inherit the household contact); two households are matched through
    their best member pair. The comparison is symmetric: swapping the arguments
    yields the same overall score.
    """

    def __init__(
        self,
        policies: Policies | None = None,
        fields: FieldComparators | None = None,
    ) -> None:
        self.policies = policies or Policies()
        self.fields = fields or FieldComparators(self.policies)
        record_weights = self.policies.comparison.record_weights
        boost = self.policies.comparison.boost
        self.engines: Dict[str, WeightedComparisonEngine] = {
            kind: WeightedComparisonEngine(record_weights.for_kind(kind), boost=boost, label=kind)
            for kind in _RECORD_KINDS
        }
        self.cross_engine = WeightedComparisonEngine(record_weights.cross_type, label="cross_type")
        self.classifier = MatchClassifier(self.policies.matching)

    def _direct(self, left: Record, right: Record, engine: WeightedComparisonEngine) -> WeightedScore:
        return engine.compare(_record_fields(left), _record_fields(right), self.fields)

    def _cross(self, left: Record, right: Record) -> WeightedScore:
        """Name and contact only; names of different kinds meet on their display form."""

        fields_left, fields_right = _record_fields(left), _record_fields(right)
        scores: Dict[str, float | None] = {}
        name_left, name_right = fields_left["name"], fields_right["name"]
        if name_left is not None and name_right is not None:
            if name_left.kind == name_right.kind:
                scores["name"] = self.fields.compare(name_left, name_right)
            else:
                scores["name"] = self.fields.names.compare_display(name_left.full_name, name_right.full_name)
        contact_left, contact_right = fields_left["contact"], fields_right["contact"]
        if contact_left is not None and contact_right is not None:
            scores["contact"] = self.fields.compare(contact_left, contact_right)
        return self.cross_engine.combine(scores)

    def _best_member(
        self,
        individual: IndividualRecord,
        members: Sequence[IndividualRecord],
    ) -> Tuple[WeightedScore, str]:
        """Highest-scoring member and its key; earliest member on ties."""

        if not members:
            raise ValueError("household has no members to compare against")
        engine = self.engines["individual"]
        best, best_key = self._direct(individual, members[0], engine), members[0].key
        for member in members[1:]:
            result = self._direct(individual, member, engine)
            if result.score > best.score:
                best, best_key = result, member.key
        return best, best_key

    def _against_household(self, individual: IndividualRecord, household: HouseholdRecord) -> Tuple[WeightedScore, str, str | None]:
        members = household.member_views()
        if not members:
            return self._cross(individual, household), "direct", None
        best, matched = self._best_member(individual, members)
        return best, "member", matched

    def _households(self, left: HouseholdRecord, right: HouseholdRecord) -> Tuple[WeightedScore, str, str | None]:
        members_left = left.member_views()
        members_right = right.member_views()
        if not members_left and not members_right:
            return self._direct(left, right, self.engines["household"]), "direct", None
        if not members_left or not members_right:
            return self.engines["household"].combine({}), "household:one-empty", None

        best, best_key = self._best_member(members_left[0], members_right)
        matched = f"{members_left[0].key}|{best_key}"
        for member in members_left[1:]:
            result, key = self._best_member(member, members_right)
            if result.score > best.score:
                best, matched = result, f"{member.key}|{key}"
        return best, "member-pair", matched

    def evaluate(self, left: Record, right: Record) -> RecordComparison:
        """Compare two records.

        Raises :class:`~entity_resolution.errors.TypeMismatch` when a field pair
        holds bundles of incompatible kinds.
        """

        path, matched = "direct", None
        if left.kind == "household" and right.kind == "household":
            result, path, matched = self._households(left, right)
        elif left.kind == "individual" and right.kind == "household":
            result, path, matched = self._against_household(left, right)
        elif left.kind == "household" and right.kind == "individual":
            result, path, matched = self._against_household(right, left)
        elif left.kind == right.kind:
            result = self._direct(left, right, self.engines[left.kind])
        else:
            result = self._cross(left, right)
        return RecordComparison.from_score(left.key, right.key, result, path=path, matched_member=matched)

    def compare(self, left: Record, right: Record) -> float:
        return self.evaluate(left, right).overall

    def classify(self, left: Record, right: Record) -> Tuple[MatchVerdict, RecordComparison]:
        comparison = self.evaluate(left, right)
        return self.classifier.classify(comparison), comparison


__all__ = [
    "MatchVerdict",
    "MatchClassifier",
    "RecordComparison",
    "RecordComparator",
]
