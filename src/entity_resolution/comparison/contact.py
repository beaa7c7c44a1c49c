"""Contact bundle comparison over primary address, secondary addresses, and email."""

from __future__ import annotations

from typing import Dict

from ..config.policies import ContactWeights
from ..entities.records import ContactBundle
from ..utils.similarity import StringSimilarity
from .address import AddressComparator
from .engine import WeightedComparisonEngine, WeightedScore


class ContactComparator:
    """Combine per-channel address and email scores into one contact score.

    A channel that matches exactly takes the perfect-match weight and the other
    channels share what remains, so one shared email or identical mailing
    address is strong evidence even when the other channels disagree.
    """

    def __init__(
        self,
        weights: ContactWeights | None = None,
        addresses: AddressComparator | None = None,
        similarity: StringSimilarity | None = None,
    ) -> None:
        self.weights = weights or ContactWeights()
        self.similarity = similarity or StringSimilarity()
        self.addresses = addresses or AddressComparator(similarity=self.similarity)
        self.engine = WeightedComparisonEngine(
            self.weights.as_map(),
            override_weight=self.weights.perfect_match_weight,
            label="contact",
        )

    def best_secondary(self, left: ContactBundle, right: ContactBundle) -> float | None:
        """Best address score over every pairing that involves a secondary address."""

        best: float | None = None
        left_addresses = list(left.addresses())
        right_addresses = list(right.addresses())
        for index_left, address_left in enumerate(left_addresses):
            for index_right, address_right in enumerate(right_addresses):
                primary_pair = (
                    index_left == 0
                    and index_right == 0
                    and left.primary_address is not None
                    and right.primary_address is not None
                )
                if primary_pair:
                    continue
                score = self.addresses.compare(address_left, address_right)
                if best is None or score > best:
                    best = score
        return best

    def evaluate(self, left: ContactBundle, right: ContactBundle) -> WeightedScore:
        scores: Dict[str, float | None] = {}
        if left.primary_address is not None and right.primary_address is not None:
            scores["primary_address"] = self.addresses.compare(left.primary_address, right.primary_address)
        scores["secondary_address"] = self.best_secondary(left, right)
        if left.email and right.email:
            scores["email"] = self.similarity(left.email, right.email)
        return self.engine.combine(scores)

    def compare(self, left: ContactBundle, right: ContactBundle) -> float | None:
        """Contact score, or ``None`` when the bundles share no comparable channel."""

        result = self.evaluate(left, right)
        return result.score if result.has_data else None


__all__ = ["ContactComparator"]
