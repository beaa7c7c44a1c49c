"""Address comparison with post-office-box, regional, and general scoring modes."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Protocol, Tuple

from ..config.policies import AddressPolicy
from ..entities.core import AliasEntry
from ..entities.records import Address
from ..utils.helpers import normalize_for_comparison
from ..utils.similarity import StringSimilarity

_DIGITS = re.compile(r"\d+")


class TermDirectory(Protocol):
    """Anything able to resolve a street name to its canonical registry entry."""

    def lookup(self, term: str) -> AliasEntry | None:
        ...


class AddressMode(str, Enum):
    PO_BOX = "po_box"
    REGIONAL = "regional"
    GENERAL = "general"


@dataclass
class AddressComparison:
    """Score plus the evidence that produced it."""

    mode: AddressMode
    score: float
    components: Dict[str, float] = field(default_factory=dict)
    postal_mismatch: bool = False
    capped: bool = False


def _weighted(parts: Dict[str, Tuple[float, float]]) -> float:
    """Weighted mean over ``name -> (weight, score)``; 0.0 when nothing was compared."""

    total = sum(weight for weight, _ in parts.values())
    if total <= 0.0:
        return 0.0
    return sum(weight * score for weight, score in parts.values()) / total


class AddressComparator:
    """Score two structured addresses in [0, 1].

    Both post-office-box addresses are compared on the box number and location.
    Addresses inside the configured region (postal code, city, or a street found
    in the street directory) are compared on their structural identifier, since
    street spellings there are unreliable. Everything else uses street number,
    street text, and location.
    """

    def __init__(
        self,
        policy: AddressPolicy | None = None,
        similarity: StringSimilarity | None = None,
        street_directory: TermDirectory | None = None,
    ) -> None:
        self.policy = policy or AddressPolicy()
        self.similarity = similarity or StringSimilarity()
        self.street_directory = street_directory
        self._box_pattern = re.compile(self.policy.po_box.indicator_pattern, re.IGNORECASE)
        self._regional_postal = {
            code[: self.policy.postal_code_length] for code in self.policy.regional.postal_codes
        }
        self._regional_cities = set(self.policy.regional.city_names)

    # ------------------------------------------------------------------
    # Classification helpers
    # ------------------------------------------------------------------
    def _postal_prefix(self, address: Address) -> str | None:
        if not address.postal_code:
            return None
        digits = address.postal_code.replace(" ", "")
        return digits[: self.policy.postal_code_length] or None

    def is_po_box(self, address: Address) -> bool:
        for text in (address.unit_type, address.street_name, address.street_number):
            if text and self._box_pattern.search(text):
                return True
        return False

    def box_number(self, address: Address) -> str | None:
        """Extract the box number of a post-office-box address."""

        if address.unit_type and self._box_pattern.search(address.unit_type) and address.unit_number:
            return address.unit_number
        if address.street_name and self._box_pattern.search(address.street_name):
            remainder = self._box_pattern.sub("", address.street_name, count=1)
            match = _DIGITS.search(remainder)
            if match:
                return match.group(0)
        return address.unit_number or address.street_number

    def _directory_entry(self, address: Address) -> AliasEntry | None:
        if self.street_directory is None:
            return None
        for text in (address.street_text, address.street_name):
            if text:
                entry = self.street_directory.lookup(text)
                if entry is not None:
                    return entry
        return None

    def is_regional(self, address: Address) -> bool:
        postal = self._postal_prefix(address)
        if postal is not None and postal in self._regional_postal:
            return True
        if address.city and address.city.upper() in self._regional_cities:
            return True
        return self._directory_entry(address) is not None

    def classify(self, left: Address, right: Address) -> AddressMode:
        if self.is_po_box(left) and self.is_po_box(right):
            return AddressMode.PO_BOX
        if (
            self.is_regional(left)
            and self.is_regional(right)
            and left.structural_identifier
            and right.structural_identifier
        ):
            return AddressMode.REGIONAL
        return AddressMode.GENERAL

    # ------------------------------------------------------------------
    # Component scores
    # ------------------------------------------------------------------
    def location_similarity(self, left: Address, right: Address) -> Tuple[float | None, bool]:
        """Return ``(score, postal_mismatch)``; score is ``None`` with no shared location data."""

        postal_left = self._postal_prefix(left)
        postal_right = self._postal_prefix(right)
        if postal_left and postal_right:
            matched = postal_left == postal_right
            return (1.0 if matched else 0.0), not matched

        city_score = self.similarity(left.city, right.city) if left.city and right.city else None
        state_score = None
        if left.state and right.state:
            state_score = 1.0 if left.state.upper() == right.state.upper() else 0.0
        if city_score is not None and state_score is not None:
            city_weight = self.policy.general.city_weight
            return city_weight * city_score + (1.0 - city_weight) * state_score, False
        if city_score is not None:
            return city_score, False
        return state_score, False

    def street_similarity(self, left: Address, right: Address) -> float | None:
        text_left, text_right = left.street_text, right.street_text
        if not text_left or not text_right:
            return None
        entry_left = self._directory_entry(left)
        if entry_left is not None:
            entry_right = self._directory_entry(right)
            if entry_right is not None and entry_right.key == entry_left.key:
                return 1.0
        return self.similarity(text_left, text_right)

    # ------------------------------------------------------------------
    # Mode scorers
    # ------------------------------------------------------------------
    def _score_po_box(self, left: Address, right: Address) -> AddressComparison:
        rules = self.policy.po_box
        parts: Dict[str, Tuple[float, float]] = {}
        box_left, box_right = self.box_number(left), self.box_number(right)
        if box_left and box_right:
            parts["box"] = (rules.box_weight, self.similarity(box_left, box_right))
        location, postal_mismatch = self.location_similarity(left, right)
        if location is not None:
            parts["location"] = (rules.location_weight, location)

        score = _weighted(parts)
        capped = False
        if box_left and box_right and normalize_for_comparison(box_left) != normalize_for_comparison(box_right):
            if score > rules.box_mismatch_cap:
                score, capped = rules.box_mismatch_cap, True
        if postal_mismatch:
            score *= rules.postal_mismatch_factor
        return AddressComparison(
            mode=AddressMode.PO_BOX,
            score=score,
            components={name: value for name, (_, value) in parts.items()},
            postal_mismatch=postal_mismatch,
            capped=capped,
        )

    def _score_regional(self, left: Address, right: Address) -> AddressComparison:
        rules = self.policy.regional
        identifier_left = left.structural_identifier or ""
        identifier_right = right.structural_identifier or ""
        parts: Dict[str, Tuple[float, float]] = {
            "identifier": (rules.identifier_weight, self.similarity(identifier_left, identifier_right)),
        }
        street = self.street_similarity(left, right)
        if street is not None:
            parts["street"] = (rules.street_weight, street)

        score = _weighted(parts)
        capped = False
        if normalize_for_comparison(identifier_left) == normalize_for_comparison(identifier_right):
            score = max(score, rules.identifier_match_floor)
        elif score > rules.identifier_mismatch_cap:
            score, capped = rules.identifier_mismatch_cap, True
        return AddressComparison(
            mode=AddressMode.REGIONAL,
            score=score,
            components={name: value for name, (_, value) in parts.items()},
            capped=capped,
        )

    def _score_general(self, left: Address, right: Address) -> AddressComparison:
        rules = self.policy.general
        parts: Dict[str, Tuple[float, float]] = {}
        if left.street_number and right.street_number:
            parts["street_number"] = (
                rules.street_number_weight,
                self.similarity(left.street_number, right.street_number),
            )
        street = self.street_similarity(left, right)
        if street is not None:
            parts["street_name"] = (rules.street_name_weight, street)
        location, postal_mismatch = self.location_similarity(left, right)
        if location is not None:
            parts["location"] = (rules.location_weight, location)

        score = _weighted(parts)
        if postal_mismatch:
            score *= rules.postal_mismatch_factor
        return AddressComparison(
            mode=AddressMode.GENERAL,
            score=score,
            components={name: value for name, (_, value) in parts.items()},
            postal_mismatch=postal_mismatch,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def evaluate(self, left: Address, right: Address) -> AddressComparison:
        mode = self.classify(left, right)
        if mode is AddressMode.PO_BOX:
            result = self._score_po_box(left, right)
        elif mode is AddressMode.REGIONAL:
            result = self._score_regional(left, right)
        else:
            result = self._score_general(left, right)
        result.score = min(1.0, max(0.0, result.score))
        return result

    def compare(self, left: Address, right: Address) -> float:
        return self.evaluate(left, right).score

    __call__ = compare


__all__ = ["AddressComparator", "AddressComparison", "AddressMode", "TermDirectory"]
