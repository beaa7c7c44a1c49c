"""Dispatch of comparable field bundles to their kind-specific comparators."""

from __future__ import annotations

from typing import Callable, Dict

from ..config.policies import Policies
from ..entities.records import AuxiliaryInfo, Comparable, ComparableKind
from ..errors import TypeMismatch
from ..utils.similarity import StringSimilarity
from .address import AddressComparator, TermDirectory
from .contact import ContactComparator
from .names import NameComparator


class FieldComparators:
    """Single entry point used by the record engine to score one field pair."""

    def __init__(
        self,
        policies: Policies | None = None,
        *,
        street_directory: TermDirectory | None = None,
    ) -> None:
        self.policies = policies or Policies()
        self.similarity = StringSimilarity(self.policies.similarity)
        self.addresses = AddressComparator(self.policies.address, self.similarity, street_directory)
        self.contacts = ContactComparator(self.policies.comparison.contact, self.addresses, self.similarity)
        self.names = NameComparator(self.policies.comparison.names, self.similarity)
        self._dispatch: Dict[ComparableKind, Callable[[Comparable, Comparable], float | None]] = {
            ComparableKind.ADDRESS: self.addresses.compare,
            ComparableKind.CONTACT: self.contacts.compare,
            ComparableKind.INDIVIDUAL_NAME: self.names.compare_individual,
            ComparableKind.ENTITY_NAME: self.names.compare_entity,
            ComparableKind.AUXILIARY: self.compare_auxiliary,
        }

    def compare_auxiliary(self, left: AuxiliaryInfo, right: AuxiliaryInfo) -> float | None:
        """Mean similarity over attribute names present on both sides."""

        shared = [name for name in left.attributes if name in right.attributes]
        if not shared:
            return None
        total = sum(self.similarity(left.attributes[name], right.attributes[name]) for name in shared)
        return total / len(shared)

    def compare(self, left: Comparable, right: Comparable) -> float | None:
        if left.kind != right.kind:
            raise TypeMismatch(left.kind.value, right.kind.value)
        return self._dispatch[left.kind](left, right)

    __call__ = compare


__all__ = ["FieldComparators"]
