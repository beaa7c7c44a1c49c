"""Consensus records derived from the members of a group."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence

from ..comparison.records import RecordComparator
from ..config.policies import Policies
from ..entities.core import AliasEntry, SourcedTerm, VariantCategory
from ..entities.records import Address, AuxiliaryInfo, ContactBundle, HouseholdRecord, IndividualRecord, Record
from ..errors import TypeMismatch
from ..utils.logging import get_logger
from .groups import Group

_LOGGER = get_logger(module=__name__)


@dataclass
class Consensus:
    """Merged view of a multi-member group."""

    primary_key: str
    name: AliasEntry | None = None
    contact: ContactBundle | None = None
    other_info: AuxiliaryInfo | None = None
    legacy_info: AuxiliaryInfo | None = None
    member_count: int = 0
    address_support: Dict[str, int] = field(default_factory=dict)
    individuals: List[IndividualRecord] = field(default_factory=list)
    account_number: str | None = None

    @property
    def display_name(self) -> str:
        return self.name.primary_term.value if self.name is not None else ""

    def to_dict(self) -> Dict[str, object]:
        return {
            "primary_key": self.primary_key,
            "name": self.name.model_dump(mode="json") if self.name is not None else None,
            "contact": self.contact.model_dump(mode="json") if self.contact is not None else None,
            "other_info": self.other_info.attributes if self.other_info is not None else None,
            "legacy_info": self.legacy_info.attributes if self.legacy_info is not None else None,
            "member_count": self.member_count,
            "address_support": dict(self.address_support),
            "individuals": [person.model_dump(mode="json") for person in self.individuals],
            "account_number": self.account_number,
        }


class ConsensusBuilder:
    """Merge member field values into one consensus record per group."""

    def __init__(self, comparator: RecordComparator, policies: Policies | None = None) -> None:
        self.comparator = comparator
        self.policies = policies or comparator.policies
        self.thresholds = self.policies.registry.name_thresholds
        self.dedup_threshold = self.policies.registry.secondary_address_dedup_threshold

    def _pair_score(self, left: Record, right: Record) -> float:
        try:
            return self.comparator.compare(left, right)
        except TypeMismatch as exc:
            _LOGGER.debug("Skipping consensus pair", left=left.key, right=right.key, error=str(exc))
            return 0.0

    def select_primary(self, members: Sequence[Record]) -> Record:
        """Member with the highest mean similarity to the others; earliest on ties."""

        if len(members) == 1:
            return members[0]
        best, best_mean = members[0], -1.0
        for member in members:
            scores = [self._pair_score(member, other) for other in members if other is not member]
            mean = sum(scores) / len(scores)
            if mean > best_mean:
                best, best_mean = member, mean
        return best

    def _name_aliases(self, primary: Record, members: Sequence[Record]) -> AliasEntry | None:
        primary_name = primary.display_name
        if not primary_name:
            return None
        entry = AliasEntry(
            primary_term=SourcedTerm(value=primary_name, source=primary.source, field="name"),
        )
        similarity = self.comparator.fields.similarity
        for member in members:
            if member is primary or not member.display_name:
                continue
            score = similarity(primary_name, member.display_name)
            if score < self.thresholds.candidate:
                continue
            if score >= self.thresholds.homonym:
                category = VariantCategory.HOMONYMS
            elif score >= self.thresholds.synonym:
                category = VariantCategory.SYNONYMS
            else:
                category = VariantCategory.CANDIDATES
            entry.add_alternative(
                SourcedTerm(value=member.display_name, source=member.source, field="name"),
                category,
            )
        return entry

    def _collapse_addresses(
        self,
        primary_address: Address | None,
        candidates: Sequence[Address],
    ) -> List[tuple[Address, int]]:
        """Bucket near-identical addresses and sort the buckets by support."""

        compare = self.comparator.fields.addresses.compare
        buckets: List[List] = []
        for address in candidates:
            if primary_address is not None and compare(primary_address, address) >= self.dedup_threshold:
                continue
            for bucket in buckets:
                if compare(bucket[0], address) >= self.dedup_threshold:
                    bucket[1] += 1
                    break
            else:
                buckets.append([address, 1])
        ordered = sorted(enumerate(buckets), key=lambda item: (-item[1][1], item[0]))
        return [(bucket[0], bucket[1]) for _, bucket in ordered]

    def _contact(self, primary: Record, members: Sequence[Record]) -> tuple[ContactBundle | None, Dict[str, int]]:
        primary_contact = primary.contact
        primary_address = primary_contact.primary_address if primary_contact is not None else None
        email = primary_contact.email if primary_contact is not None else None
        if email is None:
            emails = Counter(
                member.contact.email for member in members if member.contact is not None and member.contact.email
            )
            if emails:
                email = emails.most_common(1)[0][0]

        candidates: List[Address] = []
        for member in members:
            if member.contact is None:
                continue
            candidates.extend(member.contact.addresses())
        if primary_address is None and candidates:
            primary_address = candidates[0]
        secondary = self._collapse_addresses(primary_address, candidates)

        contact = ContactBundle(
            primary_address=primary_address,
            secondary_addresses=[address for address, _ in secondary],
            email=email,
        )
        support = {address.display(): count for address, count in secondary}
        return (None if contact.is_empty() else contact), support

    @staticmethod
    def _merge_info(primary: AuxiliaryInfo | None, members: Sequence[AuxiliaryInfo | None]) -> AuxiliaryInfo | None:
        merged: Dict[str, str] = dict(primary.attributes) if primary is not None else {}
        for info in members:
            if info is None:
                continue
            for name, value in info.attributes.items():
                merged.setdefault(name, value)
        return AuxiliaryInfo(attributes=merged) if merged else None

    def _individuals(self, members: Sequence[Record]) -> List[IndividualRecord]:
        """People across all members, collapsing names at the homonym threshold.

        Households contribute their embedded members; the first occurrence of a
        person is kept.
        """

        people: List[IndividualRecord] = []
        for member in members:
            if isinstance(member, HouseholdRecord):
                people.extend(member.members)
            elif isinstance(member, IndividualRecord):
                people.append(member)

        compare = self.comparator.fields.names.compare_individual
        unique: List[IndividualRecord] = []
        for person in people:
            if person.name is not None and any(
                kept.name is not None and (compare(person.name, kept.name) or 0.0) >= self.thresholds.homonym
                for kept in unique
            ):
                continue
            unique.append(person)
        return unique

    def build(self, group: Group, population: Mapping[str, Record]) -> Consensus:
        members = [population[key] for key in group.member_keys if key in population]
        if not members:
            raise ValueError(f"group {group.index} has no members in the population")
        primary = self.select_primary(members)
        contact, support = self._contact(primary, members)
        return Consensus(
            primary_key=primary.key,
            name=self._name_aliases(primary, members),
            contact=contact,
            other_info=self._merge_info(primary.other_info, [member.other_info for member in members]),
            legacy_info=self._merge_info(primary.legacy_info, [member.legacy_info for member in members]),
            member_count=len(members),
            address_support=support,
            individuals=self._individuals(members),
            account_number=next((member.account_number for member in members if member.account_number), None),
        )


__all__ = ["Consensus", "ConsensusBuilder"]
