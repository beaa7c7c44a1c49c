"""Tests for consensus records built from group members."""

from __future__ import annotations

from entity_resolution.comparison import RecordComparator
from entity_resolution.entities import (
    Address,
    AuxiliaryInfo,
    ContactBundle,
    EntityName,
    HouseholdRecord,
    IndividualName,
    IndividualRecord,
)
from entity_resolution.errors import TypeMismatch
from entity_resolution.grouping import ConsensusBuilder, Group

HOME = Address(street_number="12", street_name="MAIN", street_type="ST", city="PROVIDENCE", postal_code="02903")
FARM = Address(street_number="880", street_name="OCEAN", street_type="DR", city="NEWPORT", postal_code="02840")
CABIN = Address(street_number="4", street_name="QUARRY", street_type="RD", city="WESTERLY", postal_code="02891")


def make_person(
    key: str,
    first: str,
    last: str,
    *,
    source: str = "crm",
    address: Address | None = None,
    secondary: list[Address] | None = None,
    email: str | None = None,
    other: dict[str, str] | None = None,
) -> IndividualRecord:
    contact = None
    if address is not None or secondary or email:
        contact = ContactBundle(primary_address=address, secondary_addresses=secondary or [], email=email)
    return IndividualRecord(
        key=key,
        source=source,
        name=IndividualName(first=first, last=last),
        contact=contact,
        other_info=AuxiliaryInfo(attributes=other) if other else None,
    )


class ScriptedComparator(RecordComparator):
    """Comparator with fixed pair scores for primary selection."""

    def __init__(self, scores: dict[frozenset, float], broken: set[frozenset] = frozenset()) -> None:
        super().__init__()
        self.scores = scores
        self.broken = broken

    def compare(self, left, right) -> float:
        pair = frozenset((left.key, right.key))
        if pair in self.broken:
            raise TypeMismatch("contact", "address")
        return self.scores.get(pair, 0.0)


def build(members: list[IndividualRecord], comparator: RecordComparator | None = None):
    population = {member.key: member for member in members}
    group = Group(index=0, founding_key=members[0].key, origin_phase="test", member_keys=list(population))
    return ConsensusBuilder(comparator or RecordComparator()).build(group, population)


def test_primary_is_the_member_closest_to_the_others() -> None:
    members = [make_person("a", "A", "X"), make_person("b", "B", "X"), make_person("c", "C", "X")]
    comparator = ScriptedComparator(
        {
            frozenset(("a", "b")): 0.5,
            frozenset(("a", "c")): 0.4,
            frozenset(("b", "c")): 0.9,
        }
    )
    assert ConsensusBuilder(comparator).select_primary(members).key == "b"
    assert ConsensusBuilder(ScriptedComparator({})).select_primary(members).key == "a"


def test_incomparable_pairs_count_as_zero() -> None:
    members = [make_person("a", "A", "X"), make_person("b", "B", "X"), make_person("c", "C", "X")]
    comparator = ScriptedComparator(
        {frozenset(("a", "b")): 0.9, frozenset(("a", "c")): 0.6, frozenset(("b", "c")): 0.6},
        broken={frozenset(("a", "b"))},
    )
    assert ConsensusBuilder(comparator).select_primary(members).key == "c"


def test_member_names_are_filed_by_similarity_band() -> None:
    consensus = build(
        [
            make_person("p", "JOHN", "SMITH"),
            make_person("h", "JON", "SMITH", source="assessor"),
            make_person("c", "JOHNNY", "SMITH"),
            make_person("x", "Q", "Z"),
        ],
        ScriptedComparator({frozenset(("p", "h")): 0.9, frozenset(("p", "c")): 0.9}),
    )

    assert consensus.primary_key == "p"
    assert consensus.display_name == "JOHN SMITH"
    aliases = consensus.name.alternatives
    assert [term.value for term in aliases.homonyms] == ["JON SMITH"]
    assert aliases.homonyms[0].source == "assessor"
    assert [term.value for term in aliases.candidates] == ["JOHNNY SMITH"]
    assert aliases.synonyms == []
    assert consensus.member_count == 4


def test_addresses_are_collapsed_and_ranked_by_support() -> None:
    consensus = build(
        [
            make_person("p", "JOHN", "SMITH", address=HOME),
            make_person("a", "JOHN", "SMITH", address=HOME, secondary=[CABIN]),
            make_person("b", "JOHN", "SMITH", address=FARM),
            make_person("c", "JOHN", "SMITH", secondary=[FARM]),
        ],
        ScriptedComparator({frozenset(("p", "a")): 0.9}),
    )

    contact = consensus.contact
    assert contact.primary_address == HOME
    assert contact.secondary_addresses == [FARM, CABIN]
    assert consensus.address_support == {FARM.display(): 2, CABIN.display(): 1}


def test_primary_without_an_address_takes_the_first_member_address() -> None:
    consensus = build(
        [make_person("p", "JOHN", "SMITH"), make_person("a", "JOHN", "SMITH", address=FARM)],
        ScriptedComparator({}),
    )
    assert consensus.contact.primary_address == FARM
    assert consensus.contact.secondary_addresses == []


def test_email_prefers_the_primary_then_the_most_common() -> None:
    common = build(
        [
            make_person("p", "JOHN", "SMITH"),
            make_person("a", "JOHN", "SMITH", email="b@example.org"),
            make_person("b", "JOHN", "SMITH", email="A@example.org"),
            make_person("c", "JOHN", "SMITH", email="a@example.org"),
        ],
        ScriptedComparator({frozenset(("p", "a")): 0.9, frozenset(("p", "b")): 0.9}),
    )
    assert common.contact.email == "a@example.org"

    own = build(
        [make_person("p", "JOHN", "SMITH", email="own@example.org"), make_person("a", "JOHN", "SMITH", email="b@example.org")],
        ScriptedComparator({}),
    )
    assert own.contact.email == "own@example.org"


def test_auxiliary_info_keeps_primary_values_and_fills_gaps() -> None:
    consensus = build(
        [
            make_person("p", "JOHN", "SMITH", other={"occupation": "NURSE"}),
            make_person("a", "JOHN", "SMITH", other={"occupation": "RETIRED", "parcel": "R-12"}),
            make_person("b", "JOHN", "SMITH"),
        ],
        ScriptedComparator({frozenset(("p", "a")): 0.9, frozenset(("p", "b")): 0.9}),
    )
    assert consensus.other_info.attributes == {"occupation": "NURSE", "parcel": "R-12"}
    assert consensus.legacy_info is None
    assert consensus.contact is None
    assert consensus.to_dict()["other_info"] == {"occupation": "NURSE", "parcel": "R-12"}


def test_people_shared_by_households_appear_once() -> None:
    first = HouseholdRecord(
        key="h1",
        source="crm",
        name=EntityName(value="SMITH FAMILY"),
        contact=ContactBundle(primary_address=HOME),
        members=[make_person("h1-1", "JOHN", "SMITH"), make_person("h1-2", "MARY", "SMITH")],
    )
    second = HouseholdRecord(
        key="h2",
        source="assessor",
        account_number="ACCT-7",
        name=EntityName(value="SMITH HOUSEHOLD"),
        contact=ContactBundle(primary_address=HOME),
        members=[make_person("h2-1", "JOHN", "SMITH", source="assessor")],
    )
    loner = make_person("c9", "JON", "SMITH")

    consensus = build([first, second, loner])

    assert [person.key for person in consensus.individuals] == ["h1-1", "h1-2"]
    assert [row["key"] for row in consensus.to_dict()["individuals"]] == ["h1-1", "h1-2"]
    assert consensus.account_number == "ACCT-7"


def test_individuals_without_names_are_kept() -> None:
    nameless = IndividualRecord(key="n1", source="crm")
    consensus = build([make_person("a", "JOHN", "SMITH"), nameless], ScriptedComparator({}))
    assert [person.key for person in consensus.individuals] == ["a", "n1"]
