"""Tests for the address comparator and its three scoring modes."""

from __future__ import annotations

import pytest

from entity_resolution.comparison import AddressComparator, AddressMode
from entity_resolution.config.policies import AddressPolicy
from entity_resolution.entities import Address, AliasEntry, SourcedTerm


def make_box(number: str, postal_code: str | None = "02903", **kwargs) -> Address:
    return Address(unit_type="PO BOX", unit_number=number, postal_code=postal_code, **kwargs)


def make_street(
    number: str | None,
    name: str,
    street_type: str | None = None,
    *,
    city: str | None = "PROVIDENCE",
    postal_code: str | None = "02903",
    **kwargs,
) -> Address:
    return Address(
        street_number=number,
        street_name=name,
        street_type=street_type,
        city=city,
        postal_code=postal_code,
        **kwargs,
    )


class StreetDirectory:
    """In-memory stand-in for a street registry."""

    def __init__(self, groups: dict[str, list[str]]) -> None:
        self._index: dict[str, AliasEntry] = {}
        for primary, variants in groups.items():
            entry = AliasEntry(primary_term=SourcedTerm(value=primary, source="streets"))
            for variant in variants:
                entry.add_alternative(SourcedTerm(value=variant, source="streets"))
            for term in entry.all_terms():
                self._index[term.key] = entry

    def lookup(self, term: str) -> AliasEntry | None:
        return self._index.get(term.strip().upper())


@pytest.fixture()
def comparator() -> AddressComparator:
    return AddressComparator()


def test_identical_po_boxes_match_perfectly(comparator: AddressComparator) -> None:
    result = comparator.evaluate(make_box("648"), make_box("648"))
    assert result.mode is AddressMode.PO_BOX
    assert result.score == pytest.approx(1.0)


def test_po_box_postal_mismatch_halves_the_score(comparator: AddressComparator) -> None:
    result = comparator.evaluate(make_box("648"), make_box("648", postal_code="02904"))
    assert result.postal_mismatch
    assert result.score == pytest.approx(0.35)


def test_different_box_numbers_score_on_digits(comparator: AddressComparator) -> None:
    assert comparator.compare(make_box("648"), make_box("247")) == pytest.approx(0.7 / 3 + 0.3)


def test_near_box_numbers_are_capped(comparator: AddressComparator) -> None:
    result = comparator.evaluate(make_box("648"), make_box("649"))
    assert result.capped
    assert result.score == pytest.approx(0.7)


def test_block_island_po_boxes_use_po_box_mode(comparator: AddressComparator) -> None:
    def island_box(number: str, postal_code: str = "02807") -> Address:
        return make_box(number, postal_code, city="NEW SHOREHAM", state="RI")

    assert comparator.is_regional(island_box("648"))

    same = comparator.evaluate(island_box("648"), island_box("648"))
    assert same.mode is AddressMode.PO_BOX
    assert same.score >= 0.95

    moved = comparator.evaluate(island_box("648"), island_box("648", postal_code="02903"))
    assert moved.mode is AddressMode.PO_BOX
    assert moved.postal_mismatch
    assert moved.score <= 0.5

    other_box = comparator.evaluate(island_box("648"), island_box("247"))
    assert other_box.mode is AddressMode.PO_BOX
    assert other_box.score <= 0.7


def test_box_number_is_read_from_the_street_line(comparator: AddressComparator) -> None:
    address = Address(street_name="P.O. Box 12", postal_code="02903")
    assert comparator.is_po_box(address)
    assert comparator.box_number(address) == "12"
    assert comparator.compare(address, make_box("12")) == pytest.approx(1.0)


def test_regional_addresses_compare_on_structural_identifier(comparator: AddressComparator) -> None:
    left = make_street("57", "CORN NECK", city="BLOCK ISLAND", postal_code="02807")
    right = make_street("57", "CORNNECK", city="BLOCK ISLAND", postal_code="02807")
    result = comparator.evaluate(left, right)
    assert result.mode is AddressMode.REGIONAL
    assert result.score == pytest.approx(0.8 + 0.2 * (1 - 1 / 9))


def test_regional_identifier_mismatch(comparator: AddressComparator) -> None:
    left = make_street("57", "CORN NECK", city="BLOCK ISLAND", postal_code="02807")
    right = make_street("123", "CORN NECK", city="NEW SHOREHAM", postal_code=None)
    result = comparator.evaluate(left, right)
    assert result.mode is AddressMode.REGIONAL
    assert result.score == pytest.approx(0.2)
    assert not result.capped


def test_regional_identifier_match_has_a_floor(comparator: AddressComparator) -> None:
    left = make_street("57", "CORN NECK", city="BLOCK ISLAND", postal_code="02807")
    right = make_street("57", "OLD TOWN", city="BLOCK ISLAND", postal_code="02807")
    assert comparator.compare(left, right) >= 0.75


def test_explicit_identifier_overrides_street_number(comparator: AddressComparator) -> None:
    left = make_street("57", "CORN NECK", postal_code="02807", identifier="F-1201")
    right = make_street("60", "CORN NECK", postal_code="02807", identifier="F-1201")
    assert comparator.compare(left, right) == pytest.approx(1.0)


def test_general_postal_mismatch_penalty(comparator: AddressComparator) -> None:
    left = make_street("12", "MAIN", "ST")
    right = make_street("12", "MAIN", "ST", postal_code="02904")
    result = comparator.evaluate(left, right)
    assert result.mode is AddressMode.GENERAL
    assert result.postal_mismatch
    assert result.score == pytest.approx(0.42)


def test_general_street_number_disagreement(comparator: AddressComparator) -> None:
    left = make_street("12", "MAIN", "ST")
    right = make_street("34", "MAIN", "ST")
    assert comparator.compare(left, right) == pytest.approx(0.7)


def test_general_location_falls_back_to_city_and_state(comparator: AddressComparator) -> None:
    left = make_street("12", "MAIN", "ST", postal_code=None, state="RI")
    right = make_street("12", "MAIN", "ST", postal_code=None, state="MA")
    score, mismatch = comparator.location_similarity(left, right)
    assert score == pytest.approx(0.7)
    assert not mismatch
    assert comparator.compare(left, right) == pytest.approx(0.3 + 0.4 + 0.3 * 0.7)


def test_street_directory_unifies_spellings_and_marks_region() -> None:
    directory = StreetDirectory({"CORN NECK RD": ["CORN NK RD", "CORNNECK ROAD"]})
    comparator = AddressComparator(street_directory=directory)
    left = make_street("57", "CORN NECK", "RD", city=None, postal_code=None)
    right = make_street("57", "CORN NK", "RD", city=None, postal_code=None)

    assert comparator.is_regional(left)
    assert comparator.street_similarity(left, right) == 1.0
    result = comparator.evaluate(left, right)
    assert result.mode is AddressMode.REGIONAL
    assert result.score == pytest.approx(1.0)


def test_policy_controls_region_membership() -> None:
    policy = AddressPolicy.model_validate({"regional": {"postal_codes": ["99999"], "city_names": ["gotham"]}})
    comparator = AddressComparator(policy)
    assert comparator.is_regional(make_street("1", "ELM", city="Gotham", postal_code=None))
    assert not comparator.is_regional(make_street("1", "ELM", city="BLOCK ISLAND", postal_code="02807"))


def test_scores_are_symmetric(comparator: AddressComparator) -> None:
    pairs = [
        (make_box("648"), make_box("247", postal_code="02904")),
        (make_street("12", "MAIN", "ST"), make_street("14", "MAINE", "ST", postal_code="02904")),
        (make_street("57", "CORN NECK", postal_code="02807"), make_street("75", "CORN NECK", postal_code="02807")),
    ]
    for left, right in pairs:
        assert comparator.compare(left, right) == pytest.approx(comparator.compare(right, left))
