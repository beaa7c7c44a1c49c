"""Tests for contact bundle comparison."""

from __future__ import annotations

import pytest

from entity_resolution.comparison import ContactComparator
from entity_resolution.entities import Address, ContactBundle

HOME = Address(street_number="12", street_name="MAIN", street_type="ST", city="PROVIDENCE", postal_code="02903")
OFFICE = Address(street_number="400", street_name="ELM", street_type="AVE", city="BOSTON", postal_code="02118")


def make_contact(primary: Address | None = None, *secondary: Address, email: str | None = None) -> ContactBundle:
    return ContactBundle(primary_address=primary, secondary_addresses=list(secondary), email=email)


@pytest.fixture()
def comparator() -> ContactComparator:
    return ContactComparator()


def test_identical_primary_address_scores_one(comparator: ContactComparator) -> None:
    assert comparator.compare(make_contact(HOME), make_contact(HOME)) == pytest.approx(1.0)


def test_shared_email_dominates_different_primaries(comparator: ContactComparator) -> None:
    left = make_contact(HOME, email="Jane@Example.com")
    right = make_contact(OFFICE, email="jane@example.com")
    result = comparator.evaluate(left, right)

    assert result.adjustment == "override"
    assert result.adjusted_field == "email"
    assert "secondary_address" not in result.components
    assert result.score >= 0.9 / 0.975 - 1e-9


def test_secondary_address_matches_the_other_primary(comparator: ContactComparator) -> None:
    left = make_contact(HOME, OFFICE)
    right = make_contact(OFFICE)
    assert comparator.best_secondary(left, right) == pytest.approx(1.0)
    result = comparator.evaluate(left, right)
    assert result.adjusted_field == "secondary_address"
    assert result.score > 0.9


def test_primary_pair_is_not_reused_as_secondary(comparator: ContactComparator) -> None:
    assert comparator.best_secondary(make_contact(HOME), make_contact(HOME)) is None


def test_no_shared_channels_returns_none(comparator: ContactComparator) -> None:
    assert comparator.compare(make_contact(HOME), make_contact(email="a@b.org")) is None
    assert comparator.compare(make_contact(), make_contact()) is None


def test_secondary_only_bundles_are_compared(comparator: ContactComparator) -> None:
    left = make_contact(None, HOME)
    right = make_contact(None, HOME)
    result = comparator.evaluate(left, right)
    assert result.compared_fields == ("secondary_address",)
    assert result.score == pytest.approx(1.0)


def test_contact_score_is_symmetric(comparator: ContactComparator) -> None:
    left = make_contact(HOME, OFFICE, email="jane@example.com")
    right = make_contact(OFFICE, email="jdoe@example.com")
    assert comparator.compare(left, right) == pytest.approx(comparator.compare(right, left))
