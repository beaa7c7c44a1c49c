"""Tests for union-find clustering of candidate terms."""

from __future__ import annotations

import pytest

from entity_resolution.config.policies import AliasThresholds
from entity_resolution.entities import TermCategory
from entity_resolution.registry import ClusteringEngine, UnionFind
from entity_resolution.utils.similarity import StringSimilarity


def make_table_scorer(table: dict[frozenset, float]):
    def scorer(left: str, right: str) -> float:
        return table.get(frozenset((left, right)), 0.0)

    return scorer


def test_union_find_merges_transitively_in_first_seen_order() -> None:
    union_find = UnionFind()
    for item in ["a", "b", "c", "d", "e"]:
        union_find.add(item)
    union_find.union("d", "b")
    union_find.union("b", "a")

    assert union_find.find("a") == union_find.find("d")
    assert union_find.components() == [["a", "b", "d"], ["c"], ["e"]]


def test_union_find_adds_unknown_items_on_find() -> None:
    union_find = UnionFind()
    assert union_find.find("x") == "x"
    assert union_find.components() == [["x"]]


def test_spelling_variants_cluster_and_strangers_stay_apart() -> None:
    engine = ClusteringEngine(StringSimilarity())
    clusters = engine.cluster(["JOHN SMITH", "JANE DOE", "JON SMITH"])

    assert [cluster.representative for cluster in clusters] == ["JOHN SMITH", "JANE DOE"]
    first = clusters[0]
    assert [member.item for member in first.members] == ["JON SMITH"]
    assert first.members[0].score == pytest.approx(0.9)
    assert first.members[0].category is TermCategory.HOMONYM
    assert len(clusters[1]) == 1


def test_chains_are_joined_and_members_rescored_against_the_representative() -> None:
    scorer = make_table_scorer(
        {
            frozenset(("A", "B")): 0.9,
            frozenset(("B", "C")): 0.9,
            frozenset(("A", "C")): 0.86,
        }
    )
    clusters = ClusteringEngine(scorer).cluster(["A", "B", "C"])

    assert len(clusters) == 1
    cluster = clusters[0]
    assert cluster.representative == "B"
    assert {member.item: member.category for member in cluster.members} == {
        "A": TermCategory.HOMONYM,
        "C": TermCategory.HOMONYM,
    }


def test_members_below_the_homonym_band_are_categorized_by_score() -> None:
    scorer = make_table_scorer(
        {
            frozenset(("A", "B")): 0.9,
            frozenset(("B", "C")): 0.9,
            frozenset(("A", "C")): 0.5,
            frozenset(("C", "D")): 0.9,
            frozenset(("B", "D")): 0.85,
            frozenset(("A", "D")): 0.2,
        }
    )
    cluster = ClusteringEngine(scorer).cluster(["A", "B", "C", "D"])[0]
    assert cluster.representative == "B"
    categories = {member.item: member.category for member in cluster.members}
    assert categories == {
        "A": TermCategory.HOMONYM,
        "C": TermCategory.HOMONYM,
        "D": TermCategory.SYNONYM,
    }


def test_representative_ties_go_to_the_first_item() -> None:
    scorer = make_table_scorer({frozenset(("X", "Y")): 0.95})
    assert ClusteringEngine(scorer).cluster(["Y", "X"])[0].representative == "Y"


def test_categorize_uses_configured_thresholds() -> None:
    engine = ClusteringEngine(lambda a, b: 0.0, AliasThresholds(homonym=0.9, synonym=0.7, candidate=0.1))
    assert engine.categorize(0.95) is TermCategory.HOMONYM
    assert engine.categorize(0.7) is TermCategory.SYNONYM
    assert engine.categorize(0.2) is TermCategory.CANDIDATE
    with pytest.raises(ValueError):
        AliasThresholds(homonym=0.5, synonym=0.7)


def test_empty_input_yields_no_clusters() -> None:
    assert ClusteringEngine(StringSimilarity()).cluster([]) == []
