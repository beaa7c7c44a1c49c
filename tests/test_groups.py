"""Tests for the group database and its assignment bookkeeping."""

from __future__ import annotations

import pytest

from entity_resolution.grouping import GroupDatabase


def sample_database() -> GroupDatabase:
    database = GroupDatabase()
    first = database.create_group("c1", "primary-households")
    database.add_member(first, "a1", 0.93)
    database.absorb(first, "m1")
    database.add_near_miss(first, "a2", 0.8)
    first.source_flag = True
    database.create_group("a2", "secondary-individuals")
    return database


def test_find_group_by_key_covers_members_and_absorbed_records() -> None:
    database = sample_database()

    assert database.find_group_by_key("c1").index == 0
    assert database.find_group_by_key("a1").index == 0
    assert database.find_group_by_key("m1").index == 0
    assert database.find_group_by_key("a2").index == 1
    assert database.find_group_by_key("zz") is None


def test_assigned_records_cannot_join_or_found_another_group() -> None:
    database = sample_database()
    second = database[1]

    assert not database.add_member(second, "a1", 0.99)
    assert not database.absorb(second, "c1")
    assert second.member_keys == ["a2"]
    with pytest.raises(ValueError):
        database.create_group("m1", "remaining-records")


def test_near_misses_are_recorded_once_and_never_for_members() -> None:
    database = sample_database()
    first = database[0]

    assert not database.add_near_miss(first, "a2", 0.81)
    assert not database.add_near_miss(first, "a1", 0.8)
    assert first.near_miss_keys == ["a2"]
    assert first.scores["a2"] == pytest.approx(0.8)
    assert database.is_assigned("a2")


def test_filtered_and_stats() -> None:
    database = sample_database()

    assert [group.index for group in database.filtered(min_size=2)] == [0]
    assert [group.index for group in database.filtered(origin_phase="secondary-individuals")] == [1]
    assert [group.index for group in database.filtered(source_flag=False)] == [1]
    assert database.stats() == {
        "groups": 2,
        "multi_member_groups": 1,
        "singletons": 1,
        "largest_group": 2,
        "assigned_records": 4,
        "absorbed_records": 1,
        "near_misses": 1,
        "flagged_groups": 1,
    }
