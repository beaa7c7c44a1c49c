"""Groups of matched records and the assignment-tracking database."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Dict, Iterator, List

if TYPE_CHECKING:
    from .consensus import Consensus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Group:
    """Records judged to describe one real-world entity."""

    index: int
    founding_key: str
    origin_phase: str
    member_keys: List[str] = field(default_factory=list)
    near_miss_keys: List[str] = field(default_factory=list)
    absorbed_keys: List[str] = field(default_factory=list)
    scores: Dict[str, float] = field(default_factory=dict)
    source_flag: bool = False
    consensus: "Consensus | None" = None
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def size(self) -> int:
        return len(self.member_keys)

    def claimed_keys(self) -> List[str]:
        """Members plus the sub-records absorbed through household members."""

        return [*self.member_keys, *self.absorbed_keys]

    def contains(self, key: str) -> bool:
        return key in self.member_keys or key in self.absorbed_keys

    def to_dict(self) -> Dict[str, object]:
        return {
            "index": self.index,
            "founding_key": self.founding_key,
            "origin_phase": self.origin_phase,
            "member_keys": list(self.member_keys),
            "near_miss_keys": list(self.near_miss_keys),
            "absorbed_keys": list(self.absorbed_keys),
            "scores": dict(self.scores),
            "source_flag": self.source_flag,
            "consensus": self.consensus.to_dict() if self.consensus is not None else None,
            "created_at": self.created_at.isoformat(),
        }


class GroupDatabase:
    """Ordered groups plus the record → group assignment map.

    Every mutation takes :attr:`lock`; callers that need a read-then-write
    decision to be atomic hold the lock around both.
    """

    def __init__(self) -> None:
        self.groups: List[Group] = []
        self._assignment: Dict[str, int] = {}
        self.lock = threading.RLock()

    def __len__(self) -> int:
        return len(self.groups)

    def __iter__(self) -> Iterator[Group]:
        return iter(self.groups)

    def __getitem__(self, index: int) -> Group:
        return self.groups[index]

    def is_assigned(self, key: str) -> bool:
        return key in self._assignment

    def find_group_by_key(self, key: str) -> Group | None:
        index = self._assignment.get(key)
        return self.groups[index] if index is not None else None

    def create_group(self, founding_key: str, origin_phase: str) -> Group:
        with self.lock:
            if founding_key in self._assignment:
                raise ValueError(f"record '{founding_key}' is already assigned to group {self._assignment[founding_key]}")
            group = Group(index=len(self.groups), founding_key=founding_key, origin_phase=origin_phase)
            group.member_keys.append(founding_key)
            group.scores[founding_key] = 1.0
            self.groups.append(group)
            self._assignment[founding_key] = group.index
            return group

    def add_member(self, group: Group, key: str, score: float) -> bool:
        """Assign ``key`` to ``group``; returns ``False`` if it already has a group."""

        with self.lock:
            if key in self._assignment:
                return False
            group.member_keys.append(key)
            group.scores[key] = score
            self._assignment[key] = group.index
            return True

    def absorb(self, group: Group, key: str) -> bool:
        """Mark a household sub-record as claimed by ``group`` without making it a member."""

        with self.lock:
            if key in self._assignment:
                return False
            group.absorbed_keys.append(key)
            self._assignment[key] = group.index
            return True

    def add_near_miss(self, group: Group, key: str, score: float) -> bool:
        with self.lock:
            if group.contains(key) or key in group.near_miss_keys:
                return False
            group.near_miss_keys.append(key)
            group.scores.setdefault(key, score)
            return True

    def filtered(
        self,
        *,
        min_size: int | None = None,
        origin_phase: str | None = None,
        source_flag: bool | None = None,
    ) -> List[Group]:
        result: List[Group] = []
        for group in self.groups:
            if min_size is not None and group.size < min_size:
                continue
            if origin_phase is not None and group.origin_phase != origin_phase:
                continue
            if source_flag is not None and group.source_flag != source_flag:
                continue
            result.append(group)
        return result

    def stats(self) -> Dict[str, int]:
        sizes = [group.size for group in self.groups]
        return {
            "groups": len(self.groups),
            "multi_member_groups": sum(1 for size in sizes if size > 1),
            "singletons": sum(1 for size in sizes if size == 1),
            "largest_group": max(sizes, default=0),
            "assigned_records": len(self._assignment),
            "absorbed_records": sum(len(group.absorbed_keys) for group in self.groups),
            "near_misses": sum(len(group.near_miss_keys) for group in self.groups),
            "flagged_groups": sum(1 for group in self.groups if group.source_flag),
        }


__all__ = ["Group", "GroupDatabase"]
