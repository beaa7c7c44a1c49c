"""Union-find clustering of candidate terms into alias entries."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Generic, List, Sequence, Tuple, TypeVar

from ..config.policies import AliasThresholds
from ..entities.core import TermCategory

T = TypeVar("T")


class UnionFind:
    """Disjoint-set data structure with path compression and union by rank."""

    def __init__(self) -> None:
        self._parent: Dict[str, str] = {}
        self._rank: Dict[str, int] = {}

    def add(self, item: str) -> None:
        if item not in self._parent:
            self._parent[item] = item
            self._rank[item] = 0

    def find(self, item: str) -> str:
        parent = self._parent.get(item)
        if parent is None:
            self.add(item)
            return item
        if parent != item:
            self._parent[item] = self.find(parent)
        return self._parent[item]

    def union(self, a: str, b: str) -> None:
        root_a = self.find(a)
        root_b = self.find(b)
        if root_a == root_b:
            return
        rank_a = self._rank[root_a]
        rank_b = self._rank[root_b]
        if rank_a < rank_b:
            self._parent[root_a] = root_b
        elif rank_a > rank_b:
            self._parent[root_b] = root_a
        else:
            self._parent[root_b] = root_a
            self._rank[root_a] += 1

    def components(self) -> List[List[str]]:
        """Components in first-seen order, members in insertion order."""

        groups: Dict[str, List[str]] = {}
        for item in self._parent:
            groups.setdefault(self.find(item), []).append(item)
        return list(groups.values())


@dataclass
class ClusterMember(Generic[T]):
    item: T
    score: float
    category: TermCategory


@dataclass
class Cluster(Generic[T]):
    """A representative item plus its scored, categorized variants."""

    representative: T
    members: List[ClusterMember[T]] = field(default_factory=list)

    def items(self) -> List[T]:
        return [self.representative, *(member.item for member in self.members)]

    def __len__(self) -> int:
        return 1 + len(self.members)


class ClusteringEngine(Generic[T]):
    """Group items whose pairwise score reaches the homonym threshold.

    Unions are transitive, so a chain of close pairs forms one cluster. The
    representative of each cluster is the item with the highest mean score
    against the rest (earliest item on ties); every other member is re-scored
    against it and filed as homonym, synonym, or candidate.
    """

    def __init__(self, scorer: Callable[[T, T], float], thresholds: AliasThresholds | None = None) -> None:
        self.scorer = scorer
        self.thresholds = thresholds or AliasThresholds()

    def pairwise(self, items: Sequence[T]) -> Dict[Tuple[int, int], float]:
        scores: Dict[Tuple[int, int], float] = {}
        for i in range(len(items)):
            for j in range(i + 1, len(items)):
                scores[(i, j)] = self.scorer(items[i], items[j])
        return scores

    def categorize(self, score: float) -> TermCategory:
        if score >= self.thresholds.homonym:
            return TermCategory.HOMONYM
        if score >= self.thresholds.synonym:
            return TermCategory.SYNONYM
        return TermCategory.CANDIDATE

    @staticmethod
    def _score(scores: Dict[Tuple[int, int], float], i: int, j: int) -> float:
        return scores[(i, j)] if i < j else scores[(j, i)]

    def _representative(self, positions: List[int], scores: Dict[Tuple[int, int], float]) -> int:
        if len(positions) == 1:
            return positions[0]
        best_position, best_mean = positions[0], -1.0
        for position in positions:
            others = [self._score(scores, position, other) for other in positions if other != position]
            mean = sum(others) / len(others)
            if mean > best_mean:
                best_position, best_mean = position, mean
        return best_position

    def cluster(self, items: Sequence[T]) -> List[Cluster[T]]:
        if not items:
            return []
        scores = self.pairwise(items)
        union_find = UnionFind()
        for position in range(len(items)):
            union_find.add(str(position))
        for (i, j), score in scores.items():
            if score >= self.thresholds.homonym:
                union_find.union(str(i), str(j))

        clusters: List[Cluster[T]] = []
        for component in union_find.components():
            positions = sorted(int(member) for member in component)
            representative = self._representative(positions, scores)
            cluster = Cluster(representative=items[representative])
            for position in positions:
                if position == representative:
                    continue
                score = self._score(scores, position, representative)
                cluster.members.append(
                    ClusterMember(item=items[position], score=score, category=self.categorize(score))
                )
            clusters.append(cluster)
        return clusters


__all__ = ["UnionFind", "ClusteringEngine", "Cluster", "ClusterMember"]
