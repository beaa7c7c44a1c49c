"""Populate alias registries by clustering names found in groups of records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Mapping, Sequence

from ..comparison.fields import FieldComparators
from ..config.policies import AliasThresholds, RegistryPolicy
from ..entities.core import AliasEntry, SourcedTerm, TermCategory, VariantCategory
from ..entities.records import EntityName, HouseholdRecord, IndividualName, IndividualRecord, Record
from ..errors import DuplicateKey
from ..utils.helpers import normalize_key
from ..utils.logging import get_logger
from .clustering import Cluster, ClusteringEngine
from .registry import AliasRegistry

if TYPE_CHECKING:
    from ..grouping.groups import Group

_LOGGER = get_logger(module=__name__)

_VARIANT_BUCKETS = {
    TermCategory.HOMONYM: VariantCategory.HOMONYMS,
    TermCategory.SYNONYM: VariantCategory.SYNONYMS,
    TermCategory.CANDIDATE: VariantCategory.CANDIDATES,
}


@dataclass(frozen=True)
class NamedItem:
    """One name occurrence to be clustered, with its provenance."""

    key: str
    name: IndividualName | EntityName | str
    source: str = ""
    origin_row: int | None = None
    field: str = "name"

    @property
    def value(self) -> str:
        return self.name if isinstance(self.name, str) else self.name.full_name


@dataclass
class DuplicateResolution:
    """Resolver verdict for a primary-key collision."""

    resolved: bool
    new_key: str | None = None
    modified_entry: AliasEntry | None = None


DuplicateResolver = Callable[[AliasEntry, AliasEntry], DuplicateResolution]


def merge_resolver(existing: AliasEntry, candidate: AliasEntry) -> DuplicateResolution:
    """Resolve every collision by folding the candidate into the registered entry."""

    return DuplicateResolution(resolved=True, new_key=existing.key)


@dataclass
class BuildReport:
    items: int = 0
    clusters: int = 0
    created: int = 0
    merged: int = 0
    renamed: int = 0
    skipped: int = 0
    keys: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "items": self.items,
            "clusters": self.clusters,
            "created": self.created,
            "merged": self.merged,
            "renamed": self.renamed,
            "skipped": self.skipped,
        }


def group_items(group: "Group", records: Mapping[str, Record]) -> List[NamedItem]:
    """Named individuals of a group; household members get synthetic keys."""

    items: List[NamedItem] = []
    for key in group.member_keys:
        record = records.get(key)
        if isinstance(record, IndividualRecord) and record.name is not None and record.name.full_name:
            items.append(NamedItem(key=record.key, name=record.name, source=record.source))
        elif isinstance(record, HouseholdRecord):
            for position, member in enumerate(record.members):
                if member.name is None or not member.name.full_name:
                    continue
                items.append(
                    NamedItem(
                        key=f"{record.key}:individual:{position}",
                        name=member.name,
                        source=record.source,
                    )
                )
    return items


class RegistryBuilder:
    """Cluster name batches and register one alias entry per cluster.

    When a cluster's primary key is already registered the optional resolver
    decides: it may keep the key (the entries are merged), pick a new key, or
    decline, in which case :class:`DuplicateKey` is raised.
    """

    def __init__(
        self,
        registry: AliasRegistry,
        comparators: FieldComparators | None = None,
        resolver: DuplicateResolver | None = None,
        *,
        thresholds: AliasThresholds | None = None,
        policy: RegistryPolicy | None = None,
    ) -> None:
        self.registry = registry
        self.comparators = comparators or FieldComparators()
        self.resolver = resolver
        self.policy = policy or registry.policy
        self.engine: ClusteringEngine[NamedItem] = ClusteringEngine(
            self.score,
            thresholds or self.policy.name_thresholds,
        )

    def score(self, left: NamedItem, right: NamedItem) -> float:
        if not isinstance(left.name, str) and not isinstance(right.name, str) and left.name.kind == right.name.kind:
            result = self.comparators.compare(left.name, right.name)
            return result if result is not None else 0.0
        return self.comparators.similarity(left.value, right.value)

    def entry_for(self, cluster: Cluster[NamedItem]) -> AliasEntry:
        representative = cluster.representative
        entry = AliasEntry(
            primary_term=SourcedTerm(
                value=representative.value,
                source=self.policy.builder_source,
                origin_row=representative.origin_row,
                field=representative.field,
            )
        )
        for member in cluster.members:
            entry.add_alternative(
                SourcedTerm(
                    value=member.item.value,
                    source=member.item.source or self.policy.builder_source,
                    origin_row=member.item.origin_row,
                    field=member.item.field,
                ),
                _VARIANT_BUCKETS[member.category],
            )
        return entry

    @staticmethod
    def merge(existing: AliasEntry, incoming: AliasEntry) -> AliasEntry:
        """Fold ``incoming`` into a copy of ``existing``; repeated terms are skipped."""

        merged = existing.model_copy(deep=True)
        merged.add_alternative(incoming.primary_term, VariantCategory.HOMONYMS)
        for category, term in incoming.alternatives.iter_terms():
            merged.add_alternative(term, category)
        return merged

    def register(self, entry: AliasEntry, report: BuildReport | None = None) -> str:
        """Add ``entry``, consulting the resolver on a key collision; returns the stored key."""

        report = report or BuildReport()
        existing = self.registry.get(entry.key)
        if existing is None:
            self.registry.add(entry)
            report.created += 1
            report.keys.append(entry.key)
            return entry.key

        if self.resolver is None:
            raise DuplicateKey(entry.key, f"Primary key '{entry.key}' already exists and no resolver is configured")
        resolution = self.resolver(existing, entry)
        if not resolution.resolved:
            raise DuplicateKey(entry.key, f"Resolver declined the collision on '{entry.key}'")

        candidate = resolution.modified_entry or entry
        new_key = normalize_key(resolution.new_key) if resolution.new_key else candidate.key
        if new_key == existing.key:
            self.registry.update(self.merge(existing, candidate))
            report.merged += 1
            _LOGGER.debug("Merged colliding entry", key=existing.key)
            return existing.key

        if new_key in self.registry:
            raise DuplicateKey(new_key, f"Resolved key '{new_key}' also collides with an existing entry")
        if candidate.key != new_key:
            renamed = candidate.model_copy(deep=True)
            renamed.primary_term = renamed.primary_term.model_copy(update={"value": resolution.new_key.strip()})
            candidate = renamed
        self.registry.add(candidate)
        report.renamed += 1
        report.keys.append(candidate.key)
        _LOGGER.debug("Registered colliding entry under a new key", original=entry.key, key=candidate.key)
        return candidate.key

    def build(self, batches: Iterable[Sequence[NamedItem]]) -> BuildReport:
        """Cluster each batch independently and register every cluster."""

        report = BuildReport()
        for batch in batches:
            items = [item for item in batch if item.value.strip()]
            report.skipped += len(batch) - len(items)
            report.items += len(items)
            clusters = self.engine.cluster(items)
            report.clusters += len(clusters)
            for cluster in clusters:
                self.register(self.entry_for(cluster), report)
        _LOGGER.info("Built registry entries", registry=self.registry.name, **report.to_dict())
        return report

    def build_from_groups(self, groups: Iterable["Group"], records: Mapping[str, Record]) -> BuildReport:
        return self.build(group_items(group, records) for group in groups)


__all__ = [
    "NamedItem",
    "DuplicateResolution",
    "DuplicateResolver",
    "merge_resolver",
    "BuildReport",
    "RegistryBuilder",
    "group_items",
]
