"""Canonical-term registry with an exact variation index and fuzzy fallback."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Literal, Mapping, Tuple

from pydantic import ValidationError

from ..config.policies import RegistryPolicy
from ..entities.core import AliasEntry, EntryMetadata, SourcedTerm, TermCategory, VariantCategory
from ..errors import AlreadyExists, DuplicateKey, NotFound
from ..utils.helpers import normalize_key
from ..utils.logging import get_logger
from ..utils.similarity import StringSimilarity
from .storage import FilesystemRegistryStorage, RegistryStorage

_LOGGER = get_logger(module=__name__)

BLOB_FORMAT = "entity-resolution/alias-entry@1"
DemoteTarget = Literal["homonyms", "synonyms", "candidates", "discard"]
TermScorer = Callable[[str, str], float]


def encode_entry(entry: AliasEntry, metadata: EntryMetadata) -> bytes:
    payload = {
        "format": BLOB_FORMAT,
        "entry": entry.model_dump(mode="json"),
        "metadata": metadata.model_dump(mode="json", exclude={"storage_id"}),
    }
    return json.dumps(payload, indent=2, sort_keys=True).encode("utf-8")


def decode_entry(storage_id: str, blob: bytes) -> Tuple[AliasEntry, EntryMetadata]:
    """Parse a stored blob; raises :class:`ValueError` for foreign or corrupt blobs."""

    try:
        payload = json.loads(blob.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValueError(f"entry {storage_id} is not valid JSON") from exc
    if not isinstance(payload, dict) or payload.get("format") != BLOB_FORMAT:
        raise ValueError(f"entry {storage_id} has an unsupported format header")
    try:
        entry = AliasEntry.model_validate(payload["entry"])
        metadata = EntryMetadata.model_validate({**payload.get("metadata", {}), "storage_id": storage_id})
    except (KeyError, ValidationError) as exc:
        raise ValueError(f"entry {storage_id} failed validation: {exc}") from exc
    return entry, metadata


@dataclass(frozen=True)
class RegistrySnapshot:
    """Immutable view shared with concurrent readers."""

    entries: Mapping[str, AliasEntry]
    metadata: Mapping[str, EntryMetadata]
    index: Mapping[str, str]
    shadowed: int = 0

    @classmethod
    def build(cls, entries: Dict[str, AliasEntry], metadata: Dict[str, EntryMetadata]) -> "RegistrySnapshot":
        """Index primaries first, then variants; the first mapping of a term wins."""

        index: Dict[str, str] = {}
        shadowed = 0
        for key in entries:
            index[key] = key
        for key, entry in entries.items():
            for _, term in entry.alternatives.iter_terms():
                if term.key in index:
                    if index[term.key] != key:
                        shadowed += 1
                    continue
                index[term.key] = key
        return cls(
            entries=MappingProxyType(dict(entries)),
            metadata=MappingProxyType(dict(metadata)),
            index=MappingProxyType(index),
            shadowed=shadowed,
        )


@dataclass
class FuzzyMatch:
    entry: AliasEntry
    score: float
    matched_term: str
    exact: bool = False


@dataclass
class _Mutation:
    entries: Dict[str, AliasEntry] = field(default_factory=dict)
    metadata: Dict[str, EntryMetadata] = field(default_factory=dict)


class AliasRegistry:
    """Keyed collection of alias entries backed by a blob store.

    Reads go through an immutable :class:`RegistrySnapshot` that is swapped in
    one assignment after every successful mutation, so readers never observe a
    half-applied change. Mutations are serialized by a re-entrant lock and
    write to storage before the in-memory state changes; a failed write leaves
    the registry exactly as it was.

    Returned entries belong to the registry and must be treated as read-only.
    """

    def __init__(
        self,
        storage: RegistryStorage,
        *,
        scorer: TermScorer | None = None,
        policy: RegistryPolicy | None = None,
        name: str = "registry",
    ) -> None:
        self.storage = storage
        self.scorer = scorer or StringSimilarity()
        self.policy = policy or RegistryPolicy()
        self.name = name
        self._lock = threading.RLock()
        self._snapshot = RegistrySnapshot.build({}, {})
        self._logger = _LOGGER.bind(registry=name)

    @classmethod
    def open(
        cls,
        root: str | Path,
        *,
        scorer: TermScorer | None = None,
        policy: RegistryPolicy | None = None,
        name: str | None = None,
    ) -> "AliasRegistry":
        """Open (and load) a filesystem-backed registry rooted at ``root``."""

        path = Path(root)
        registry = cls(FilesystemRegistryStorage(path), scorer=scorer, policy=policy, name=name or path.name)
        registry.load()
        return registry

    # ------------------------------------------------------------------
    # Loading and snapshots
    # ------------------------------------------------------------------
    @property
    def snapshot(self) -> RegistrySnapshot:
        return self._snapshot

    def load(self) -> int:
        """Replace the in-memory state with everything the storage holds."""

        with self._lock:
            entries: Dict[str, AliasEntry] = {}
            metadata: Dict[str, EntryMetadata] = {}
            for storage_id in self.storage.list_entries():
                entry, meta = decode_entry(storage_id, self.storage.read_entry(storage_id))
                if entry.key in entries:
                    self._logger.warning(
                        "Skipping stored entry with duplicate key",
                        key=entry.key,
                        storage_id=storage_id,
                        kept=metadata[entry.key].storage_id,
                    )
                    continue
                entries[entry.key] = entry
                metadata[entry.key] = meta
            self._snapshot = RegistrySnapshot.build(entries, metadata)
            self._logger.info(
                "Loaded registry",
                entries=len(entries),
                indexed_terms=len(self._snapshot.index),
                shadowed=self._snapshot.shadowed,
            )
            return len(entries)

    def _begin(self) -> _Mutation:
        current = self._snapshot
        return _Mutation(entries=dict(current.entries), metadata=dict(current.metadata))

    def _commit(self, mutation: _Mutation) -> None:
        self._snapshot = RegistrySnapshot.build(mutation.entries, mutation.metadata)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._snapshot.entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and normalize_key(key) in self._snapshot.entries

    def keys(self) -> List[str]:
        return list(self._snapshot.entries)

    def entries(self) -> List[AliasEntry]:
        return list(self._snapshot.entries.values())

    def get(self, key: str) -> AliasEntry | None:
        return self._snapshot.entries.get(normalize_key(key))

    def metadata(self, key: str) -> EntryMetadata | None:
        return self._snapshot.metadata.get(normalize_key(key))

    def lookup_exact(self, term: str) -> AliasEntry | None:
        """Entry whose primary or any variant normalises to ``term``."""

        snapshot = self._snapshot
        key = snapshot.index.get(normalize_key(term))
        return snapshot.entries.get(key) if key is not None else None

    lookup = lookup_exact

    def _candidate_terms(self, entry: AliasEntry) -> Iterable[SourcedTerm]:
        categories = self.policy.fuzzy_categories
        if "primary" in categories:
            yield entry.primary_term
        for category, term in entry.alternatives.iter_terms():
            if category.value in categories:
                yield term

    def score_entry(self, term: str, entry: AliasEntry) -> Tuple[float, str]:
        best_score, best_term = 0.0, entry.primary_term.value
        for candidate in self._candidate_terms(entry):
            score = self.scorer(term, candidate.value)
            if score > best_score:
                best_score, best_term = score, candidate.value
        return best_score, best_term

    def match_fuzzy(self, term: str, threshold: float | None = None) -> FuzzyMatch | None:
        """Best entry for ``term`` with its score; an exact index hit wins outright."""

        exact = self.lookup_exact(term)
        if exact is not None:
            return FuzzyMatch(entry=exact, score=1.0, matched_term=term.strip(), exact=True)

        cutoff = self.policy.fuzzy_threshold if threshold is None else threshold
        best: FuzzyMatch | None = None
        for entry in self._snapshot.entries.values():
            score, matched = self.score_entry(term, entry)
            if score >= cutoff and (best is None or score > best.score):
                best = FuzzyMatch(entry=entry, score=score, matched_term=matched)
        return best

    def lookup_fuzzy(self, term: str, threshold: float | None = None) -> AliasEntry | None:
        match = self.match_fuzzy(term, threshold)
        return match.entry if match is not None else None

    def stats(self) -> Dict[str, int]:
        snapshot = self._snapshot
        counts = {category.value: 0 for category in VariantCategory}
        for entry in snapshot.entries.values():
            for category, _ in entry.alternatives.iter_terms():
                counts[category.value] += 1
        return {
            "entries": len(snapshot.entries),
            "indexed_terms": len(snapshot.index),
            "shadowed_terms": snapshot.shadowed,
            **counts,
        }

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def add(self, entry: AliasEntry) -> EntryMetadata:
        """Insert a new entry; raises :class:`DuplicateKey` if its key is taken."""

        with self._lock:
            key = entry.key
            if key in self._snapshot.entries:
                raise DuplicateKey(key)
            stored = entry.model_copy(deep=True)
            draft = EntryMetadata(storage_id="pending")
            storage_id = self.storage.create_entry(encode_entry(stored, draft), hint=key)
            metadata = draft.model_copy(update={"storage_id": storage_id})

            mutation = self._begin()
            mutation.entries[key] = stored
            mutation.metadata[key] = metadata
            self._commit(mutation)
            self._logger.debug("Added registry entry", key=key, storage_id=storage_id)
            return metadata

    def update(self, entry: AliasEntry) -> EntryMetadata:
        """Replace the stored entry that has the same key."""

        with self._lock:
            key = entry.key
            current = self._snapshot.metadata.get(key)
            if current is None:
                raise NotFound(key)
            return self._write(key, entry.model_copy(deep=True), current)

    def _write(self, key: str, entry: AliasEntry, current: EntryMetadata, *, old_key: str | None = None) -> EntryMetadata:
        metadata = current.touched()
        self.storage.write_entry(metadata.storage_id, encode_entry(entry, metadata))

        mutation = self._begin()
        if old_key is not None and old_key != key:
            mutation.entries = {
                (key if existing == old_key else existing): (entry if existing == old_key else value)
                for existing, value in mutation.entries.items()
            }
            mutation.metadata = {
                (key if existing == old_key else existing): (metadata if existing == old_key else value)
                for existing, value in mutation.metadata.items()
            }
        else:
            mutation.entries[key] = entry
            mutation.metadata[key] = metadata
        self._commit(mutation)
        return metadata

    def add_variant(
        self,
        key: str,
        term: SourcedTerm,
        category: VariantCategory | str = VariantCategory.SYNONYMS,
    ) -> bool:
        """File ``term`` under entry ``key``; returns ``False`` for a known term."""

        with self._lock:
            normalized = normalize_key(key)
            entry = self._snapshot.entries.get(normalized)
            if entry is None:
                raise NotFound(normalized)
            updated = entry.model_copy(deep=True)
            if not updated.add_alternative(term, category):
                return False
            self._write(normalized, updated, self._snapshot.metadata[normalized])
            return True

    def remove(self, key: str) -> AliasEntry:
        """Soft-delete: the stored blob is relocated, never erased."""

        with self._lock:
            normalized = normalize_key(key)
            entry = self._snapshot.entries.get(normalized)
            if entry is None:
                raise NotFound(normalized)
            metadata = self._snapshot.metadata[normalized]
            self.storage.relocate_entry(metadata.storage_id)

            mutation = self._begin()
            del mutation.entries[normalized]
            del mutation.metadata[normalized]
            self._commit(mutation)
            self._logger.debug("Removed registry entry", key=normalized, storage_id=metadata.storage_id)
            return entry

    def reassign_primary(
        self,
        old_key: str,
        new_value: str,
        demote_to: DemoteTarget = "synonyms",
    ) -> AliasEntry:
        """Make ``new_value`` the primary term of the entry keyed by ``old_key``.

        An existing variant of the same entry is promoted with its provenance
        intact; otherwise a manual-edit term is synthesized. The old primary is
        filed under ``demote_to`` unless that is ``"discard"``.
        """

        with self._lock:
            normalized_old = normalize_key(old_key)
            entry = self._snapshot.entries.get(normalized_old)
            if entry is None:
                raise NotFound(normalized_old)
            normalized_new = normalize_key(new_value)
            if normalized_new == normalized_old:
                return entry
            if normalized_new in self._snapshot.entries:
                raise AlreadyExists(normalized_new)

            updated = entry.model_copy(deep=True)
            promoted = updated.remove_variant(new_value)
            synthesized = promoted is None
            if promoted is None:
                promoted = SourcedTerm(
                    value=new_value,
                    source=self.policy.manual_edit_source,
                    origin_row=None,
                    field=entry.primary_term.field,
                )
            old_primary = updated.primary_term
            updated.primary_term = promoted.recategorized(TermCategory.PRIMARY)
            if demote_to != "discard":
                updated.alternatives.add(old_primary, demote_to)

            self._write(normalized_new, updated, self._snapshot.metadata[normalized_old], old_key=normalized_old)
            self._logger.info(
                "Reassigned registry primary",
                old_key=normalized_old,
                new_key=normalized_new,
                demoted_to=demote_to,
                synthesized=synthesized,
            )
            return updated


__all__ = [
    "AliasRegistry",
    "RegistrySnapshot",
    "FuzzyMatch",
    "DemoteTarget",
    "BLOB_FORMAT",
    "encode_entry",
    "decode_entry",
]
