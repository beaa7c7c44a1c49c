"""Canonical-term entities: sourced terms, alias buckets, and registry entries."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Iterator, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils.helpers import normalize_key


class TermCategory(str, Enum):
    """Role a sourced term plays inside an alias entry."""

    PRIMARY = "primary"
    HOMONYM = "homonym"
    SYNONYM = "synonym"
    CANDIDATE = "candidate"


class VariantCategory(str, Enum):
    """Buckets holding the non-primary variants of an alias entry."""

    HOMONYMS = "homonyms"
    SYNONYMS = "synonyms"
    CANDIDATES = "candidates"

    @property
    def term_category(self) -> TermCategory:
        return _VARIANT_TO_TERM[self]


_VARIANT_TO_TERM = {
    VariantCategory.HOMONYMS: TermCategory.HOMONYM,
    VariantCategory.SYNONYMS: TermCategory.SYNONYM,
    VariantCategory.CANDIDATES: TermCategory.CANDIDATE,
}


class SourcedTerm(BaseModel):
    """An atomic textual value together with where it came from."""

    model_config = ConfigDict(frozen=True)

    value: str = Field(..., min_length=1)
    source: str = Field(..., min_length=1, description="Identifier of the producing source or tool.")
    origin_row: int | None = Field(
        default=None,
        description="Row or record index within the source, when one exists.",
    )
    field: str = Field(default="", description="Source field the value was read from.")
    category: TermCategory = Field(default=TermCategory.PRIMARY)

    @field_validator("value")
    @classmethod
    def _strip_value(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("value must contain non-whitespace characters")
        return cleaned

    @property
    def key(self) -> str:
        return normalize_key(self.value)

    def recategorized(self, category: TermCategory) -> "SourcedTerm":
        """Return a copy carrying ``category`` and the original provenance."""

        if category == self.category:
            return self
        return self.model_copy(update={"category": category})


class Aliases(BaseModel):
    """Categorized variant terms of one canonical identity."""

    homonyms: List[SourcedTerm] = Field(default_factory=list)
    synonyms: List[SourcedTerm] = Field(default_factory=list)
    candidates: List[SourcedTerm] = Field(default_factory=list)

    def bucket(self, category: VariantCategory | str) -> List[SourcedTerm]:
        return getattr(self, VariantCategory(category).value)

    def add(self, term: SourcedTerm, category: VariantCategory | str = VariantCategory.SYNONYMS) -> SourcedTerm:
        resolved = VariantCategory(category)
        filed = term.recategorized(resolved.term_category)
        self.bucket(resolved).append(filed)
        return filed

    def iter_terms(self) -> Iterator[Tuple[VariantCategory, SourcedTerm]]:
        for category in VariantCategory:
            for term in self.bucket(category):
                yield category, term

    def values(self) -> List[str]:
        return [term.value for _, term in self.iter_terms()]

    def __len__(self) -> int:
        return len(self.homonyms) + len(self.synonyms) + len(self.candidates)


class AliasEntry(BaseModel):
    """One canonical identity: a primary term plus its known variants."""

    primary_term: SourcedTerm
    alternatives: Aliases = Field(default_factory=Aliases)

    @property
    def key(self) -> str:
        return self.primary_term.key

    def all_terms(self) -> List[SourcedTerm]:
        return [self.primary_term, *(term for _, term in self.alternatives.iter_terms())]

    def find_variant(self, value: str) -> Tuple[VariantCategory, SourcedTerm] | None:
        """Return the bucket and term matching ``value``, ignoring case."""

        wanted = normalize_key(value)
        for category, term in self.alternatives.iter_terms():
            if term.key == wanted:
                return category, term
        return None

    def matches(self, value: str) -> bool:
        wanted = normalize_key(value)
        return any(term.key == wanted for term in self.all_terms())

    def add_alternative(
        self,
        term: SourcedTerm,
        category: VariantCategory | str = VariantCategory.SYNONYMS,
    ) -> bool:
        """File ``term`` as a variant unless it repeats the primary or a known variant."""

        if term.key == self.key or self.find_variant(term.value) is not None:
            return False
        self.alternatives.add(term, category)
        return True

    def remove_variant(self, value: str) -> SourcedTerm | None:
        found = self.find_variant(value)
        if found is None:
            return None
        category, term = found
        self.alternatives.bucket(category).remove(term)
        return term


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EntryMetadata(BaseModel):
    """Registry-owned bookkeeping attached to each alias entry."""

    storage_id: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=_utcnow)
    last_modified_at: datetime = Field(default_factory=_utcnow)

    def touched(self) -> "EntryMetadata":
        return self.model_copy(update={"last_modified_at": _utcnow()})


__all__ = [
    "TermCategory",
    "VariantCategory",
    "SourcedTerm",
    "Aliases",
    "AliasEntry",
    "EntryMetadata",
]
