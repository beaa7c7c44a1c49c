"""Domain entities shared across comparators, registries, and grouping."""

from .core import (
    AliasEntry,
    Aliases,
    EntryMetadata,
    SourcedTerm,
    TermCategory,
    VariantCategory,
)
from .records import (
    Address,
    AuxiliaryInfo,
    BaseRecord,
    Comparable,
    ComparableKind,
    ContactBundle,
    EntityName,
    HouseholdRecord,
    IndividualName,
    IndividualRecord,
    OrganizationRecord,
    Record,
    RecordKind,
    parse_record,
)

__all__ = [
    "TermCategory",
    "VariantCategory",
    "SourcedTerm",
    "Aliases",
    "AliasEntry",
    "EntryMetadata",
    "ComparableKind",
    "Comparable",
    "Address",
    "ContactBundle",
    "IndividualName",
    "EntityName",
    "AuxiliaryInfo",
    "BaseRecord",
    "IndividualRecord",
    "HouseholdRecord",
    "OrganizationRecord",
    "Record",
    "RecordKind",
    "parse_record",
]
