"""Comparable field bundles and the record types built from them."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, ClassVar, Dict, Iterator, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from ..utils.helpers import normalize_whitespace


class ComparableKind(str, Enum):
    """Tag used to dispatch a comparable bundle to its comparator."""

    ADDRESS = "address"
    CONTACT = "contact"
    INDIVIDUAL_NAME = "individual_name"
    ENTITY_NAME = "entity_name"
    AUXILIARY = "auxiliary"


class RecordKind(str, Enum):
    INDIVIDUAL = "individual"
    HOUSEHOLD = "household"
    ORGANIZATION = "organization"


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = normalize_whitespace(str(value))
    return cleaned or None


class Comparable(BaseModel):
    """Immutable value object exposing a comparable kind."""

    model_config = ConfigDict(frozen=True)

    kind: ClassVar[ComparableKind]


class Address(Comparable):
    """A structurally parsed postal address."""

    kind: ClassVar[ComparableKind] = ComparableKind.ADDRESS

    street_number: str | None = None
    street_name: str | None = None
    street_type: str | None = None
    unit_type: str | None = None
    unit_number: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    identifier: str | None = Field(
        default=None,
        description="Structural identifier such as a fire or parcel number; defaults to street_number.",
    )

    @field_validator(
        "street_number",
        "street_name",
        "street_type",
        "unit_type",
        "unit_number",
        "city",
        "state",
        "postal_code",
        "identifier",
        mode="before",
    )
    @classmethod
    def _clean(cls, value: str | None) -> str | None:
        return _clean_optional(value)

    @property
    def street_text(self) -> str:
        return " ".join(part for part in (self.street_name, self.street_type) if part)

    @property
    def structural_identifier(self) -> str | None:
        return self.identifier or self.street_number

    def display(self) -> str:
        line = " ".join(part for part in (self.street_number, self.street_text) if part)
        unit = " ".join(part for part in (self.unit_type, self.unit_number) if part)
        locality = " ".join(part for part in (self.state, self.postal_code) if part)
        parts = [line, unit, self.city or "", locality]
        return ", ".join(part for part in parts if part)


class ContactBundle(Comparable):
    """Primary address, secondary addresses, and email for one record."""

    kind: ClassVar[ComparableKind] = ComparableKind.CONTACT

    primary_address: Address | None = None
    secondary_addresses: List[Address] = Field(default_factory=list)
    email: str | None = None

    @field_validator("email", mode="before")
    @classmethod
    def _clean_email(cls, value: str | None) -> str | None:
        cleaned = _clean_optional(value)
        return cleaned.lower() if cleaned else None

    def addresses(self) -> Iterator[Address]:
        if self.primary_address is not None:
            yield self.primary_address
        yield from self.secondary_addresses

    def is_empty(self) -> bool:
        return self.primary_address is None and not self.secondary_addresses and not self.email


class IndividualName(Comparable):
    """Structured personal name."""

    kind: ClassVar[ComparableKind] = ComparableKind.INDIVIDUAL_NAME

    title: str | None = None
    first: str | None = None
    other: str | None = Field(default=None, description="Middle names or initials.")
    last: str | None = None
    suffix: str | None = None

    @field_validator("title", "first", "other", "last", "suffix", mode="before")
    @classmethod
    def _clean(cls, value: str | None) -> str | None:
        return _clean_optional(value)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first, self.other, self.last) if part)


class EntityName(Comparable):
    """Single-string name used by households and organizations."""

    kind: ClassVar[ComparableKind] = ComparableKind.ENTITY_NAME

    value: str = Field(..., min_length=1)

    @field_validator("value", mode="before")
    @classmethod
    def _clean(cls, value: str) -> str:
        return normalize_whitespace(str(value))

    @property
    def full_name(self) -> str:
        return self.value


class AuxiliaryInfo(Comparable):
    """Loosely structured extra attributes (occupation, parcel id, notes...)."""

    kind: ClassVar[ComparableKind] = ComparableKind.AUXILIARY

    attributes: Dict[str, str] = Field(default_factory=dict)

    @field_validator("attributes", mode="before")
    @classmethod
    def _drop_blank(cls, value: Dict[str, object] | None) -> Dict[str, str]:
        if not value:
            return {}
        cleaned: Dict[str, str] = {}
        for key, raw in value.items():
            text = _clean_optional(None if raw is None else str(raw))
            if text:
                cleaned[str(key)] = text
        return cleaned


class BaseRecord(BaseModel):
    """Fields shared by every comparable record."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., min_length=1, description="Population-unique record key.")
    source: str = Field(..., min_length=1, description="Identifier of the originating data source.")
    contact: ContactBundle | None = None
    other_info: AuxiliaryInfo | None = None
    legacy_info: AuxiliaryInfo | None = None
    account_number: str | None = None

    @property
    def display_name(self) -> str:
        name = getattr(self, "name", None)
        return name.full_name if name is not None else ""


class IndividualRecord(BaseRecord):
    kind: Literal["individual"] = "individual"
    name: IndividualName | None = None


class HouseholdRecord(BaseRecord):
    """A household record with embedded member individuals."""

    kind: Literal["household"] = "household"
    name: EntityName | None = None
    members: List[IndividualRecord] = Field(
        default_factory=list,
        description="Embedded member records used for member-level comparison.",
    )
    member_keys: List[str] = Field(
        default_factory=list,
        description="Keys of top-level population records that this household absorbs.",
    )

    def member_views(self) -> List[IndividualRecord]:
        """Members with the household contact filled in where they have none."""

        views: List[IndividualRecord] = []
        for member in self.members:
            if member.contact is None and self.contact is not None:
                member = member.model_copy(update={"contact": self.contact})
            views.append(member)
        return views

    def absorbed_keys(self) -> List[str]:
        keys = list(self.member_keys)
        for member in self.members:
            if member.key not in keys:
                keys.append(member.key)
        return [key for key in keys if key != self.key]


class OrganizationRecord(BaseRecord):
    kind: Literal["organization"] = "organization"
    name: EntityName | None = None
    category: str = Field(default="business", description="Business, legal construct, non-human...")


Record = Annotated[
    Union[IndividualRecord, HouseholdRecord, OrganizationRecord],
    Field(discriminator="kind"),
]
RECORD_ADAPTER: TypeAdapter[Record] = TypeAdapter(Record)


def parse_record(payload: object) -> Record:
    """Validate a JSON-like payload into the matching record type."""

    return RECORD_ADAPTER.validate_python(payload)


__all__ = [
    "ComparableKind",
    "RecordKind",
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
    "RECORD_ADAPTER",
    "parse_record",
]
