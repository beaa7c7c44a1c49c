"""Address comparison policy models."""

from __future__ import annotations

import re
from typing import List

from pydantic import BaseModel, Field, field_validator


class PostOfficeBoxRules(BaseModel):
    """Scoring rules for post-office-box addresses."""

    indicator_pattern: str = Field(
        default=r"^\s*(?:p\.?\s*o\.?\s*(?:box|b)\b|post\s+office\s+box\b|pobox\b|pob\b)",
        description="Case-insensitive pattern matched against unit-type and street fields.",
    )
    box_weight: float = Field(default=0.7, ge=0.0, le=1.0)
    location_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    box_mismatch_cap: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Upper bound on the score when box numbers differ.",
    )
    postal_mismatch_factor: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Multiplier applied when both postal codes are present and differ.",
    )

    @field_validator("indicator_pattern")
    @classmethod
    def _compiles(cls, value: str) -> str:
        re.compile(value, re.IGNORECASE)
        return value


class RegionalRules(BaseModel):
    """Scoring rules for the special region keyed by structural identifiers."""

    postal_codes: List[str] = Field(default_factory=lambda: ["02807"])
    city_names: List[str] = Field(default_factory=lambda: ["BLOCK ISLAND", "NEW SHOREHAM"])
    identifier_weight: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Weight of the structural identifier (fire or parcel number).",
    )
    street_weight: float = Field(default=0.2, ge=0.0, le=1.0)
    identifier_mismatch_cap: float = Field(default=0.4, ge=0.0, le=1.0)
    identifier_match_floor: float = Field(
        default=0.75,
        ge=0.0,
        le=1.0,
        description="Lower bound on the score when both identifiers are identical.",
    )

    @field_validator("city_names")
    @classmethod
    def _upper(cls, value: List[str]) -> List[str]:
        return [" ".join(item.split()).upper() for item in value if item.strip()]


class GeneralRules(BaseModel):
    """Scoring rules for ordinary street addresses."""

    street_number_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    street_name_weight: float = Field(default=0.4, ge=0.0, le=1.0)
    location_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    postal_mismatch_factor: float = Field(default=0.6, ge=0.0, le=1.0)
    city_weight: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Share of city similarity in the location score when postal codes are missing.",
    )


class AddressPolicy(BaseModel):
    """Root address comparison policy."""

    po_box: PostOfficeBoxRules = Field(default_factory=PostOfficeBoxRules)
    regional: RegionalRules = Field(default_factory=RegionalRules)
    general: GeneralRules = Field(default_factory=GeneralRules)
    postal_code_length: int = Field(
        default=5,
        ge=1,
        description="Number of leading postal-code characters compared.",
    )


__all__ = ["AddressPolicy", "PostOfficeBoxRules", "RegionalRules", "GeneralRules"]
