"""Alias registry and clustering policy models."""

from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, Field, model_validator

FuzzyCategory = Literal["primary", "homonyms", "synonyms", "candidates"]


class AliasThresholds(BaseModel):
    """Score bands used to file a variant as homonym, synonym, or candidate."""

    homonym: float = Field(default=0.875, ge=0.0, le=1.0)
    synonym: float = Field(default=0.845, ge=0.0, le=1.0)
    candidate: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Variants scoring below this floor are dropped when building consensus aliases.",
    )

    @model_validator(mode="after")
    def _ordered(self) -> "AliasThresholds":
        if not self.homonym >= self.synonym >= self.candidate:
            raise ValueError("alias thresholds must satisfy homonym >= synonym >= candidate")
        return self


class RegistryPolicy(BaseModel):
    """Configuration for canonical-term registries and their builders."""

    name_thresholds: AliasThresholds = Field(default_factory=AliasThresholds)
    contact_thresholds: AliasThresholds = Field(
        default_factory=lambda: AliasThresholds(homonym=0.87, synonym=0.85, candidate=0.5)
    )
    fuzzy_threshold: float = Field(default=0.80, ge=0.0, le=1.0)
    fuzzy_categories: List[FuzzyCategory] = Field(
        default_factory=lambda: ["primary", "homonyms", "candidates"],
        min_length=1,
    )
    secondary_address_dedup_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    builder_source: str = Field(default="NAME_REGISTRY_BUILDER", min_length=1)
    manual_edit_source: str = Field(default="MANUAL_EDIT", min_length=1)


__all__ = ["AliasThresholds", "RegistryPolicy", "FuzzyCategory"]
