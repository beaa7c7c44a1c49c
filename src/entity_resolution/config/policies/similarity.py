"""String similarity policy models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class SubstitutionCosts(BaseModel):
    """Edit costs applied by the vowel-weighted edit distance."""

    vowel_vowel: float = Field(
        default=30 / 380,
        ge=0.0,
        le=1.0,
        description="Cost of replacing one vowel with another.",
    )
    vowel_consonant: float = Field(
        default=12 / 19,
        ge=0.0,
        le=1.0,
        description="Cost of replacing a vowel with a consonant or the reverse.",
    )
    consonant_consonant: float = Field(default=1.0, ge=0.0, le=1.0)
    other: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="Cost for substitutions involving digits, punctuation, or whitespace.",
    )
    insertion: float = Field(default=1.0, gt=0.0, le=1.0)
    deletion: float = Field(default=1.0, gt=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_vowel_discount(self) -> "SubstitutionCosts":
        if self.vowel_vowel > self.vowel_consonant or self.vowel_vowel > self.consonant_consonant:
            raise ValueError("vowel_vowel substitutions must not cost more than other letter substitutions")
        return self


class SimilarityPolicy(BaseModel):
    """Configuration for the character-level similarity metric."""

    metric: Literal["vowel_weighted", "jaro_winkler"] = Field(
        default="vowel_weighted",
        description="Metric used by every field comparator.",
    )
    vowels: str = Field(default="aeiouy", min_length=1)
    costs: SubstitutionCosts = Field(default_factory=SubstitutionCosts)
    cache_size: int = Field(default=65536, ge=0)

    @field_validator("vowels")
    @classmethod
    def _normalise_vowels(cls, value: str) -> str:
        return "".join(sorted(set(value.casefold())))


__all__ = ["SimilarityPolicy", "SubstitutionCosts"]
