"""Weighting policies for record and field comparison."""

from __future__ import annotations

import math
from typing import Dict, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator


def _check_weight_map(value: Dict[str, float]) -> Dict[str, float]:
    if not value:
        raise ValueError("weight maps must declare at least one field")
    for field_name, weight in value.items():
        if weight < 0.0:
            raise ValueError(f"weight for '{field_name}' must be non-negative")
    total = sum(value.values())
    if not math.isclose(total, 1.0, abs_tol=1e-6):
        raise ValueError(f"weights must sum to 1.0 (got {total:.6f})")
    return dict(value)


class BoostPolicy(BaseModel):
    """Conditional weight boost applied when one primary field clearly agrees."""

    enabled: bool = Field(default=True)
    primary_fields: Tuple[str, str] = Field(default=("name", "contact"))
    exact_delta: float = Field(
        default=0.12,
        ge=0.0,
        le=1.0,
        description="Weight added when a primary field scores exactly 1.0 and the other does not.",
    )
    near_delta: float = Field(
        default=0.06,
        ge=0.0,
        le=1.0,
        description="Weight added when a primary field clears near_threshold and the other does not.",
    )
    near_threshold: float = Field(default=0.95, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_fields(self) -> "BoostPolicy":
        if self.primary_fields[0] == self.primary_fields[1]:
            raise ValueError("boost primary_fields must name two different fields")
        if self.near_delta > self.exact_delta:
            raise ValueError("near_delta must not exceed exact_delta")
        return self


class RecordWeights(BaseModel):
    """Base weight maps keyed by record kind."""

    individual: Dict[str, float] = Field(
        default_factory=lambda: {"name": 0.5, "contact": 0.3, "other": 0.15, "legacy": 0.05}
    )
    household: Dict[str, float] = Field(
        default_factory=lambda: {"name": 0.4, "contact": 0.4, "other": 0.15, "legacy": 0.05}
    )
    organization: Dict[str, float] = Field(
        default_factory=lambda: {"name": 0.5, "contact": 0.3, "other": 0.15, "legacy": 0.05}
    )
    cross_type: Dict[str, float] = Field(
        default_factory=lambda: {"name": 0.5, "contact": 0.5},
        description="Weights used when two records of different kinds are compared directly.",
    )

    @field_validator("individual", "household", "organization", "cross_type")
    @classmethod
    def _validate_maps(cls, value: Dict[str, float]) -> Dict[str, float]:
        return _check_weight_map(value)

    def for_kind(self, kind: str) -> Dict[str, float]:
        return dict(getattr(self, kind))


class NameWeights(BaseModel):
    """Weights for the structured individual-name comparator."""

    last: float = Field(default=0.5, ge=0.0, le=1.0)
    first: float = Field(default=0.4, ge=0.0, le=1.0)
    other: float = Field(default=0.1, ge=0.0, le=1.0)

    def as_map(self) -> Dict[str, float]:
        return _check_weight_map({"last": self.last, "first": self.first, "other": self.other})


class ContactWeights(BaseModel):
    """Weights for contact bundle aggregation and the perfect-match override."""

    primary_address: float = Field(default=0.6, ge=0.0, le=1.0)
    secondary_address: float = Field(default=0.2, ge=0.0, le=1.0)
    email: float = Field(default=0.2, ge=0.0, le=1.0)
    perfect_match_weight: float = Field(
        default=0.9,
        ge=0.0,
        le=1.0,
        description="Effective weight of a channel that matches exactly; the rest share the remainder.",
    )

    def as_map(self) -> Dict[str, float]:
        return _check_weight_map(
            {
                "primary_address": self.primary_address,
                "secondary_address": self.secondary_address,
                "email": self.email,
            }
        )


class ComparisonPolicy(BaseModel):
    """Root comparison policy."""

    record_weights: RecordWeights = Field(default_factory=RecordWeights)
    boost: BoostPolicy = Field(default_factory=BoostPolicy)
    names: NameWeights = Field(default_factory=NameWeights)
    contact: ContactWeights = Field(default_factory=ContactWeights)

    @model_validator(mode="after")
    def _check_maps(self) -> "ComparisonPolicy":
        self.names.as_map()
        self.contact.as_map()
        return self


__all__ = [
    "BoostPolicy",
    "RecordWeights",
    "NameWeights",
    "ContactWeights",
    "ComparisonPolicy",
]
