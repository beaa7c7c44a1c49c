"""Policy configuration primitives for comparison, matching, and registries."""

from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Sequence

import yaml
from pydantic import BaseModel, Field, model_validator

from .address import AddressPolicy, GeneralRules, PostOfficeBoxRules, RegionalRules
from .comparison import (
    BoostPolicy,
    ComparisonPolicy,
    ContactWeights,
    NameWeights,
    RecordWeights,
)
from .matching import GroupingPolicy, MatchCriteria, MatchingPolicy, MatchRule, PhaseSpec
from .registry import AliasThresholds, RegistryPolicy
from .similarity import SimilarityPolicy, SubstitutionCosts

POLICY_ENV_PREFIX = "RESOLUTION_POLICY__"


class Policies(BaseModel):
    """Root policy container."""

    policy_version: str = Field(default="2025-01-15")
    similarity: SimilarityPolicy = Field(default_factory=SimilarityPolicy)
    comparison: ComparisonPolicy = Field(default_factory=ComparisonPolicy)
    address: AddressPolicy = Field(default_factory=AddressPolicy)
    matching: MatchingPolicy = Field(default_factory=MatchingPolicy)
    grouping: GroupingPolicy = Field(default_factory=GroupingPolicy)
    registry: RegistryPolicy = Field(default_factory=RegistryPolicy)

    @model_validator(mode="after")
    def _validate_policy_version(self) -> "Policies":
        if not self.policy_version:
            raise ValueError("policy_version must be provided")
        return self


def _ensure_nested_mapping(
    cursor: MutableMapping[str, Any], part: str, full_path: Sequence[str]
) -> MutableMapping[str, Any]:
    existing = cursor.get(part)
    if existing is None:
        next_cursor: MutableMapping[str, Any] = {}
        cursor[part] = next_cursor
        return next_cursor
    if not isinstance(existing, MutableMapping):
        raise ValueError(
            "Cannot override policy path '"
            f"{'/'.join(full_path)}"
            "' because segment '"
            f"{part}"
            "' resolves to a non-mapping value"
        )
    return existing


def _resolve_env_overrides(raw: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Apply RESOLUTION_POLICY__ environment variable overrides.

    Variable names are split on double underscores into a lowercased traversal
    path, intermediate mappings are created on demand, and values are
    JSON-decoded when possible (``0.9`` -> ``0.9``, ``true`` -> ``True``).
    """

    for key, value in os.environ.items():
        if not key.startswith(POLICY_ENV_PREFIX):
            continue
        parts = [segment.lower() for segment in key[len(POLICY_ENV_PREFIX) :].split("__") if segment]
        if not parts:
            continue
        cursor: MutableMapping[str, Any] = raw
        for index, part in enumerate(parts[:-1], start=1):
            cursor = _ensure_nested_mapping(cursor, part, parts[: index + 1])
        try:
            parsed = json.loads(value)
        except (TypeError, json.JSONDecodeError):
            parsed = value
        cursor[parts[-1]] = parsed
    return raw


def load_policies(source: os.PathLike[str] | str | Mapping[str, Any] | None = None) -> Policies:
    """Load policies from a mapping or YAML file with environment overrides."""

    if source is None:
        raw: MutableMapping[str, Any] = {}
    elif isinstance(source, Mapping):
        raw = copy.deepcopy(dict(source))
    else:
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"Policy file not found: {path}")
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle)
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, MutableMapping):
            raise ValueError(f"Policy file '{path}' must contain a mapping at the top level")
        raw = dict(loaded)
    hydrated = _resolve_env_overrides(raw)
    return Policies.model_validate(hydrated)


__all__ = [
    "Policies",
    "load_policies",
    "SimilarityPolicy",
    "SubstitutionCosts",
    "ComparisonPolicy",
    "RecordWeights",
    "BoostPolicy",
    "NameWeights",
    "ContactWeights",
    "AddressPolicy",
    "PostOfficeBoxRules",
    "RegionalRules",
    "GeneralRules",
    "MatchingPolicy",
    "MatchCriteria",
    "MatchRule",
    "GroupingPolicy",
    "PhaseSpec",
    "RegistryPolicy",
    "AliasThresholds",
]
