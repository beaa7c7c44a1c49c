"""Configuration utilities for entity resolution."""

from .policies import (
    AddressPolicy,
    ComparisonPolicy,
    GroupingPolicy,
    MatchingPolicy,
    Policies,
    RegistryPolicy,
    SimilarityPolicy,
    load_policies,
)
from .settings import LoggingConfig, PathsConfig, Settings

__all__ = [
    "Settings",
    "PathsConfig",
    "LoggingConfig",
    "Policies",
    "load_policies",
    "SimilarityPolicy",
    "ComparisonPolicy",
    "AddressPolicy",
    "MatchingPolicy",
    "GroupingPolicy",
    "RegistryPolicy",
]
