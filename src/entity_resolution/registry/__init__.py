"""Canonical-term registries, their storage, and builders."""

from .builder import (
    BuildReport,
    DuplicateResolution,
    DuplicateResolver,
    NamedItem,
    RegistryBuilder,
    group_items,
    merge_resolver,
)
from .clustering import Cluster, ClusterMember, ClusteringEngine, UnionFind
from .registry import AliasRegistry, FuzzyMatch, RegistrySnapshot, decode_entry, encode_entry
from .storage import FilesystemRegistryStorage, InMemoryRegistryStorage, RegistryStorage

__all__ = [
    "BuildReport",
    "DuplicateResolution",
    "DuplicateResolver",
    "NamedItem",
    "RegistryBuilder",
    "group_items",
    "merge_resolver",
    "Cluster",
    "ClusterMember",
    "ClusteringEngine",
    "UnionFind",
    "AliasRegistry",
    "FuzzyMatch",
    "RegistrySnapshot",
    "decode_entry",
    "encode_entry",
    "FilesystemRegistryStorage",
    "InMemoryRegistryStorage",
    "RegistryStorage",
]
