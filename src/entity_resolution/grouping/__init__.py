"""Group construction, consensus, and export."""

from .builder import (
    FounderScan,
    GroupBuilder,
    GroupingResult,
    ScoredPair,
    dedupe_population,
    stratified_sample,
)
from .consensus import Consensus, ConsensusBuilder
from .export import comparison_rows, membership_rows, to_frame, write_table
from .groups import Group, GroupDatabase

__all__ = [
    "FounderScan",
    "GroupBuilder",
    "GroupingResult",
    "ScoredPair",
    "dedupe_population",
    "stratified_sample",
    "Consensus",
    "ConsensusBuilder",
    "comparison_rows",
    "membership_rows",
    "to_frame",
    "write_table",
    "Group",
    "GroupDatabase",
]
