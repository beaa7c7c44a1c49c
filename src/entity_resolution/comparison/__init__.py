"""Field and record comparison."""

from .address import AddressComparator, AddressComparison, AddressMode, TermDirectory
from .contact import ContactComparator
from .engine import FieldComparator, WeightedComparisonEngine, WeightedScore
from .fields import FieldComparators
from .names import NameComparator
from .records import MatchClassifier, MatchVerdict, RecordComparator, RecordComparison

__all__ = [
    "AddressComparator",
    "AddressComparison",
    "AddressMode",
    "TermDirectory",
    "ContactComparator",
    "FieldComparator",
    "WeightedComparisonEngine",
    "WeightedScore",
    "FieldComparators",
    "NameComparator",
    "MatchClassifier",
    "MatchVerdict",
    "RecordComparator",
    "RecordComparison",
]
