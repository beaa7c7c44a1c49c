"""Flat tabular views of grouping results backed by polars."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Mapping

import polars as pl

from ..comparison.records import RecordComparison
from ..entities.records import Record
from ..utils.helpers import ensure_directory
from ..utils.logging import get_logger
from .builder import ScoredPair
from .groups import GroupDatabase

_LOGGER = get_logger(module=__name__)

MEMBERSHIP_SCHEMA: Dict[str, object] = {
    "group_index": pl.Int64,
    "founding_key": pl.Utf8,
    "origin_phase": pl.Utf8,
    "key": pl.Utf8,
    "role": pl.Utf8,
    "source": pl.Utf8,
    "kind": pl.Utf8,
    "name": pl.Utf8,
    "score": pl.Float64,
    "group_size": pl.Int64,
    "source_flag": pl.Boolean,
}
COMPARISON_SCHEMA: Dict[str, object] = {
    "left_key": pl.Utf8,
    "right_key": pl.Utf8,
    "overall": pl.Float64,
    "name_score": pl.Float64,
    "contact_score": pl.Float64,
    "adjustment": pl.Utf8,
    "adjusted_field": pl.Utf8,
    "path": pl.Utf8,
    "matched_member": pl.Utf8,
    "verdict": pl.Utf8,
    "disposition": pl.Utf8,
}


def membership_rows(database: GroupDatabase, population: Mapping[str, Record]) -> List[Dict[str, object]]:
    """One row per (group, record) pair: founder, members, absorbed records, and near misses."""

    rows: List[Dict[str, object]] = []
    for group in database:
        roles = [(key, "founder" if key == group.founding_key else "member") for key in group.member_keys]
        roles.extend((key, "absorbed") for key in group.absorbed_keys)
        roles.extend((key, "near_miss") for key in group.near_miss_keys)
        for key, role in roles:
            record = population.get(key)
            rows.append(
                {
                    "group_index": group.index,
                    "founding_key": group.founding_key,
                    "origin_phase": group.origin_phase,
                    "key": key,
                    "role": role,
                    "source": record.source if record is not None else None,
                    "kind": record.kind if record is not None else None,
                    "name": record.display_name if record is not None else None,
                    "score": group.scores.get(key),
                    "group_size": group.size,
                    "source_flag": group.source_flag,
                }
            )
    return rows


def comparison_rows(items: Iterable[ScoredPair | RecordComparison]) -> List[Dict[str, object]]:
    rows: List[Dict[str, object]] = []
    for item in items:
        if isinstance(item, ScoredPair):
            comparison, verdict, disposition = item.comparison, item.verdict.value, item.disposition
        else:
            comparison, verdict, disposition = item, None, None
        rows.append(
            {
                "left_key": comparison.left_key,
                "right_key": comparison.right_key,
                "overall": comparison.overall,
                "name_score": comparison.name,
                "contact_score": comparison.contact,
                "adjustment": comparison.adjustment,
                "adjusted_field": comparison.adjusted_field,
                "path": comparison.path,
                "matched_member": comparison.matched_member,
                "verdict": verdict,
                "disposition": disposition,
            }
        )
    return rows


def to_frame(rows: List[Dict[str, object]], schema: Mapping[str, object] | None = None) -> pl.DataFrame:
    """Build a DataFrame; with a schema the columns and dtypes are fixed even for no rows."""

    if schema is None:
        return pl.DataFrame(rows)
    return pl.DataFrame(rows, schema=dict(schema))


def write_table(frame: pl.DataFrame, destination: str | Path) -> Path:
    """Write ``frame`` in the format implied by the destination suffix."""

    path = Path(destination).expanduser()
    ensure_directory(path.parent)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        frame.write_csv(path)
    elif suffix in {".jsonl", ".ndjson"}:
        frame.write_ndjson(path)
    elif suffix == ".parquet":
        frame.write_parquet(path)
    elif suffix == ".json":
        frame.write_json(path)
    else:
        raise ValueError(f"Unsupported table format '{suffix or path.name}' (use .csv, .jsonl, .parquet or .json)")
    _LOGGER.info("Wrote table", path=str(path), rows=frame.height, columns=frame.width)
    return path


__all__ = [
    "MEMBERSHIP_SCHEMA",
    "COMPARISON_SCHEMA",
    "membership_rows",
    "comparison_rows",
    "to_frame",
    "write_table",
]
