"""Input/output helpers shared by the registry storage and the grouping pipeline."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Callable, Iterable, Iterator, List, Sequence, TextIO

from pydantic import ValidationError

from .entities.records import Record, parse_record
from .utils.helpers import ensure_directory
from .utils.logging import get_logger

_LOGGER = get_logger(module=__name__)


def load_records(path: str | Path, *, kinds: Sequence[str] | None = None) -> Iterator[Record]:
    """Yield records from a JSONL file, optionally keeping only some kinds.

    Raises :class:`ValueError` naming the offending line when a row does not
    validate.
    """

    with Path(path).open("r", encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                record = parse_record(json.loads(line))
            except (json.JSONDecodeError, ValidationError) as exc:
                raise ValueError(f"{path}:{line_number}: invalid record ({exc})") from exc
            if kinds is not None and record.kind not in kinds:
                continue
            yield record


def read_records(path: str | Path, *, kinds: Sequence[str] | None = None) -> List[Record]:
    records = list(load_records(path, kinds=kinds))
    _LOGGER.info("Loaded records", path=str(path), count=len(records))
    return records


def atomic_write(
    destination: str | Path,
    writer: Callable[[TextIO], None],
    *,
    encoding: str = "utf-8",
) -> Path:
    """Write using a temporary file before atomically replacing the destination."""

    path = Path(destination).expanduser()
    ensure_directory(path.parent)

    tmp_path: Path | None = None
    tmp_handle = NamedTemporaryFile(
        mode="w",
        encoding=encoding,
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    )
    try:
        tmp_path = Path(tmp_handle.name)
        try:
            writer(tmp_handle)
            tmp_handle.flush()
            os.fsync(tmp_handle.fileno())
        finally:
            tmp_handle.close()
        os.replace(tmp_path, path)
    except BaseException:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink(missing_ok=True)
        raise
    return path


def write_json(payload: object, destination: str | Path) -> Path:
    def _writer(handle: TextIO) -> None:
        handle.write(json.dumps(payload, indent=2, sort_keys=True, default=str) + "\n")

    return atomic_write(destination, _writer)


def write_records(records: Iterable[Record], destination: str | Path) -> Path:
    """Persist records to JSONL."""

    def _writer(handle: TextIO) -> None:
        for record in records:
            handle.write(json.dumps(record.model_dump(mode="json", exclude_none=True), sort_keys=True))
            handle.write("\n")

    return atomic_write(destination, _writer)


def generate_run_metadata(
    processing_stats: dict,
    config_used: dict,
    samples: Iterable[dict] = (),
) -> dict:
    """Create the metadata payload describing a grouping run."""

    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "stats": processing_stats,
        "config": config_used,
        "samples": list(samples),
    }


def write_metadata(payload: dict, destination: str | Path) -> Path:
    return write_json(payload, destination)


__all__ = [
    "load_records",
    "read_records",
    "atomic_write",
    "write_json",
    "write_records",
    "generate_run_metadata",
    "write_metadata",
]
