"""Grouping commands for the entity-resolution CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from entity_resolution.grouping import GroupBuilder, comparison_rows, membership_rows, to_frame, write_table
from entity_resolution.grouping.export import COMPARISON_SCHEMA, MEMBERSHIP_SCHEMA
from entity_resolution.io import generate_run_metadata, write_json, write_metadata
from entity_resolution.utils.logging import get_logger, logging_context

from .common import CLIError, console, get_state, load_population, resolve_path

_LOGGER = get_logger(module=__name__)

app = typer.Typer(
    add_completion=False,
    help="Partition a record population into groups of matching records.",
    no_args_is_help=True,
)


def _run_command(
    ctx: typer.Context,
    *,
    input_path: Path = typer.Option(..., "--input", "-i", help="JSONL file with one record per line."),
    output_path: Optional[Path] = typer.Option(
        None,
        "--output",
        help="Membership table destination (.csv, .jsonl, .parquet); defaults to <output_dir>/members.csv.",
        show_default=False,
    ),
    comparisons_path: Optional[Path] = typer.Option(
        None,
        "--comparisons",
        help="Optional table of scored founder/candidate pairs.",
    ),
    consensus_path: Optional[Path] = typer.Option(
        None,
        "--consensus",
        help="Optional JSON file with every group and its consensus record.",
    ),
    metadata_path: Optional[Path] = typer.Option(
        None,
        "--metadata",
        help="Run metadata JSON; defaults to <output>.metadata.json.",
        show_default=False,
    ),
    workers: Optional[int] = typer.Option(
        None,
        "--workers",
        "-w",
        min=1,
        help="Founder scan threads; overrides policies.grouping.max_workers.",
    ),
) -> None:
    state = get_state(ctx)
    records = load_population(input_path)
    destination = resolve_path(
        output_path or Path(state.settings.paths.output_dir) / "members.csv",
        must_exist=False,
    )
    if destination.suffix.lower() not in {".csv", ".jsonl", ".ndjson", ".parquet", ".json"}:
        raise CLIError(f"Unsupported membership table format: {destination.name}")

    builder = GroupBuilder(state.settings.policies, max_workers=workers)
    with logging_context(run_id=state.run_id, step="grouping"):
        with console.status(f"Grouping {len(records)} records..."):
            result = builder.build(records)

        write_table(to_frame(membership_rows(result.database, result.population), MEMBERSHIP_SCHEMA), destination)
        if comparisons_path is not None:
            write_table(
                to_frame(comparison_rows(result.pairs), COMPARISON_SCHEMA),
                resolve_path(comparisons_path, must_exist=False),
            )
        if consensus_path is not None:
            write_json(
                [group.to_dict() for group in result.groups],
                resolve_path(consensus_path, must_exist=False),
            )

        samples = [group.to_dict() for group in result.database.filtered(min_size=2)[:5]]
        metadata = generate_run_metadata(
            {**result.stats, "run_id": state.run_id, "input": str(resolve_path(input_path))},
            {
                "environment": state.environment,
                "policy_version": state.settings.policy_version,
                "overrides": state.overrides,
            },
            samples,
        )
        metadata_destination = metadata_path or destination.with_name(f"{destination.stem}.metadata.json")
        write_metadata(metadata, resolve_path(metadata_destination, must_exist=False))

    table = Table(title="Grouping Summary", show_header=False, box=None)
    table.add_row("Records", str(result.stats.get("population", len(result.population))))
    table.add_row("Groups", str(len(result.groups)))
    table.add_row("Multi-member groups", str(len(result.database.filtered(min_size=2))))
    table.add_row("Type mismatches skipped", str(result.stats.get("type_mismatches", 0)))
    table.add_row("Membership table", str(destination))
    console.print(table)
    _LOGGER.info("Grouping command finished", run_id=state.run_id, output=str(destination))


app.command("run")(_run_command)


__all__ = ["app"]
