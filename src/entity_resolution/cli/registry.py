"""Alias registry commands for the entity-resolution CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import typer
from rich.table import Table

from entity_resolution.comparison import RecordComparator
from entity_resolution.grouping import GroupBuilder
from entity_resolution.registry import AliasRegistry, RegistryBuilder, merge_resolver
from entity_resolution.utils.logging import get_logger, logging_context
from entity_resolution.utils.similarity import StringSimilarity

from .common import CLIError, CLIState, console, get_state, load_population, render_panel, resolve_path

_LOGGER = get_logger(module=__name__)

_DEMOTE_TARGETS = ("homonyms", "synonyms", "candidates", "discard")

app = typer.Typer(
    add_completion=False,
    help="Build, query, and curate canonical-name registries.",
    no_args_is_help=True,
)


def _registry_dir_option() -> Any:
    return typer.Option(
        None,
        "--registry-dir",
        "-r",
        help="Registry root directory; defaults to paths.registry_dir.",
        show_default=False,
    )


def _open_registry(state: CLIState, registry_dir: Optional[Path]) -> AliasRegistry:
    root = resolve_path(registry_dir or state.settings.paths.registry_dir, must_exist=False)
    policies = state.settings.policies
    return AliasRegistry.open(root, scorer=StringSimilarity(policies.similarity), policy=policies.registry)


def _build_command(
    ctx: typer.Context,
    *,
    input_path: Path = typer.Option(..., "--input", "-i", help="JSONL file with one record per line."),
    registry_dir: Optional[Path] = _registry_dir_option(),
    on_duplicate: str = typer.Option(
        "merge",
        "--on-duplicate",
        help="Collision handling for existing primary keys (merge or fail).",
        case_sensitive=False,
    ),
) -> None:
    mode = on_duplicate.lower()
    if mode not in {"merge", "fail"}:
        raise CLIError("--on-duplicate must be either 'merge' or 'fail'")

    state = get_state(ctx)
    records = load_population(input_path)
    registry = _open_registry(state, registry_dir)
    comparator = RecordComparator(state.settings.policies)

    with logging_context(run_id=state.run_id, step="registry-build"):
        with console.status(f"Grouping {len(records)} records..."):
            result = GroupBuilder(state.settings.policies, comparator).build(records)
        builder = RegistryBuilder(
            registry,
            comparator.fields,
            merge_resolver if mode == "merge" else None,
            policy=state.settings.policies.registry,
        )
        report = builder.build_from_groups(result.groups, result.population)
        _LOGGER.info("Registry build command finished", registry=registry.name, groups=len(result.groups), **report.to_dict())

    render_panel("Registry Build", {**report.to_dict(), "registry": registry.name, **registry.stats()})


def _lookup_command(
    ctx: typer.Context,
    term: str = typer.Argument(..., help="Term to resolve against the registry."),
    *,
    fuzzy: bool = typer.Option(False, "--fuzzy", help="Fall back to similarity search when no exact match exists."),
    threshold: Optional[float] = typer.Option(
        None,
        "--threshold",
        min=0.0,
        max=1.0,
        help="Fuzzy cutoff; defaults to policies.registry.fuzzy_threshold.",
    ),
    registry_dir: Optional[Path] = _registry_dir_option(),
) -> None:
    registry = _open_registry(get_state(ctx), registry_dir)
    if fuzzy:
        match = registry.match_fuzzy(term, threshold)
        if match is not None:
            payload = {
                "key": match.entry.key,
                "score": round(match.score, 4),
                "matched_term": match.matched_term,
                "exact": match.exact,
                "entry": match.entry.model_dump(mode="json"),
            }
            render_panel(f"Match for '{term}'", payload)
            return
    else:
        entry = registry.lookup_exact(term)
        if entry is not None:
            render_panel(f"Match for '{term}'", {"key": entry.key, "exact": True, "entry": entry.model_dump(mode="json")})
            return
    console.print(f"[yellow]No registry entry matches '{term}'.[/yellow]")
    raise typer.Exit(code=1)


def _stats_command(
    ctx: typer.Context,
    registry_dir: Optional[Path] = _registry_dir_option(),
) -> None:
    registry = _open_registry(get_state(ctx), registry_dir)
    table = Table(title=f"Registry {registry.name}", show_header=False, box=None)
    for name, value in registry.stats().items():
        table.add_row(name.replace("_", " ").capitalize(), str(value))
    console.print(table)


def _reassign_command(
    ctx: typer.Context,
    old_key: str = typer.Argument(..., help="Key of the entry to edit."),
    new_value: str = typer.Argument(..., help="Term to promote to primary."),
    *,
    demote_to: str = typer.Option(
        "synonyms",
        "--demote-to",
        help="Bucket for the previous primary (homonyms, synonyms, candidates, or discard).",
        case_sensitive=False,
    ),
    registry_dir: Optional[Path] = _registry_dir_option(),
) -> None:
    target = demote_to.lower()
    if target not in _DEMOTE_TARGETS:
        raise CLIError(f"--demote-to must be one of: {', '.join(_DEMOTE_TARGETS)}")
    state = get_state(ctx)
    registry = _open_registry(state, registry_dir)
    with logging_context(run_id=state.run_id, step="registry-reassign"):
        entry = registry.reassign_primary(old_key, new_value, demote_to=target)  # type: ignore[arg-type]
    console.print(f"[green]Entry '{old_key}' is now keyed '{entry.key}'.[/green]")


def _remove_command(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Key of the entry to remove."),
    registry_dir: Optional[Path] = _registry_dir_option(),
) -> None:
    state = get_state(ctx)
    registry = _open_registry(state, registry_dir)
    with logging_context(run_id=state.run_id, step="registry-remove"):
        entry = registry.remove(key)
    console.print(f"[green]Removed entry '{entry.key}'.[/green]")


app.command("build")(_build_command)
app.command("lookup")(_lookup_command)
app.command("stats")(_stats_command)
app.command("reassign")(_reassign_command)
app.command("remove")(_remove_command)


__all__ = ["app"]
