"""Primary Typer application wiring the entity-resolution CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, List, Optional

import typer
from rich.table import Table

from entity_resolution.comparison import RecordComparator
from entity_resolution.errors import ResolutionError
from entity_resolution.grouping import dedupe_population
from entity_resolution.utils.logging import configure_logging

from . import grouping, registry
from .common import CLIError, configure_state, console, get_state, load_population, parse_override, render_panel


class ResolutionTyper(typer.Typer):
    """Typer subclass that supports registering exception handlers."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._exception_handlers: list[tuple[type[BaseException], Callable[[BaseException], Any]]] = []

    def exception_handler(
        self, exception_type: type[BaseException]
    ) -> Callable[[Callable[[BaseException], Any]], Callable[[BaseException], Any]]:
        def decorator(handler: Callable[[BaseException], Any]) -> Callable[[BaseException], Any]:
            self._exception_handlers.append((exception_type, handler))
            return handler

        return decorator

    def _resolve_handler(self, exception: BaseException) -> Callable[[BaseException], Any] | None:
        for registered_type, handler in self._exception_handlers:
            if isinstance(exception, registered_type):
                return handler
        return None

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        try:
            return super().__call__(*args, **kwargs)
        except BaseException as exc:  # pragma: no cover - CLI surface behaviour
            handler = self._resolve_handler(exc)
            if handler is None:
                raise
            result = handler(exc)
            if isinstance(result, BaseException):
                raise result
            return result


app = ResolutionTyper(
    add_completion=False,
    help="""
    Group records that describe the same person, household, or organization,
    and curate the canonical-name registries built from those groups.
    """.strip(),
    no_args_is_help=True,
)


@app.exception_handler(CLIError)
def handle_cli_error(exception: CLIError) -> typer.Exit:
    """Render ``CLIError`` messages without stack traces."""

    console.print(f"[bold red]Error:[/bold red] {exception}")
    return typer.Exit(code=2)


@app.exception_handler(ResolutionError)
def handle_resolution_error(exception: ResolutionError) -> typer.Exit:
    console.print(f"[bold red]{type(exception).__name__}:[/bold red] {exception}")
    return typer.Exit(code=2)


@app.callback()
def main(
    ctx: typer.Context,
    environment: Optional[str] = typer.Option(
        None,
        "--environment",
        "-e",
        help="Active configuration environment (development, testing, production).",
        show_default=False,
    ),
    override: List[str] = typer.Option(  # noqa: B008 - Typer callback signature
        [],
        "--override",
        "-o",
        metavar="KEY=VALUE",
        help="Configuration override in dotted.key=value notation (repeatable).",
    ),
    run_id: Optional[str] = typer.Option(
        None,
        "--run-id",
        help="Explicit run identifier; defaults to a generated value.",
        show_default=False,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Emit verbose diagnostic output for CLI operations.",
    ),
) -> None:
    """Configure shared CLI state prior to executing subcommands."""

    overrides = [parse_override(item) for item in override]
    state = configure_state(
        ctx,
        environment=environment,
        overrides=overrides,
        run_id=run_id,
        verbose=verbose,
    )
    configure_logging(state.settings, level="DEBUG" if verbose else None)

    if verbose:
        table = Table(title="CLI Context", show_header=False, box=None)
        table.add_row("Environment", state.environment)
        table.add_row("Run ID", state.run_id)
        table.add_row("Policy version", state.settings.policy_version)
        console.print(table)


@app.command("compare")
def compare_command(
    ctx: typer.Context,
    key_a: str = typer.Argument(..., help="Key of the first record."),
    key_b: str = typer.Argument(..., help="Key of the second record."),
    *,
    input_path: Path = typer.Option(..., "--input", "-i", help="JSONL file with one record per line."),
) -> None:
    """Score two records and show the per-field breakdown."""

    state = get_state(ctx)
    population = dedupe_population(load_population(input_path))
    missing = [key for key in (key_a, key_b) if key not in population]
    if missing:
        raise CLIError(f"Unknown record key(s): {', '.join(missing)}")

    comparator = RecordComparator(state.settings.policies)
    verdict, comparison = comparator.classify(population[key_a], population[key_b])
    render_panel(f"{key_a} vs {key_b}", {**comparison.to_dict(), "verdict": verdict.value})


app.add_typer(grouping.app, name="group", help="Group construction commands")
app.add_typer(registry.app, name="registry", help="Alias registry commands")
