"""End-to-end smoke tests for the Typer-based entity-resolution CLI."""

from __future__ import annotations

import json
from pathlib import Path

import polars as pl
import pytest
import typer
from typer.testing import CliRunner

from entity_resolution.cli.common import merge_overrides, parse_override
from entity_resolution.cli.main import app
from entity_resolution.entities import Address, ContactBundle, IndividualName, IndividualRecord
from entity_resolution.io import write_records
from entity_resolution.registry import AliasRegistry

HOME = Address(street_number="12", street_name="MAIN", street_type="ST", city="PROVIDENCE", postal_code="02903")
FARM = Address(street_number="880", street_name="OCEAN", street_type="DR", city="NEWPORT", postal_code="02840")


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def cli_env(tmp_path: Path) -> dict[str, str]:
    return {
        "RESOLUTION_SETTINGS__PATHS__OUTPUT_DIR": str(tmp_path / "output"),
        "RESOLUTION_SETTINGS__PATHS__REGISTRY_DIR": str(tmp_path / "registry"),
        "RESOLUTION_SETTINGS__PATHS__LOGS_DIR": str(tmp_path / "logs"),
    }


@pytest.fixture()
def population_file(tmp_path: Path) -> Path:
    def person(key: str, first: str, last: str, source: str, address: Address) -> IndividualRecord:
        return IndividualRecord(
            key=key,
            source=source,
            name=IndividualName(first=first, last=last),
            contact=ContactBundle(primary_address=address),
        )

    records = [
        person("c1", "JOHN", "SMITH", "crm", HOME),
        person("a1", "JON", "SMITH", "assessor", HOME),
        person("c2", "MARGARET", "OKAFOR", "crm", FARM),
    ]
    return write_records(records, tmp_path / "population.jsonl")


def invoke_directly(monkeypatch: pytest.MonkeyPatch, cli_env: dict[str, str], args: list[str]) -> int:
    for name, value in cli_env.items():
        monkeypatch.setenv(name, value)
    with pytest.raises(typer.Exit) as excinfo:
        app(prog_name="entity-resolution", args=args, standalone_mode=False)
    return excinfo.value.exit_code


def test_parse_override_builds_nested_values() -> None:
    assert parse_override("policies.grouping.max_workers=2") == {"policies": {"grouping": {"max_workers": 2}}}
    assert parse_override("policies.grouping.flagged_source=assessor") == {
        "policies": {"grouping": {"flagged_source": "assessor"}}
    }
    with pytest.raises(typer.BadParameter):
        parse_override("policies.grouping")
    with pytest.raises(typer.BadParameter):
        parse_override(" . =1")


def test_merge_overrides_is_deep_and_later_wins() -> None:
    merged = merge_overrides(
        [
            parse_override("policies.grouping.max_workers=2"),
            parse_override("policies.grouping.build_consensus=false"),
            parse_override("policies.grouping.max_workers=3"),
        ]
    )
    assert merged == {"policies": {"grouping": {"max_workers": 3, "build_consensus": False}}}


def test_group_run_writes_membership_and_metadata(
    runner: CliRunner, cli_env: dict[str, str], population_file: Path, tmp_path: Path
) -> None:
    out_dir = tmp_path / "out"
    result = runner.invoke(
        app,
        [
            "--run-id",
            "run-123",
            "-o",
            "policies.grouping.max_workers=1",
            "group",
            "run",
            "--input",
            str(population_file),
            "--output",
            str(out_dir / "members.csv"),
            "--comparisons",
            str(out_dir / "pairs.jsonl"),
            "--consensus",
            str(out_dir / "groups.json"),
        ],
        env=cli_env,
    )

    assert result.exit_code == 0, result.output
    assert "Grouping Summary" in result.output

    members = pl.read_csv(out_dir / "members.csv")
    assert members["key"].to_list() == ["c1", "a1", "c2"]
    assert members["role"].to_list() == ["founder", "member", "founder"]
    assert members["group_index"].to_list() == [0, 0, 1]

    metadata = json.loads((out_dir / "members.metadata.json").read_text(encoding="utf-8"))
    assert metadata["stats"]["run_id"] == "run-123"
    assert metadata["stats"]["population"] == 3
    assert metadata["config"]["overrides"] == {"policies": {"grouping": {"max_workers": 1}}}
    assert metadata["samples"][0]["member_keys"] == ["c1", "a1"]

    groups = json.loads((out_dir / "groups.json").read_text(encoding="utf-8"))
    assert groups[0]["consensus"]["primary_key"] in {"c1", "a1"}
    assert groups[1]["consensus"] is None
    assert (out_dir / "pairs.jsonl").exists()


def test_group_run_defaults_to_the_output_directory(
    runner: CliRunner, cli_env: dict[str, str], population_file: Path, tmp_path: Path
) -> None:
    result = runner.invoke(app, ["group", "run", "--input", str(population_file), "-w", "2"], env=cli_env)

    assert result.exit_code == 0, result.output
    assert (tmp_path / "output" / "members.csv").exists()
    assert (tmp_path / "output" / "members.metadata.json").exists()


def test_compare_reports_the_verdict(runner: CliRunner, cli_env: dict[str, str], population_file: Path) -> None:
    result = runner.invoke(app, ["compare", "c1", "a1", "--input", str(population_file)], env=cli_env)

    assert result.exit_code == 0, result.output
    assert "true_match" in result.output
    assert "c1 vs a1" in result.output


def test_cli_errors_exit_with_code_two(
    monkeypatch: pytest.MonkeyPatch, cli_env: dict[str, str], population_file: Path, tmp_path: Path
) -> None:
    assert invoke_directly(monkeypatch, cli_env, ["compare", "c1", "zz", "--input", str(population_file)]) == 2
    assert invoke_directly(monkeypatch, cli_env, ["compare", "c1", "a1", "--input", str(tmp_path / "missing.jsonl")]) == 2
    assert (
        invoke_directly(
            monkeypatch,
            cli_env,
            ["group", "run", "--input", str(population_file), "--output", str(tmp_path / "members.xlsx")],
        )
        == 2
    )
    assert invoke_directly(monkeypatch, cli_env, ["-o", "policies.grouping.max_workers=0", "registry", "stats"]) == 2


def test_registry_commands_build_query_and_curate(
    runner: CliRunner, cli_env: dict[str, str], population_file: Path, tmp_path: Path
) -> None:
    registry_dir = tmp_path / "registry" / "names"

    build = runner.invoke(
        app,
        ["registry", "build", "--input", str(population_file), "--registry-dir", str(registry_dir)],
        env=cli_env,
    )
    assert build.exit_code == 0, build.output
    assert "Registry Build" in build.output
    assert sorted(AliasRegistry.open(registry_dir).keys()) == ["JOHN SMITH", "MARGARET OKAFOR"]

    lookup = runner.invoke(app, ["registry", "lookup", "jon smith", "-r", str(registry_dir)], env=cli_env)
    assert lookup.exit_code == 0, lookup.output
    assert "JOHN SMITH" in lookup.output

    fuzzy = runner.invoke(app, ["registry", "lookup", "MARGRET OKAFOR", "--fuzzy", "-r", str(registry_dir)], env=cli_env)
    assert fuzzy.exit_code == 0, fuzzy.output
    assert "MARGARET OKAFOR" in fuzzy.output

    miss = runner.invoke(app, ["registry", "lookup", "MARGRET OKAFOR", "-r", str(registry_dir)], env=cli_env)
    assert miss.exit_code == 1

    stats = runner.invoke(app, ["registry", "stats", "-r", str(registry_dir)], env=cli_env)
    assert stats.exit_code == 0, stats.output
    assert "Entries" in stats.output

    reassign = runner.invoke(app, ["registry", "reassign", "JOHN SMITH", "JON SMITH", "-r", str(registry_dir)], env=cli_env)
    assert reassign.exit_code == 0, reassign.output
    entry = AliasRegistry.open(registry_dir).get("JON SMITH")
    assert [term.value for term in entry.alternatives.synonyms] == ["JOHN SMITH"]

    remove = runner.invoke(app, ["registry", "remove", "margaret okafor", "-r", str(registry_dir)], env=cli_env)
    assert remove.exit_code == 0, remove.output
    assert AliasRegistry.open(registry_dir).keys() == ["JON SMITH"]


def test_registry_rebuild_merges_or_fails_on_duplicates(
    monkeypatch: pytest.MonkeyPatch, runner: CliRunner, cli_env: dict[str, str], population_file: Path, tmp_path: Path
) -> None:
    registry_dir = tmp_path / "registry" / "names"
    args = ["registry", "build", "--input", str(population_file), "-r", str(registry_dir)]

    assert runner.invoke(app, args, env=cli_env).exit_code == 0
    assert runner.invoke(app, args, env=cli_env).exit_code == 0
    assert len(AliasRegistry.open(registry_dir)) == 2

    assert invoke_directly(monkeypatch, cli_env, [*args, "--on-duplicate", "fail"]) == 2
    assert invoke_directly(monkeypatch, cli_env, [*args, "--on-duplicate", "skip"]) == 2
    assert invoke_directly(monkeypatch, cli_env, ["registry", "remove", "NOBODY", "-r", str(registry_dir)]) == 2
