"""Tests for configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from loguru import logger
from pydantic import ValidationError

from entity_resolution.config.policies import Policies, load_policies
from entity_resolution.config.settings import PROJECT_ROOT, PathsConfig, Settings, collect_layers
from entity_resolution.utils.logging import configure_logging, get_logger


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "config"
    directory.mkdir()
    default_yaml = {
        "environment": "development",
        "paths": {
            "output_dir": str(tmp_path / "output"),
            "registry_dir": str(tmp_path / "registry"),
            "logs_dir": str(tmp_path / "logs"),
        },
        "logging": {"level": "info", "file_name": "runs.log"},
        "policies": {
            "policy_version": "test-version",
            "registry": {"fuzzy_threshold": 0.75},
        },
    }
    (directory / "default.yaml").write_text(yaml.safe_dump(default_yaml), encoding="utf-8")
    return directory


def test_shipped_defaults_load() -> None:
    settings = Settings(create_dirs=False)
    policies = settings.policies

    assert settings.policy_version == "2025-01-15"
    assert [phase.name for phase in policies.grouping.phases][:2] == ["primary-households", "secondary-households"]
    assert len(policies.grouping.phases) == 6
    assert policies.matching.true_match.rules[1].minimums == {"contact": 0.87}
    assert policies.comparison.record_weights.individual["name"] == pytest.approx(0.5)
    assert policies.similarity.costs.vowel_vowel == pytest.approx(30 / 380, abs=1e-4)
    assert settings.log_file.name == "entity_resolution.log"


def test_load_policies_from_dict_fills_defaults() -> None:
    policies = load_policies({"policy_version": "x", "registry": {"fuzzy_threshold": 0.9}})
    assert isinstance(policies, Policies)
    assert policies.registry.fuzzy_threshold == 0.9
    assert policies.registry.name_thresholds.homonym == 0.875
    assert policies.comparison.contact.perfect_match_weight == 0.9


def test_load_policies_from_yaml(tmp_path: Path) -> None:
    path = tmp_path / "policies.yaml"
    path.write_text(yaml.safe_dump({"grouping": {"max_workers": 2, "flagged_source": None}}), encoding="utf-8")
    policies = load_policies(path)
    assert policies.grouping.max_workers == 2
    assert policies.grouping.flagged_source is None

    with pytest.raises(FileNotFoundError):
        load_policies(tmp_path / "missing.yaml")

    path.write_text("- not\n- a mapping\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_policies(path)


def test_policy_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RESOLUTION_POLICY__GROUPING__MAX_WORKERS", "2")
    monkeypatch.setenv("RESOLUTION_POLICY__SIMILARITY__METRIC", "jaro_winkler")
    policies = load_policies({"grouping": {"max_workers": 8}})
    assert policies.grouping.max_workers == 2
    assert policies.similarity.metric == "jaro_winkler"


def test_policy_override_through_a_scalar_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RESOLUTION_POLICY__POLICY_VERSION__INNER", "1")
    with pytest.raises(ValueError):
        load_policies({"policy_version": "x"})


@pytest.mark.parametrize(
    "payload",
    [
        {"comparison": {"record_weights": {"individual": {"name": 0.7, "contact": 0.7}}}},
        {"comparison": {"record_weights": {"individual": {"name": -0.5, "contact": 1.5}}}},
        {"comparison": {"names": {"last": 0.5, "first": 0.5, "other": 0.5}}},
        {"comparison": {"boost": {"exact_delta": 0.05, "near_delta": 0.1}}},
        {"registry": {"name_thresholds": {"homonym": 0.5, "synonym": 0.8}}},
        {"matching": {"true_match": {"rules": [{"minimums": {"overall": 1.5}}]}}},
        {"similarity": {"costs": {"vowel_vowel": 0.9, "vowel_consonant": 0.5}}},
        {"policy_version": ""},
    ],
)
def test_invalid_policies_are_rejected(payload: dict) -> None:
    with pytest.raises(ValidationError):
        load_policies(payload)


def test_settings_read_yaml_and_create_directories(config_dir: Path, tmp_path: Path) -> None:
    settings = Settings(config_dir=config_dir)

    assert settings.policy_version == "test-version"
    assert settings.policies.registry.fuzzy_threshold == 0.75
    assert settings.paths.registry_dir == tmp_path / "registry"
    assert (tmp_path / "registry").is_dir()
    assert settings.logging.level == "INFO"
    assert settings.log_file == tmp_path / "logs" / "runs.log"


def test_environment_yaml_overrides_defaults(config_dir: Path) -> None:
    testing_yaml = {"logging": {"retention": "2 days"}, "policies": {"policy_version": "testing"}}
    (config_dir / "testing.yaml").write_text(yaml.safe_dump(testing_yaml), encoding="utf-8")

    settings = Settings(config_dir=config_dir, environment="testing")
    assert settings.environment == "testing"
    assert settings.logging.retention == "2 days"
    assert settings.logging.file_name == "runs.log"
    assert settings.policies.policy_version == "testing"
    assert settings.policies.registry.fuzzy_threshold == 0.75


def test_settings_environment_variables(monkeypatch: pytest.MonkeyPatch, config_dir: Path, tmp_path: Path) -> None:
    monkeypatch.setenv("RESOLUTION_SETTINGS__LOGGING__LEVEL", "debug")
    monkeypatch.setenv("RESOLUTION_SETTINGS__PATHS__OUTPUT_DIR", str(tmp_path / "elsewhere"))

    settings = Settings(config_dir=config_dir)
    assert settings.logging.level == "DEBUG"
    assert settings.paths.output_dir == tmp_path / "elsewhere"
    assert (tmp_path / "elsewhere").is_dir()


def test_explicit_arguments_win(config_dir: Path) -> None:
    settings = Settings(config_dir=config_dir, logging={"level": "ERROR"}, policies={"grouping": {"max_workers": 3}})
    assert settings.logging.level == "ERROR"
    assert settings.logging.file_name == "runs.log"
    assert settings.policies.grouping.max_workers == 3
    assert settings.policies.policy_version == "test-version"


def test_relative_paths_are_anchored_at_the_project_root() -> None:
    paths = PathsConfig(output_dir=Path("runs/out"))
    assert paths.output_dir == PROJECT_ROOT / "runs" / "out"


def test_collect_layers_reads_files_then_variables(config_dir: Path) -> None:
    layers = collect_layers(
        config_dir,
        "production",
        environ={"RESOLUTION_SETTINGS__LOGGING__ROTATION": "1 day", "UNRELATED": "x"},
    )
    assert layers["logging"] == {"level": "info", "file_name": "runs.log", "rotation": "1 day"}
    assert layers["policies"]["policy_version"] == "test-version"

    with pytest.raises(ValueError):
        collect_layers(config_dir, "production", environ={"RESOLUTION_SETTINGS__LOGGING____LEVEL": "x"})


def test_configure_logging_writes_to_the_configured_file(config_dir: Path, tmp_path: Path) -> None:
    settings = Settings(config_dir=config_dir)
    configure_logging(settings)
    get_logger(module="tests").warning("grouping finished")
    logger.complete()
    logger.remove()

    assert "grouping finished" in (tmp_path / "logs" / "runs.log").read_text(encoding="utf-8")
