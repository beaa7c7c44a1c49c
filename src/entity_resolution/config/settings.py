"""Run settings: output locations, logging sinks, and the active policy bundle.

Values are layered, lowest first: class defaults, ``config/default.yaml``,
``config/<environment>.yaml``, ``RESOLUTION_SETTINGS__*`` variables (``__``
separates nesting levels), then keyword arguments. The ``policies`` section is
handed to :func:`load_policies`, which also applies ``RESOLUTION_POLICY__*``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .policies import Policies, load_policies

PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_CONFIG_DIR = PROJECT_ROOT / "config"
SETTINGS_ENV_PREFIX = "RESOLUTION_SETTINGS__"

Environment = Literal["development", "testing", "production"]


def _merge_layer(base: Dict[str, Any], layer: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in layer.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            merged[key] = _merge_layer(current, value)
        else:
            merged[key] = value
    return merged


def _read_layer(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle)
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Settings file '{path}' must contain a mapping at the top level")
    return loaded


def _environment_layer(environ: Mapping[str, str]) -> Dict[str, Any]:
    layer: Dict[str, Any] = {}
    for name, value in environ.items():
        if not name.startswith(SETTINGS_ENV_PREFIX):
            continue
        segments = [segment.lower() for segment in name[len(SETTINGS_ENV_PREFIX) :].split("__")]
        if not all(segments):
            raise ValueError(f"Malformed settings variable: {name}")
        cursor = layer
        for segment in segments[:-1]:
            cursor = cursor.setdefault(segment, {})
        cursor[segments[-1]] = value
    return layer


def collect_layers(
    config_dir: Path,
    environment: str,
    environ: Mapping[str, str] | None = None,
) -> Dict[str, Any]:
    """Merge the YAML files and variable overrides for ``environment``."""

    merged = _read_layer(config_dir / "default.yaml")
    merged = _merge_layer(merged, _read_layer(config_dir / f"{environment}.yaml"))
    return _merge_layer(merged, _environment_layer(os.environ if environ is None else environ))


class PathsConfig(BaseModel):
    """Directories for run outputs, registries, and log files.

    Relative entries are anchored at the project root.
    """

    output_dir: Path = Field(default=PROJECT_ROOT / "output")
    registry_dir: Path = Field(default=PROJECT_ROOT / "registry")
    logs_dir: Path = Field(default=PROJECT_ROOT / "logs")

    @field_validator("output_dir", "registry_dir", "logs_dir")
    @classmethod
    def _anchor(cls, value: Path) -> Path:
        return value if value.is_absolute() else PROJECT_ROOT / value

    def create(self) -> None:
        for directory in (self.output_dir, self.registry_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)


class LoggingConfig(BaseModel):
    """Sink options handed to loguru by :func:`configure_logging`."""

    level: str = Field(default="INFO")
    file_name: str = Field(default="entity_resolution.log", min_length=1)
    rotation: str = Field(default="10 MB")
    retention: str = Field(default="14 days")

    @field_validator("level")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.strip().upper()


class Settings(BaseSettings):
    """Configuration for one grouping or registry run."""

    model_config = SettingsConfigDict(
        env_prefix="RESOLUTION_",
        validate_assignment=True,
        extra="ignore",
    )

    environment: Environment = Field(default="development")
    config_dir: Path = Field(default=DEFAULT_CONFIG_DIR)
    create_dirs: bool = Field(default=True, description="Create the configured directories on load.")
    paths: PathsConfig = Field(default_factory=PathsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    policies: Policies

    @model_validator(mode="before")
    @classmethod
    def _layer_sources(cls, values: Dict[str, Any]) -> Dict[str, Any]:
        explicit = {key: value for key, value in values.items() if value is not None}
        config_dir = Path(explicit.get("config_dir") or DEFAULT_CONFIG_DIR)
        environment = explicit.get("environment") or os.getenv("RESOLUTION_ENV", "development")
        combined = _merge_layer(collect_layers(config_dir, environment), explicit)
        combined.setdefault("environment", environment)

        policies = combined.get("policies")
        if not isinstance(policies, Policies):
            combined["policies"] = load_policies(policies or {})
        return combined

    @model_validator(mode="after")
    def _create_directories(self) -> "Settings":
        if self.create_dirs:
            self.paths.create()
        return self

    @property
    def policy_version(self) -> str:
        return self.policies.policy_version

    @property
    def log_file(self) -> Path:
        return self.paths.logs_dir / self.logging.file_name


__all__ = ["Settings", "PathsConfig", "LoggingConfig", "collect_layers", "PROJECT_ROOT"]
