"""Configuration loading.

Configuration is looked up in this order (first hit wins):

1. .changeset/config.toml
2. .changeset/config.yaml / .changeset/config.yml
3. .changeset/config.json
4. [tool.changesets] in the workspace root pyproject.toml

With none of these present, defaults apply. Keys may be written in
snake_case, kebab-case or camelCase.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Literal

import tomlkit
import yaml
from packaging.utils import canonicalize_name
from pydantic import BaseModel, Field, ValidationError, field_validator
from tomlkit.exceptions import ParseError

from .errors import ConfigError
from .toml import get_tool_table, load_pyproject

CONFIG_DIR = ".changeset"
CONFIG_FILES = ("config.toml", "config.yaml", "config.yml", "config.json")
CONFIG_FORMATS = ("toml", "yaml", "json")


class PrivatePackages(BaseModel):
    """How packages marked private take part in a release."""

    version: bool = True
    tag: bool = False


class Config(BaseModel):
    """Workspace release configuration.

    Attributes:
        changeset_dir: Directory (relative to the root) holding changesets.
        internal_prefix: Name prefix identifying internal packages.
        base_branch: Branch releases are cut from.
        commit: Whether `version` commits its changes by default.
        ignore: Packages whose changeset entries are dropped before planning.
        update_internal_dependencies: Minimum bump for internal dependents.
        private_packages: Versioning/tagging policy for private packages.
    """

    changeset_dir: str = CONFIG_DIR
    internal_prefix: str = ""
    base_branch: str = "main"
    commit: bool = False
    ignore: list[str] = Field(default_factory=list)
    update_internal_dependencies: Literal["patch", "minor", "major"] = "patch"
    private_packages: PrivatePackages = Field(default_factory=PrivatePackages)

    @field_validator("ignore")
    @classmethod
    def _canonical_ignore(cls, value: list[str]) -> list[str]:
        return [canonicalize_name(name) for name in value]

    def is_ignored(self, package_name: str) -> bool:
        return canonicalize_name(package_name) in self.ignore


def _snake(key: str) -> str:
    """Normalize baseBranch or base-branch to base_branch."""
    key = key.replace("-", "_")
    return re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", key).lower()


def _normalize_keys(data: Any) -> Any:
    if isinstance(data, dict):
        return {_snake(str(k)): _normalize_keys(v) for k, v in data.items()}
    return data


def parse_config(data: dict[str, Any]) -> Config:
    """Validate raw config data into a Config.

    Raises:
        ConfigError: If the data is not a mapping or a value is invalid.
    """
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping")
    try:
        return Config.model_validate(_normalize_keys(data))
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def _read_config_file(path: Path) -> dict[str, Any]:
    text = path.read_text()
    try:
        if path.suffix == ".toml":
            return tomlkit.parse(text).unwrap()
        if path.suffix in (".yaml", ".yml"):
            return yaml.safe_load(text) or {}
        return json.loads(text)
    except (ParseError, yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc


def find_config_file(root: Path) -> Path | None:
    for filename in CONFIG_FILES:
        candidate = root / CONFIG_DIR / filename
        if candidate.is_file():
            return candidate
    return None


def load_config(root: Path | None = None) -> Config:
    """Load the workspace configuration rooted at `root` (default: cwd)."""
    root = root or Path.cwd()

    config_file = find_config_file(root)
    if config_file is not None:
        return parse_config(_read_config_file(config_file))

    pyproject = root / "pyproject.toml"
    if pyproject.is_file():
        table = get_tool_table(load_pyproject(pyproject), "changesets")
        if table:
            return parse_config(table)

    return Config()


def save_config(config: Config, root: Path, fmt: str = "toml") -> Path:
    """Write `config` to .changeset/config.<fmt> and return the path.

    Raises:
        ConfigError: If the format is not one of toml, yaml, json.
    """
    if fmt not in CONFIG_FORMATS:
        raise ConfigError(f"Unsupported config file format: {fmt}")

    config_dir = root / CONFIG_DIR
    config_dir.mkdir(parents=True, exist_ok=True)
    path = config_dir / f"config.{fmt}"
    data = config.model_dump()

    if fmt == "toml":
        path.write_text(tomlkit.dumps(data))
    elif fmt == "yaml":
        path.write_text(yaml.safe_dump(data, sort_keys=False))
    else:
        path.write_text(json.dumps(data, indent=2) + "\n")
    return path
