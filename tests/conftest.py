"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest
import tomlkit


def _write_package(root: Path, dirname: str, content: str) -> Path:
    """Write packages/<dirname>/pyproject.toml under root."""
    package_dir = root / "packages" / dirname
    package_dir.mkdir(parents=True, exist_ok=True)
    pyproject = package_dir / "pyproject.toml"
    pyproject.write_text(content)
    return pyproject


@pytest.fixture
def tmp_pyproject(tmp_path: Path) -> Path:
    """Create a temporary pyproject.toml file."""
    content = """\
[project]
name = "test-package"
version = "1.0.0"
dependencies = [
    "requests>=2.0",
    "internal-dep~=1.0",
]

[project.optional-dependencies]
dev = ["pytest>=8.0", "another-internal>=0.5"]

[dependency-groups]
test = ["pytest>=8.0", "group-internal>=0.1"]

[tool.poetry.dependencies]
python = "^3.10"
poetry-internal = "^1.0.0"
table-internal = { version = "~1.2.0", extras = ["fast"] }
"""
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(content)
    return pyproject


@pytest.fixture
def sample_toml_doc() -> tomlkit.TOMLDocument:
    """Create a sample TOML document."""
    content = """\
[project]
name = "my-package"
version = "2.0.0"
dependencies = ["click>=8.0", "pydantic>=2.0"]
classifiers = ["Programming Language :: Python :: 3"]

[project.optional-dependencies]
dev = ["pytest>=8.0"]
docs = ["sphinx>=7.0"]

[dependency-groups]
test = ["hypothesis>=6.0"]

[tool.uv.workspace]
members = ["packages/*", "libs/*"]

[tool.changesets]
internal-prefix = "acme-"
"""
    return tomlkit.parse(content)


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A uv workspace with three packages.

    acme-core 1.0.0   (no internal deps)
    acme-utils 1.0.0  depends on acme-core "~=1.0" (PEP 508)
    acme-cli 2.1.0    depends on acme-core "^1.0.0" and pins acme-utils
                      "1.0.0" (Poetry table)
    """
    (tmp_path / "pyproject.toml").write_text(
        '[tool.uv.workspace]\nmembers = ["packages/*"]\n'
    )
    _write_package(
        tmp_path,
        "core",
        '[project]\nname = "acme-core"\nversion = "1.0.0"\n'
        'dependencies = ["requests>=2.0"]\n',
    )
    _write_package(
        tmp_path,
        "utils",
        '[project]\nname = "acme-utils"\nversion = "1.0.0"\n'
        'dependencies = ["acme-core~=1.0"]\n',
    )
    _write_package(
        tmp_path,
        "cli",
        '[project]\nname = "acme-cli"\nversion = "2.1.0"\n\n'
        "[tool.poetry.dependencies]\n"
        'python = "^3.10"\n'
        'acme-core = "^1.0.0"\n'
        'acme-utils = "1.0.0"\n',
    )
    return tmp_path


@pytest.fixture
def changeset_dir(workspace: Path) -> Path:
    """The workspace's (empty) changeset directory."""
    directory = workspace / ".changeset"
    directory.mkdir()
    return directory
