"""pyproject.toml access.

Manifests are read and written with tomlkit so that a release only changes
the values it bumps or pins; comments, ordering and quoting stay as the
package authors wrote them.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit
from packaging.utils import canonicalize_name

from .shell import fatal

PRIVATE_CLASSIFIER = "Private :: Do Not Upload"


def load_pyproject(path: Path) -> tomlkit.TOMLDocument:
    return tomlkit.parse(path.read_text())


def save_pyproject(path: Path, doc: tomlkit.TOMLDocument) -> None:
    path.write_text(tomlkit.dumps(doc))


def get_metadata_table(doc: tomlkit.TOMLDocument) -> Any | None:
    """The table that holds the package's own name and version.

    [project] when present, otherwise [tool.poetry] (Poetry-only members);
    None when the manifest has neither.
    """
    if "project" in doc:
        return doc["project"]
    return doc.get("tool", {}).get("poetry")


def get_project_name(doc: tomlkit.TOMLDocument, fallback: str) -> str:
    """Package name in PEP 503 form ("My_Pkg" → "my-pkg").

    `fallback` (usually the member directory name) is used when the manifest
    has no name.
    """
    return canonicalize_name((get_metadata_table(doc) or {}).get("name", fallback))


def get_project_version(doc: tomlkit.TOMLDocument) -> str:
    """Package version as a string; "0.0.0" when unset."""
    return str((get_metadata_table(doc) or {}).get("version", "0.0.0"))


def get_tool_table(doc: tomlkit.TOMLDocument, tool: str) -> dict[str, Any]:
    """Return [tool.<tool>] as a plain dict (empty when absent)."""
    table = doc.get("tool", {}).get(tool, {})
    return table.unwrap() if hasattr(table, "unwrap") else dict(table)


def is_private_project(doc: tomlkit.TOMLDocument) -> bool:
    """A project is private when [tool.changesets].private is true or it
    carries the "Private :: Do Not Upload" classifier."""
    if get_tool_table(doc, "changesets").get("private") is True:
        return True
    classifiers = doc.get("project", {}).get("classifiers", [])
    return PRIVATE_CLASSIFIER in [str(c) for c in classifiers]


def get_dependency_strings(doc: tomlkit.TOMLDocument) -> list[str]:
    """Collect PEP 508 strings from [project].dependencies.

    Returns raw strings like "requests>=2.0" or "pkg[extra]~=1.0".
    """
    return [str(dep) for dep in doc.get("project", {}).get("dependencies", [])]


def get_poetry_dependencies(doc: tomlkit.TOMLDocument) -> dict[str, str]:
    """Collect [tool.poetry.dependencies] as {canonical name: constraint}.

    String values are taken as-is ("^1.2.0", "~1.2", "1.0.0"). Inline tables
    contribute their "version" key, or "*" when they have none (path or git
    dependencies). The "python" entry is not a package and is skipped.
    """
    deps = get_tool_table(doc, "poetry").get("dependencies", {})
    constraints: dict[str, str] = {}
    for name, spec in deps.items():
        if name.lower() == "python":
            continue
        if isinstance(spec, dict):
            constraint = str(spec.get("version", "*"))
        else:
            constraint = str(spec)
        constraints[canonicalize_name(name)] = constraint
    return constraints


def get_workspace_member_globs(doc: tomlkit.TOMLDocument) -> list[str]:
    """Member globs from [tool.uv.workspace] (e.g. "packages/*").

    Exits the process when the root manifest declares no members.
    """
    members = doc.get("tool", {}).get("uv", {}).get("workspace", {}).get("members")
    if not members:
        fatal("No [tool.uv.workspace] members defined in root pyproject.toml")
    return [str(m) for m in members]
