"""Dependency declarations in pyproject.toml.

Reads the constraint each package declares on its dependencies and writes
exact pins when a release re-pins a dependent. Two declaration styles are
understood:

- PEP 508 strings in [project].dependencies, e.g. "acme-core~=1.2"
- Poetry tables in [tool.poetry.dependencies], e.g. acme-core = "^1.2.0"
"""

from __future__ import annotations

import re
from pathlib import Path

import tomlkit
from packaging.requirements import Requirement
from packaging.utils import canonicalize_name

from .errors import ChangesetReleaseError
from .toml import (
    get_dependency_strings,
    get_metadata_table,
    get_poetry_dependencies,
    load_pyproject,
    save_pyproject,
)

_NAME_AND_EXTRAS_RE = re.compile(r"\s*[A-Za-z0-9][A-Za-z0-9._-]*\s*(?:\[[^\]]*\])?\s*")


def dep_canonical_name(dep_str: str) -> str:
    """PEP 503 name of a PEP 508 requirement.

    "Acme_Core[cli]>=1.0" → "acme-core"
    """
    return canonicalize_name(Requirement(dep_str).name)


def dep_constraint(dep_str: str) -> str:
    """Specifier part of a PEP 508 requirement, as declared ("" when
    unconstrained or a direct URL reference).

    The text after the name and extras is kept verbatim, so the order of
    multiple specifiers survives:

        "acme-core~=1.0" → "~=1.0"
        "acme-core[cli]~=1.0,!=1.0.3; python_version>'3.9'" → "~=1.0,!=1.0.3"
    """
    if Requirement(dep_str).url:
        return ""
    declared = dep_str.split(";", 1)[0]
    match = _NAME_AND_EXTRAS_RE.match(declared)
    spec = declared[match.end():].strip() if match else ""
    # PEP 508 also allows "name (>=1.0)"
    if spec.startswith("(") and spec.endswith(")"):
        spec = spec[1:-1].strip()
    return spec



def pin_dep(dep_str: str, version: str) -> str:
    """Rewrite a PEP 508 requirement as an exact `==version` pin.

    Extras survive (sorted); markers and the old specifier do not.

        pin_dep("acme-core[z,a]~=1.0", "1.5.0") → "acme-core[a,z]==1.5.0"
    """
    req = Requirement(dep_str)
    extras = f"[{','.join(sorted(req.extras))}]" if req.extras else ""
    return f"{req.name}{extras}=={version}"


def collect_dependencies(doc: tomlkit.TOMLDocument) -> dict[str, str]:
    """Map every declared runtime dependency to its constraint string.

    PEP 508 declarations come first; a name already seen there is not
    overridden by a Poetry declaration.
    """
    constraints: dict[str, str] = {}
    for dep_str in get_dependency_strings(doc):
        constraints.setdefault(dep_canonical_name(dep_str), dep_constraint(dep_str))
    for name, constraint in get_poetry_dependencies(doc).items():
        constraints.setdefault(name, constraint)
    return constraints


def rewrite_pyproject(
    pyproject_path: Path,
    new_version: str | None,
    pinned_versions: dict[str, str],
) -> bool:
    """Write a release into one manifest.

    Sets the package version to `new_version` (left alone when None) and
    replaces the requirement on every name in `pinned_versions` with that
    literal version, dropping whatever range operator it had. The version
    goes into [project], or into [tool.poetry] for Poetry-only manifests.
    Pins are written wherever the name is declared: [project].dependencies,
    [project].optional-dependencies, [dependency-groups] and
    [tool.poetry.dependencies].

    The file is only saved when something changed.

    Args:
        pyproject_path: Manifest to edit in place.
        new_version: Version for the package itself, or None.
        pinned_versions: Canonical dependency name → version to pin.

    Returns:
        True if the manifest was modified.

    Raises:
        ChangesetReleaseError: If a version is given but the manifest has no
            [project] or [tool.poetry] table to hold it.
    """
    doc = load_pyproject(pyproject_path)
    changed = False

    if new_version is not None:
        metadata = get_metadata_table(doc)
        if metadata is None:
            raise ChangesetReleaseError(
                f"{pyproject_path}: no [project] or [tool.poetry] table to hold the version"
            )
        metadata["version"] = new_version
        changed = True

    if pinned_versions:
        for group in _requirement_lists(doc):
            changed |= _pin_dep_list(group, pinned_versions)

        poetry_deps = doc.get("tool", {}).get("poetry", {}).get("dependencies")
        if isinstance(poetry_deps, dict):
            changed |= _pin_poetry_table(poetry_deps, pinned_versions)

    if changed:
        save_pyproject(pyproject_path, doc)
    return changed


def _requirement_lists(doc: tomlkit.TOMLDocument) -> list[list]:
    """Every PEP 508 list in the manifest (main, extras, groups)."""
    project = doc.get("project", {})
    lists: list[list] = []
    if isinstance(project.get("dependencies"), list):
        lists.append(project["dependencies"])
    for table in (project.get("optional-dependencies"), doc.get("dependency-groups")):
        if isinstance(table, dict):
            lists.extend(group for group in table.values() if isinstance(group, list))
    return lists


def _pin_dep_list(deps: list, versions: dict[str, str]) -> bool:
    changed = False
    for i, dep_str in enumerate(deps):
        # {include-group = "..."} entries in [dependency-groups]
        if not isinstance(dep_str, str):
            continue
        name = dep_canonical_name(str(dep_str))
        if name not in versions:
            continue
        pinned = pin_dep(str(dep_str), versions[name])
        if pinned != dep_str:
            deps[i] = pinned
            changed = True
    return changed


def _pin_poetry_table(deps: dict, versions: dict[str, str]) -> bool:
    """Replace Poetry constraints with literal versions, in place.

    Inline tables keep their other keys (extras, markers); only "version"
    is replaced. Returns True if any entry changed.
    """
    changed = False
    for key in list(deps.keys()):
        name = canonicalize_name(key)
        if name not in versions:
            continue
        spec = deps[key]
        if isinstance(spec, dict):
            if spec.get("version") != versions[name]:
                spec["version"] = versions[name]
                changed = True
        elif spec != versions[name]:
            deps[key] = versions[name]
            changed = True
    return changed
