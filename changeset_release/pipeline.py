"""Release pipeline: discover → read → plan → validate → apply → commit.

This module connects the planning core to the workspace on disk:
1. Discover all packages in the uv workspace
2. Read pending changesets
3. Plan releases (version bumps + dependents to re-pin)
4. Validate the plan
5. Rewrite pyproject.toml versions and dependent pins
6. Remove consumed changesets, commit, and tag

The planner decides everything; this layer only reads inputs and writes
its decisions out, in the order the planner returned them.
"""

from __future__ import annotations

import glob
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path

from .changesets import delete_changesets, read_changesets
from .config import Config
from .deps import collect_dependencies, rewrite_pyproject
from .errors import DuplicatePackageError, UnknownPackageError
from .models import Changeset, Package, Release
from .planner import ReleasePlanner
from .shell import fatal, git, step
from .toml import (
    get_metadata_table,
    get_project_name,
    get_project_version,
    get_workspace_member_globs,
    is_private_project,
    load_pyproject,
)
from .versions import Version, normalize_version


def discover_packages(root: Path) -> dict[str, Package]:
    """Scan the workspace and discover all packages.

    Reads [tool.uv.workspace].members from root pyproject.toml to find
    package directories, then extracts name, version, private flag and
    dependency constraints from each package's pyproject.toml. Members
    whose manifest cannot be parsed are skipped.

    Returns:
        Map of package name to Package, in discovery order.

    Raises:
        DuplicatePackageError: If two members declare the same name.
    """
    step("Discovering workspace packages")

    root_doc = load_pyproject(root / "pyproject.toml")
    member_globs = get_workspace_member_globs(root_doc)

    # Expand globs to find all package directories
    member_dirs: list[Path] = []
    for pattern in member_globs:
        for match in sorted(glob.glob(str(root / pattern))):
            p = Path(match)
            if (p / "pyproject.toml").exists():
                member_dirs.append(p)

    if not member_dirs:
        fatal("No packages found matching workspace members")

    packages: dict[str, Package] = {}
    for d in member_dirs:
        try:
            doc = load_pyproject(d / "pyproject.toml")
            name = get_project_name(doc, d.name)
            package = Package(
                name=name,
                version=normalize_version(get_project_version(doc)),
                directory=d.relative_to(root).as_posix(),
                private=is_private_project(doc),
                dependencies=collect_dependencies(doc),
            )
        except (OSError, ValueError):
            # Broken manifests are left out of the workspace
            continue
        if name in packages:
            raise DuplicatePackageError(name)
        packages[name] = package

    # Print discovered packages for user feedback
    for name, info in packages.items():
        internal = [dep for dep in info.dependencies if dep in packages]
        deps = f" → [{', '.join(internal)}]" if internal else ""
        private = " private" if info.private else ""
        print(f"  {name} {info.version} ({info.directory}){private}{deps}")

    return packages


def filter_changesets(
    changesets: Iterable[Changeset],
    packages: Mapping[str, Package],
    config: Config,
) -> list[Changeset]:
    """Drop changeset entries the configuration excludes from planning.

    Entries for ignored packages are removed, and so are entries for
    private packages when private packages are not versioned.
    """
    filtered: list[Changeset] = []
    for changeset in changesets:
        releases = {}
        for name, kind in changeset.releases.items():
            if config.is_ignored(name):
                continue
            package = packages.get(name)
            if package is not None and package.private and not config.private_packages.version:
                continue
            releases[name] = kind
        filtered.append(changeset.model_copy(update={"releases": releases}))
    return filtered


def plan_workspace(
    root: Path, config: Config
) -> tuple[dict[str, Package], list[Changeset], list[Release], ReleasePlanner]:
    """Discover packages, read changesets and plan releases."""
    packages = discover_packages(root)

    step("Reading changesets")
    changesets = read_changesets(root / config.changeset_dir)
    for changeset in changesets:
        names = ", ".join(f"{n}:{k.value}" for n, k in changeset.releases.items())
        print(f"  {changeset.id}: {names or '<empty>'}")
    if not changesets:
        print("  No changesets found")

    planner = ReleasePlanner(packages.values(), config.internal_prefix)
    releases = planner.plan_releases(filter_changesets(changesets, packages, config))
    return packages, changesets, releases, planner


def validate_releases(
    releases: Iterable[Release], packages: Mapping[str, Package], root: Path
) -> list[str]:
    """Check that a release plan can be written to disk.

    Returns a list of findings (empty when every release is writable).
    """
    errors: list[str] = []
    for release in releases:
        package = packages.get(release.name)
        if package is None:
            errors.append(f"Package '{release.name}' not found")
            continue

        manifest = root / package.directory / "pyproject.toml"
        if not manifest.exists():
            errors.append(f"pyproject.toml not found for package '{release.name}' at {manifest}")
        elif get_metadata_table(load_pyproject(manifest)) is None:
            errors.append(
                f"No [project] or [tool.poetry] table for package '{release.name}' in {manifest}"
            )

        try:
            Version.parse(release.new_version)
        except ValueError:
            errors.append(
                f"Invalid version format '{release.new_version}' for package '{release.name}'"
            )

        if not release.changesets:
            errors.append(f"No changesets found for package '{release.name}'")
    return errors


def apply_releases(
    releases: Sequence[Release], packages: Mapping[str, Package], root: Path
) -> list[Path]:
    """Write a release plan into the workspace manifests.

    For each release, in the given order:
    1. Set the released package's version to new_version
    2. Re-pin each recorded dependent's requirement on the released
       package to exactly new_version

    Dependents are taken from the release as-is, never re-derived. A
    dependent that declares no requirement on the released package is
    left untouched.

    Returns:
        The manifest paths that were modified (each listed once).

    Raises:
        UnknownPackageError: If a release names an unknown package.
    """
    step(f"Applying {len(releases)} releases")

    touched: dict[Path, None] = {}
    for release in releases:
        package = packages.get(release.name)
        if package is None:
            raise UnknownPackageError(release.name)

        manifest = root / package.directory / "pyproject.toml"
        rewrite_pyproject(manifest, release.new_version, {})
        touched.setdefault(manifest)
        print(f"  {release.name}: {release.old_version} → {release.new_version}")

        for dependent_name in release.dependents:
            dependent = packages.get(dependent_name)
            if dependent is None:
                continue
            dependent_manifest = root / dependent.directory / "pyproject.toml"
            if not rewrite_pyproject(
                dependent_manifest, None, {release.name: release.new_version}
            ):
                # nothing declared on the released package, or already pinned
                continue
            touched.setdefault(dependent_manifest)
            print(f"    {dependent_name}: {release.name} pinned to {release.new_version}")

    return list(touched)


def tag_name(package_name: str, version: str) -> str:
    """Git tag for a package release, e.g. "acme-core@1.2.0"."""
    return f"{package_name}@{version}"


def release_tags(
    releases: Iterable[Release], packages: Mapping[str, Package], config: Config
) -> list[str]:
    """Tags for a release plan; private packages only when configured."""
    tags: list[str] = []
    for release in releases:
        package = packages.get(release.name)
        if package is None:
            continue
        if package.private and not config.private_packages.tag:
            continue
        tags.append(tag_name(release.name, release.new_version))
    return tags


def untagged_packages(
    packages: Mapping[str, Package], config: Config, root: Path
) -> list[str]:
    """Tags for current package versions that do not exist yet."""
    existing = set(git("tag", "--list", check=False, cwd=root).splitlines())
    tags: list[str] = []
    for name, package in packages.items():
        if package.private and not config.private_packages.tag:
            continue
        tag = tag_name(name, package.version)
        if tag not in existing:
            tags.append(tag)
    return tags


def create_tags(tags: Iterable[str], root: Path) -> None:
    """Create an annotated git tag for each tag name."""
    step("Creating package tags")
    for tag in tags:
        name, _, version = tag.rpartition("@")
        git("tag", "-a", tag, "-m", f"Release {name} {version}", cwd=root)
        print(f"  {tag}")


def release_commit_message(releases: Sequence[Release]) -> str:
    """Commit message listing released packages and their version changes."""
    title = "Release " + ", ".join(release.name for release in releases)
    lines = [f"  {r.name}: {r.old_version} → {r.new_version}" for r in releases]
    return title + "\n\n" + "\n".join(lines)


def current_branch(root: Path) -> str:
    """Name of the checked-out branch ("" outside a repository)."""
    return git("rev-parse", "--abbrev-ref", "HEAD", check=False, cwd=root)


def check_base_branch(config: Config, root: Path) -> None:
    """Exit unless HEAD is on the configured base branch."""
    branch = current_branch(root)
    if branch != config.base_branch:
        fatal(
            f"Release commits go on '{config.base_branch}', "
            f"but the current branch is '{branch or '<none>'}'"
        )


def commit_release(
    releases: Sequence[Release], paths: Iterable[Path], root: Path
) -> None:
    """Stage the given paths and commit them with a release message."""
    step("Committing release")

    for path in paths:
        git("add", "--all", "--", str(path), cwd=root)

    # Check if there are actually changes to commit
    staged = git("diff", "--cached", "--name-only", check=False, cwd=root)
    if not staged:
        fatal("No changes to commit")

    git("commit", "-m", release_commit_message(releases), cwd=root)
    print("  Committed")


def run_version(
    root: Path, config: Config, *, dry_run: bool = False, commit: bool = False
) -> list[Release]:
    """Execute the full versioning pipeline.

    Args:
        root: Workspace root (directory holding the root pyproject.toml).
        config: Loaded workspace configuration.
        dry_run: Plan and validate only; write nothing.
        commit: Commit the changes once applied and tag the released
            versions. HEAD must be on the configured base branch.

    Returns:
        The release plan, in application order.
    """
    packages, _, releases, planner = plan_workspace(root, config)

    if not releases:
        print("\nNo releases to apply. Nothing to do.")
        return []

    step("Planned releases")
    for release in releases:
        dependents = f" (dependents: {', '.join(release.dependents)})" if release.dependents else ""
        print(
            f"  {release.name} {release.type.value}: "
            f"{release.old_version} → {release.new_version}{dependents}"
        )

    errors = planner.validate_release_plan(releases) + validate_releases(
        releases, packages, root
    )
    if errors:
        fatal("Release plan is invalid:\n" + "\n".join(f"  - {e}" for e in errors))

    if dry_run:
        print("\nDry run mode - no changes were made.")
        return releases

    if commit:
        check_base_branch(config, root)

    touched = apply_releases(releases, packages, root)

    consumed = planner.get_release_summary(releases).changesets
    deleted = delete_changesets(root / config.changeset_dir, consumed)
    for path in deleted:
        print(f"  removed {path.relative_to(root)}")

    if commit:
        commit_release(releases, [*touched, *deleted], root)
        create_tags(release_tags(releases, packages, config), root)

    print(f"\n{'=' * 60}\nDone!\n{'=' * 60}")
    return releases
