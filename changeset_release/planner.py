"""Release planning: changesets + packages → ordered release list.

The planner is the only consumer of the dependency graph. For one run it:
1. Builds a DependencyGraph from the package set
2. Groups changesets by the packages they name
3. Picks the dominant bump kind per package (max, never a sum)
4. Computes the new version
5. Records which dependents must have their requirement rewritten
6. Orders the releases so each release's dependents come before it

Everything here is an in-memory transformation; nothing touches disk.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence

from .errors import MalformedVersionError, UnknownPackageError
from .graph import DependencyGraph, build_graph
from .models import BumpKind, Changeset, Package, Release, ReleaseSummary
from .versions import Version, bump_version


def is_constraint_compatible(constraint: str | None, kind: BumpKind) -> bool:
    """Classify a dependent's declared constraint against a bump kind.

    - "^..." (caret) accepts everything short of a major bump
    - "~..." (tilde) accepts patch bumps only
    - exact pins, other operators, or no declared constraint accept nothing
    """
    if not constraint:
        return False
    if constraint.startswith("^"):
        return kind is not BumpKind.MAJOR
    if constraint.startswith("~"):
        return kind is BumpKind.PATCH
    return False


class ReleasePlanner:
    """Plans releases for one workspace snapshot.

    The graph is built once, at construction, from the package set and is
    not shared with other runs. Create a new planner for each run.
    """

    def __init__(self, packages: Iterable[Package], internal_prefix: str = "") -> None:
        self.graph: DependencyGraph = build_graph(packages, internal_prefix)

    def plan_releases(self, changesets: Iterable[Changeset]) -> list[Release]:
        """Compute the ordered release list for a set of changesets.

        Packages without changesets get no Release, even when they show up
        in another release's dependents.

        Raises:
            UnknownPackageError: If a changeset names a package that is not
                in the workspace.
            MalformedVersionError: If a released package's current version
                cannot be parsed.
        """
        buckets = self._group_by_package(changesets)
        releases: list[Release] = []

        for package in self.graph.packages:
            bucket = buckets.get(package.name)
            if not bucket:
                continue

            kind = max(cs.releases[package.name] for cs in bucket)
            releases.append(
                Release(
                    name=package.name,
                    type=kind,
                    old_version=package.version,
                    new_version=bump_version(package.version, kind),
                    changesets=list(dict.fromkeys(cs.id for cs in bucket)),
                    dependents=self._dependents_to_update(package.name, kind),
                )
            )

        return sort_releases(releases)

    def _group_by_package(
        self, changesets: Iterable[Changeset]
    ) -> dict[str, list[Changeset]]:
        grouped: dict[str, list[Changeset]] = {}
        for changeset in changesets:
            for package_name in changeset.releases:
                if not self.graph.has_package(package_name):
                    raise UnknownPackageError(package_name)
                grouped.setdefault(package_name, []).append(changeset)
        return grouped

    def _dependents_to_update(self, package_name: str, kind: BumpKind) -> list[str]:
        """Dependents recorded on a release of `package_name`.

        A major bump records every transitive dependent. Otherwise a
        dependent is recorded when its own declared constraint on the
        package is compatible with the bump. A package is never its own
        dependent, even when a cycle leads back to it.
        """
        recorded: list[str] = []
        for dependent_name in self.graph.all_dependents(package_name):
            if dependent_name == package_name:
                continue
            dependent = self.graph.get_package(dependent_name)
            if dependent is None:
                continue
            constraint = dependent.dependency_constraint(package_name)
            if kind is BumpKind.MAJOR or is_constraint_compatible(constraint, kind):
                recorded.append(dependent_name)
        return recorded

    def validate_release_plan(self, releases: Iterable[Release]) -> list[str]:
        """Check a release list against the graph.

        Returns a list of human-readable findings; an empty list means the
        plan is valid. Nothing is raised for individual bad releases.
        """
        errors: list[str] = []

        for release in releases:
            if not self.graph.has_package(release.name):
                errors.append(f"Package '{release.name}' not found in dependency graph")
                continue

            try:
                old = Version.parse(release.old_version)
                new = Version.parse(release.new_version)
            except MalformedVersionError as exc:
                errors.append(f"{exc} for package '{release.name}'")
            else:
                if not new > old:
                    errors.append(
                        f"New version '{release.new_version}' must be greater than "
                        f"old version '{release.old_version}' for package '{release.name}'"
                    )

            if not release.changesets:
                errors.append(f"Release for package '{release.name}' has no changesets")

            for dependent_name in release.dependents:
                if not self.graph.has_package(dependent_name):
                    errors.append(
                        f"Dependent package '{dependent_name}' not found "
                        f"for package '{release.name}'"
                    )

        return errors

    def get_release_summary(self, releases: Sequence[Release]) -> ReleaseSummary:
        return summarize_releases(releases)


def sort_releases(releases: Sequence[Release]) -> list[Release]:
    """Order releases so each release's recorded dependents precede it.

    Each release is emitted once. Before a release is appended, every
    name in its dependents list that has its own release is processed
    first. Dependents without a release of their own are ignored here.

    Example:
        B depends on A, both released, A.dependents == ["B"]:
        sort_releases([A, B]) → [B, A]
    """
    by_name = {release.name: release for release in releases}
    ordered: list[Release] = []
    visited: set[str] = set()

    for release in releases:
        if release.name in visited:
            continue
        visited.add(release.name)
        stack: list[tuple[Release, Iterator[str]]] = [(release, iter(release.dependents))]
        while stack:
            current, pending = stack[-1]
            for name in pending:
                nxt = by_name.get(name)
                if nxt is not None and name not in visited:
                    visited.add(name)
                    stack.append((nxt, iter(nxt.dependents)))
                    break
            else:
                stack.pop()
                ordered.append(current)

    return ordered


def summarize_releases(releases: Sequence[Release]) -> ReleaseSummary:
    """Count releases by bump kind and collect the changesets they consume."""
    version_types = {"major": 0, "minor": 0, "patch": 0}
    changesets: dict[str, None] = {}

    for release in releases:
        if release.type.value in version_types:
            version_types[release.type.value] += 1
        for changeset_id in release.changesets:
            changesets.setdefault(changeset_id)

    return ReleaseSummary(
        total_releases=len(releases),
        packages=[release.name for release in releases],
        version_types=version_types,
        changesets=list(changesets),
        changeset_count=len(changesets),
    )


def plan_releases(
    changesets: Iterable[Changeset],
    packages: Iterable[Package],
    internal_prefix: str = "",
) -> list[Release]:
    """Plan releases for a package set in one call."""
    return ReleasePlanner(packages, internal_prefix).plan_releases(changesets)
