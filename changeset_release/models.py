"""Data models for changeset-release.

These Pydantic models represent the values that flow through one planning
run: packages and changesets go in, releases come out. All of them are
frozen; "updating" a package produces a replaced copy.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .errors import InvalidBumpKindError


class BumpKind(Enum):
    """Magnitude of a semantic-version increment.

    Ordering comes from the explicit ordinal table below, never from the
    order members are declared in:  NONE < PATCH < MINOR < MAJOR.
    """

    NONE = "none"
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"

    @property
    def ordinal(self) -> int:
        return _BUMP_ORDINALS[self]

    @classmethod
    def parse(cls, value: BumpKind | str) -> BumpKind:
        """Convert a literal such as "minor" (any case) into a BumpKind.

        Raises:
            InvalidBumpKindError: If the literal is not a known bump kind.
        """
        if isinstance(value, BumpKind):
            return value
        if not isinstance(value, str):
            raise InvalidBumpKindError(value)
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise InvalidBumpKindError(value) from None

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, BumpKind):
            return NotImplemented
        return self.ordinal < other.ordinal

    def __le__(self, other: object) -> bool:
        if not isinstance(other, BumpKind):
            return NotImplemented
        return self.ordinal <= other.ordinal

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, BumpKind):
            return NotImplemented
        return self.ordinal > other.ordinal

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, BumpKind):
            return NotImplemented
        return self.ordinal >= other.ordinal


_BUMP_ORDINALS: dict[BumpKind, int] = {
    BumpKind.NONE: 0,
    BumpKind.PATCH: 1,
    BumpKind.MINOR: 2,
    BumpKind.MAJOR: 3,
}


class Package(BaseModel):
    """A single package in the monorepo workspace.

    Attributes:
        name: Unique (canonical) package name.
        version: Current version string from the manifest.
        directory: Package directory, relative to the workspace root. The
                   planner never looks at it; only manifest writers do.
        private: Whether the package is marked as not-for-publishing.
        dependencies: Map of dependency name → version-constraint string
                      (e.g. "^1.2.0", "~1.2.0", "==1.0.0"). External deps
                      may appear here; the dependency graph ignores them.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    directory: str = "."
    private: bool = False
    dependencies: dict[str, str] = Field(default_factory=dict)

    def dependency_constraint(self, name: str) -> str | None:
        """Return the declared constraint on `name`, or None if not declared."""
        return self.dependencies.get(name)

    def is_internal(self, prefix: str) -> bool:
        """True when the package name carries the internal namespace prefix."""
        return self.name.startswith(prefix)

    def with_version(self, version: str) -> Package:
        return self.model_copy(update={"version": version})

    def with_dependencies(self, dependencies: dict[str, str]) -> Package:
        return self.model_copy(update={"dependencies": dict(dependencies)})


class Changeset(BaseModel):
    """A pending change declaration.

    Attributes:
        id: Unique changeset identifier (usually the file stem).
        releases: Map of package name → minimum bump kind requested.
        summary: Human description of the change.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    releases: dict[str, BumpKind] = Field(default_factory=dict)
    summary: str = ""

    @property
    def packages(self) -> list[str]:
        return list(self.releases)

    def release_for(self, package_name: str) -> BumpKind | None:
        return self.releases.get(package_name)


class Release(BaseModel):
    """A planned version change for one package.

    Produced only by the planner. The consuming layer treats a list of these
    as authoritative and already ordered.

    Attributes:
        name: Package being released.
        type: Dominant bump kind applied.
        old_version: Version before the release.
        new_version: Version after the release.
        changesets: Ids of the changesets that justify this release.
        dependents: Other packages whose requirement on this one must be
                    rewritten to new_version.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    type: BumpKind
    old_version: str
    new_version: str
    changesets: list[str] = Field(default_factory=list)
    dependents: list[str] = Field(default_factory=list)


class ReleaseSummary(BaseModel):
    """Aggregate view over a release plan."""

    total_releases: int
    packages: list[str]
    version_types: dict[str, int]
    changesets: list[str]
    changeset_count: int
