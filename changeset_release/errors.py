"""Exceptions raised by changeset-release.

Hard failures abort the current operation and surface to the caller:

- MalformedVersionError: a version string does not follow MAJOR.MINOR.PATCH
- InvalidBumpKindError: an unknown bump literal (not none/patch/minor/major)
- MalformedChangesetError: a changeset file or record is structurally invalid
- UnknownPackageError: a package name is not part of the workspace
- DuplicatePackageError: two packages share the same name
- ConfigError: configuration values fail validation

Soft validation findings are never raised; they are returned as lists of
strings so the caller decides whether they block a release.
"""

from __future__ import annotations

__all__ = [
    "ChangesetReleaseError",
    "ConfigError",
    "DuplicatePackageError",
    "InvalidBumpKindError",
    "MalformedChangesetError",
    "MalformedVersionError",
    "UnknownPackageError",
]


class ChangesetReleaseError(Exception):
    """Base class for all changeset-release errors."""


class MalformedVersionError(ChangesetReleaseError, ValueError):
    """Raised when a version string cannot be parsed."""

    def __init__(self, version: str) -> None:
        super().__init__(f"Invalid version string: {version!r}")
        self.version = version


class InvalidBumpKindError(ChangesetReleaseError, ValueError):
    """Raised for a bump kind literal outside none/patch/minor/major."""

    def __init__(self, value: object) -> None:
        super().__init__(
            f"Invalid bump kind {value!r} (expected one of: none, patch, minor, major)"
        )
        self.value = value


class MalformedChangesetError(ChangesetReleaseError, ValueError):
    """Raised when a changeset file or record is structurally invalid."""


class UnknownPackageError(ChangesetReleaseError, LookupError):
    """Raised when a package name is not present in the workspace."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Package '{name}' not found")
        self.name = name


class DuplicatePackageError(ChangesetReleaseError, ValueError):
    """Raised when two packages in one set share a name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Duplicate package name: '{name}'")
        self.name = name


class ConfigError(ChangesetReleaseError, ValueError):
    """Raised when configuration cannot be loaded or fails validation."""
