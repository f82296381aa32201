"""Version parsing, ordering and bumping.

Version strings follow MAJOR.MINOR.PATCH[-prerelease][+build], where the
labels are dot- and dash-delimited alphanumeric tokens. Numeric tokens may
carry leading zeros ("1.0.0-alpha.01" is valid). Ordering:

- major, minor, patch compare numerically
- a version without a prerelease label sorts after one with a label
- two prerelease labels compare as plain strings
- build metadata never takes part in comparison (or equality)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering

from .errors import MalformedVersionError
from .models import BumpKind

_VERSION_RE = re.compile(
    r"(\d+)\.(\d+)\.(\d+)(?:-([0-9A-Za-z.-]+))?(?:\+([0-9A-Za-z.-]+))?"
)


@total_ordering
@dataclass(frozen=True, eq=False)
class Version:
    """Immutable semantic version value."""

    major: int
    minor: int
    patch: int
    prerelease: str | None = None
    build: str | None = None

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse a version string.

        Raises:
            MalformedVersionError: If `text` is not MAJOR.MINOR.PATCH with
                optional -prerelease and +build labels.
        """
        match = _VERSION_RE.fullmatch(text) if isinstance(text, str) else None
        if match is None:
            raise MalformedVersionError(str(text))
        major, minor, patch, prerelease, build = match.groups()
        return cls(int(major), int(minor), int(patch), prerelease, build)

    def __str__(self) -> str:
        version = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease is not None:
            version += f"-{self.prerelease}"
        if self.build is not None:
            version += f"+{self.build}"
        return version

    @property
    def is_prerelease(self) -> bool:
        return self.prerelease is not None

    def bump(self, kind: BumpKind | str) -> Version:
        """Return the next version for a bump kind.

        MAJOR/MINOR/PATCH reset the lower components and drop any prerelease
        and build labels. NONE returns this exact value, labels included.

        Examples:
            1.2.3 + patch → 1.2.4
            1.2.3 + minor → 1.3.0
            1.2.3-rc.1 + major → 2.0.0
        """
        kind = BumpKind.parse(kind)
        if kind is BumpKind.MAJOR:
            return Version(self.major + 1, 0, 0)
        if kind is BumpKind.MINOR:
            return Version(self.major, self.minor + 1, 0)
        if kind is BumpKind.PATCH:
            return Version(self.major, self.minor, self.patch + 1)
        return self

    def compare(self, other: Version) -> int:
        """Three-way comparison: negative, zero or positive."""
        for mine, theirs in (
            (self.major, other.major),
            (self.minor, other.minor),
            (self.patch, other.patch),
        ):
            if mine != theirs:
                return -1 if mine < theirs else 1

        if self.prerelease is None and other.prerelease is None:
            return 0
        if self.prerelease is None:
            return 1
        if other.prerelease is None:
            return -1
        if self.prerelease == other.prerelease:
            return 0
        return -1 if self.prerelease < other.prerelease else 1

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.compare(other) == 0

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.compare(other) < 0

    def __hash__(self) -> int:
        return hash((self.major, self.minor, self.patch, self.prerelease))


def normalize_version(version_str: str) -> str:
    """Pad an incomplete version string with zeros.

    Manifests sometimes carry short versions; these are padded so strict
    parsing accepts them:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "1.2-rc.1" → "1.2.0-rc.1"

    Anything with three or more numeric components is returned unchanged.
    """
    cut = len(version_str)
    for marker in ("-", "+"):
        idx = version_str.find(marker)
        if idx != -1:
            cut = min(cut, idx)
    core, suffix = version_str[:cut], version_str[cut:]

    parts = core.split(".")
    # Pad with zeros to ensure we have at least 3 parts
    while len(parts) < 3:
        parts.append("0")
    return ".".join(parts) + suffix


def bump_version(version_str: str, kind: BumpKind | str) -> str:
    """Bump a version string and return the new version as a string.

    Examples:
        bump_version("1.2.3", "patch") → "1.2.4"
        bump_version("1.2.3", BumpKind.MAJOR) → "2.0.0"
    """
    return str(Version.parse(version_str).bump(kind))
