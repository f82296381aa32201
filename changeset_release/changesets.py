"""Changeset file reading and writing.

A changeset is a markdown file with YAML front matter:

    ---
    "acme-core": minor
    "acme-cli": patch
    ---

    Add a --json flag to the status command.

Front matter keys are package names mapped to bump kinds. The reserved key
"id" overrides the changeset id, which otherwise is the file stem. The body
is the summary.
"""

from __future__ import annotations

import random
from pathlib import Path
from typing import Any

import yaml
from packaging.utils import canonicalize_name

from .errors import MalformedChangesetError
from .models import BumpKind, Changeset

DELIMITER = "---"
CHANGESET_SUFFIXES = (".md", ".markdown")
RESERVED_KEYS = frozenset({"id"})

_ADJECTIVES = (
    "brave", "calm", "clever", "eager", "fancy", "gentle", "happy", "jolly",
    "kind", "lucky", "mighty", "proud", "quiet", "shy", "silly", "witty",
)
_NOUNS = (
    "badgers", "cats", "dingos", "eagles", "foxes", "geckos", "hounds", "lions",
    "moles", "otters", "pandas", "rabbits", "seals", "tigers", "wolves", "yaks",
)
_VERBS = (
    "bake", "climb", "dance", "dream", "fly", "glow", "jump", "laugh",
    "play", "rest", "run", "sing", "swim", "talk", "wait", "wink",
)


def generate_changeset_id() -> str:
    """Return a random, readable id like "brave-lions-dance"."""
    return "-".join(random.choice(words) for words in (_ADJECTIVES, _NOUNS, _VERBS))


def _split_front_matter(content: str) -> tuple[str, str]:
    lines = content.splitlines()
    if not lines or lines[0].rstrip() != DELIMITER:
        raise MalformedChangesetError("Changeset must start with front matter (---)")

    for i in range(1, len(lines)):
        if lines[i].rstrip() == DELIMITER:
            return "\n".join(lines[1:i]), "\n".join(lines[i + 1 :])

    raise MalformedChangesetError("Changeset front matter must be closed with ---")


def _load_front_matter(text: str) -> dict[str, Any]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise MalformedChangesetError(
            f"Invalid YAML in changeset front matter: {exc}"
        ) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MalformedChangesetError("Changeset front matter must be a mapping")
    return data


def parse_changeset(content: str, default_id: str = "") -> Changeset:
    """Parse changeset file content.

    Args:
        content: Full file text, front matter included.
        default_id: Id to use when the front matter has no "id" key.

    Raises:
        MalformedChangesetError: On missing delimiters or invalid YAML.
        InvalidBumpKindError: On an unknown bump literal.
    """
    front_matter, body = _split_front_matter(content)
    data = _load_front_matter(front_matter)

    releases: dict[str, BumpKind] = {}
    for key, value in data.items():
        if key in RESERVED_KEYS:
            continue
        releases[canonicalize_name(str(key))] = BumpKind.parse(value)

    changeset_id = data.get("id", default_id)
    return Changeset(
        id=str(changeset_id) if changeset_id is not None else default_id,
        releases=releases,
        summary=body.strip(),
    )


def parse_changeset_file(path: Path) -> Changeset:
    """Parse a changeset file; the file stem is the default id."""
    return parse_changeset(path.read_text(), default_id=path.stem)


def serialize_changeset(changeset: Changeset) -> str:
    """Render a changeset as file content (front matter + summary).

    The id is not written; it is carried by the file name.
    """
    data = {name: kind.value for name, kind in changeset.releases.items()}
    front_matter = yaml.safe_dump(data, sort_keys=False, default_flow_style=False)
    return f"{DELIMITER}\n{front_matter}{DELIMITER}\n\n{changeset.summary}\n"


def write_changeset(changeset: Changeset, directory: Path) -> Path:
    """Write `changeset` to <directory>/<id>.md and return the path."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{changeset.id}.md"
    path.write_text(serialize_changeset(changeset))
    return path


def find_changeset_files(directory: Path) -> list[Path]:
    """List changeset files in `directory`, sorted by name.

    The directory README is documentation, not a changeset.
    """
    if not directory.is_dir():
        return []
    return sorted(
        p
        for p in directory.iterdir()
        if p.is_file()
        and p.suffix in CHANGESET_SUFFIXES
        and p.name.lower() != "readme.md"
    )


def read_changesets(directory: Path) -> list[Changeset]:
    """Read every changeset in `directory`.

    Files that fail to parse are skipped; a missing directory yields [].
    """
    return [changeset for _, changeset in _read_changeset_files(directory)]


def _read_changeset_files(directory: Path) -> list[tuple[Path, Changeset]]:
    found: list[tuple[Path, Changeset]] = []
    for path in find_changeset_files(directory):
        try:
            found.append((path, parse_changeset_file(path)))
        except (OSError, ValueError):
            # Unparseable files are not changesets
            continue
    return found


def delete_changesets(directory: Path, ids: set[str] | list[str]) -> list[Path]:
    """Delete the files of the given changeset ids and return their paths."""
    wanted = set(ids)
    deleted: list[Path] = []
    for path, changeset in _read_changeset_files(directory):
        if changeset.id in wanted:
            path.unlink()
            deleted.append(path)
    return deleted


def validate_changeset(changeset: Changeset) -> list[str]:
    """Return human-readable problems with a changeset (empty when valid)."""
    errors: list[str] = []
    if not changeset.id.strip():
        errors.append("Changeset ID is required")
    if not changeset.releases:
        errors.append("At least one package release is required")
    if not changeset.summary.strip():
        errors.append("Changeset summary is required")
    for name in changeset.releases:
        if not name:
            errors.append("Package name cannot be empty")
    return errors
