"""CLI entry point for changeset-release."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click
from packaging.utils import canonicalize_name

from changeset_release.changesets import generate_changeset_id, validate_changeset, write_changeset
from changeset_release.config import CONFIG_FORMATS, Config, find_config_file, load_config, save_config
from changeset_release.errors import ChangesetReleaseError
from changeset_release.models import BumpKind, Changeset
from changeset_release.pipeline import (
    create_tags,
    discover_packages,
    plan_workspace,
    run_version,
    untagged_packages,
)
from changeset_release.shell import git, step
from changeset_release.toml import load_pyproject

BUMP_CHOICES = ["major", "minor", "patch"]

CHANGESET_README = """\
# Changesets

This directory holds changesets: markdown files that declare which packages
a change affects and how big the version bump must be.

    ---
    "my-package": minor
    ---

    What changed, in a sentence or two.

Create one with `changeset-release add`, preview the plan with
`changeset-release status`, and apply it with `changeset-release version`.
"""


@contextmanager
def _user_errors() -> Iterator[None]:
    """Turn planning failures into a clean CLI error."""
    try:
        yield
    except ChangesetReleaseError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.version_option(package_name="changeset-release")
def cli() -> None:
    """Changeset-driven release planning for uv workspaces."""


@cli.command()
@click.option(
    "--config-format",
    type=click.Choice(CONFIG_FORMATS),
    default="toml",
    show_default=True,
    help="Format of the generated configuration file.",
)
@click.option("--force", is_flag=True, help="Overwrite an existing configuration.")
def init(config_format: str, force: bool) -> None:
    """Create the changeset directory and a default configuration."""
    root = Path.cwd()

    pyproject = root / "pyproject.toml"
    if not pyproject.exists():
        raise click.ClickException("No pyproject.toml found in current directory.")

    doc = load_pyproject(pyproject)
    members = doc.get("tool", {}).get("uv", {}).get("workspace", {}).get("members")
    if not members:
        raise click.ClickException(
            "No [tool.uv.workspace] members defined in pyproject.toml.\n"
            "changeset-release requires a uv workspace. Example:\n\n"
            "  [tool.uv.workspace]\n"
            '  members = ["packages/*"]'
        )

    existing = find_config_file(root)
    if existing is not None and not force:
        raise click.ClickException(
            f"Already initialized ({existing.relative_to(root)}). Use --force to overwrite."
        )

    config = Config()
    with _user_errors():
        path = save_config(config, root, config_format)

    readme = root / config.changeset_dir / "README.md"
    if not readme.exists():
        readme.write_text(CHANGESET_README)

    click.echo(f"✓ Wrote {path.relative_to(root)}")
    click.echo()
    click.echo("Next steps:")
    click.echo("  1. changeset-release add       # describe a change")
    click.echo("  2. changeset-release status    # preview the release plan")
    click.echo("  3. changeset-release version   # bump versions and re-pin dependents")


@cli.command()
@click.option(
    "-p",
    "--package",
    "package_names",
    multiple=True,
    help="Package to include (repeatable). Prompted for when omitted.",
)
@click.option(
    "-t",
    "--type",
    "bump",
    type=click.Choice(BUMP_CHOICES),
    default=None,
    help="Bump kind for every selected package. Prompted per package when omitted.",
)
@click.option("-m", "--message", default=None, help="Changeset summary.")
def add(package_names: tuple[str, ...], bump: str | None, message: str | None) -> None:
    """Create a new changeset."""
    root = Path.cwd()
    with _user_errors():
        config = load_config(root)
        packages = discover_packages(root)

    names = list(package_names)
    if not names:
        click.echo(f"Available packages: {', '.join(packages)}")
        raw = click.prompt("Packages to include (comma-separated)")
        names = [n.strip() for n in raw.split(",") if n.strip()]

    names = list(dict.fromkeys(canonicalize_name(n) for n in names))
    unknown = [n for n in names if n not in packages]
    if unknown:
        raise click.ClickException(f"Unknown package(s): {', '.join(unknown)}")

    releases: dict[str, BumpKind] = {}
    for name in names:
        kind = bump or click.prompt(
            f"What kind of change is this for {name}?",
            type=click.Choice(BUMP_CHOICES),
            default="patch",
        )
        releases[name] = BumpKind.parse(kind)

    if message is None:
        message = click.prompt("Summary")

    changeset = Changeset(id=generate_changeset_id(), releases=releases, summary=message)
    problems = validate_changeset(changeset)
    if problems:
        raise click.ClickException("; ".join(problems))

    path = write_changeset(changeset, root / config.changeset_dir)
    click.echo(f"✓ Wrote changeset {path.relative_to(root)}")


@cli.command()
@click.option("-v", "--verbose", is_flag=True, help="Show changeset details and graph stats.")
def status(verbose: bool) -> None:
    """Show pending changesets and the release plan they produce."""
    root = Path.cwd()
    with _user_errors():
        config = load_config(root)
        _, changesets, releases, planner = plan_workspace(root, config)

    if verbose and changesets:
        step("Changeset details")
        for changeset in changesets:
            click.echo(f"  {changeset.id}")
            click.echo(f"    packages: {', '.join(changeset.packages)}")
            click.echo(f"    summary:  {changeset.summary}")

    step("Release plan")
    if not releases:
        click.echo("  No releases planned.")
    for release in releases:
        click.echo(
            f"  {release.name} {release.type.value}: "
            f"{release.old_version} → {release.new_version}"
        )
        for dependent in release.dependents:
            click.echo(f"    re-pin {dependent}")

    summary = planner.get_release_summary(releases)
    counts = ", ".join(f"{n} {kind}" for kind, n in summary.version_types.items())
    click.echo()
    click.echo(
        f"{summary.total_releases} releases ({counts}) "
        f"from {summary.changeset_count} changesets"
    )

    if verbose:
        stats = planner.graph.stats()
        click.echo(
            f"{stats.total_packages} packages "
            f"({stats.internal_packages} internal, {stats.external_packages} external)"
        )

    for package, via in planner.graph.circular_dependencies():
        click.echo(f"Warning: circular dependency {package} → {via}", err=True)
    for error in planner.validate_release_plan(releases):
        click.echo(f"Warning: {error}", err=True)


@cli.command()
@click.option("-d", "--dry-run", is_flag=True, help="Show the plan without changing files.")
@click.option(
    "--commit/--no-commit",
    default=None,
    help="Commit and tag the release (default: the `commit` config setting).",
)
def version(dry_run: bool, commit: bool | None) -> None:
    """Apply changesets: bump versions and re-pin dependents."""
    root = Path.cwd()
    with _user_errors():
        config = load_config(root)
        run_version(
            root,
            config,
            dry_run=dry_run,
            commit=config.commit if commit is None else commit,
        )


@cli.command()
@click.option("--push", is_flag=True, help="Push tags to the remote after creating them.")
def tag(push: bool) -> None:
    """Tag every package version that has no tag yet."""
    root = Path.cwd()
    with _user_errors():
        config = load_config(root)
        packages = discover_packages(root)

    tags = untagged_packages(packages, config, root)
    if not tags:
        click.echo("No new tags to create.")
        return

    create_tags(tags, root)
    if push:
        step("Pushing tags")
        git("push", "--tags", cwd=root)
