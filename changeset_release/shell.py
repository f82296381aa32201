"""Git and terminal helpers.

Everything that leaves the process goes through here: git invocations for
tagging and committing a release, and the console output the pipeline uses
to report progress.
"""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path


def git(*args: str, check: bool = True, cwd: Path | None = None) -> str:
    """Run git with `args` and return its stripped stdout.

    Args:
        *args: Git arguments, e.g. ("tag", "--list").
        check: Raise CalledProcessError on a non-zero exit. Pass False for
               queries that may fail outside a repository.
        cwd: Working directory (the workspace root); None means the current
             directory.
    """
    completed = subprocess.run(
        ["git", *args], capture_output=True, text=True, check=check, cwd=cwd
    )
    return completed.stdout.strip()


def step(msg: str) -> None:
    """Print a ruled header that opens a pipeline phase."""
    rule = "─" * 60
    print(f"\n{rule}\n{msg}\n{rule}")


def fatal(msg: str) -> None:
    """Report `msg` on stderr and exit with status 1."""
    print(f"ERROR: {msg}", file=sys.stderr)
    sys.exit(1)
