"""
Thin wrappers around the git command line.
"""

from __future__ import annotations

import subprocess


def run_git(*args: str, cwd: str | None = None, check: bool = True) -> subprocess.CompletedProcess:
    """Run a git command in ``cwd``."""
    cmd = ["git"] + list(args)
    return subprocess.run(
        cmd,
        cwd=cwd,
        capture_output=True,
        text=True,
        check=check,
    )


def _rev_parse(cwd: str, *args: str) -> str | None:
    try:
        result = run_git("rev-parse", *args, cwd=cwd, check=False)
    except OSError:
        # git missing or cwd gone
        return None
    if result.returncode != 0:
        return None
    value = result.stdout.strip()
    return value or None


def get_head_commit(cwd: str) -> str | None:
    """Return the HEAD commit hash of the repository at ``cwd``, if any."""
    return _rev_parse(cwd, "HEAD")


def get_head_branch(cwd: str) -> str | None:
    """Return the checked-out branch at ``cwd``; None when detached or not a repo."""
    branch = _rev_parse(cwd, "--abbrev-ref", "HEAD")
    if branch == "HEAD":
        return None
    return branch
