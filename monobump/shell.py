"""Shell and git utilities.

Provides simple wrappers around subprocess calls for running shell commands,
git and the GitHub CLI, plus output formatting helpers.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import click


def git(*args: str, check: bool = True) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "tag", "--list").
        check: If True (default), raise on non-zero exit. Set to False
               for commands that may legitimately fail (e.g., tag lookup).

    Returns:
        Stripped stdout from the git command.
    """
    result = subprocess.run(["git", *args], capture_output=True, text=True, check=check)
    return result.stdout.strip()


def gh(*args: str, check: bool = True) -> str:
    """Run a GitHub CLI command and return stdout."""
    result = subprocess.run(["gh", *args], capture_output=True, text=True, check=check)
    return result.stdout.strip()


def run(
    *args: str, cwd: Path | None = None, check: bool = True
) -> subprocess.CompletedProcess[bytes]:
    """Run an arbitrary shell command.

    Unlike git(), this doesn't capture output - it streams directly to
    the terminal so users can see publish and install progress.

    Args:
        *args: Command and arguments (e.g., "npm", "publish").
        cwd: Directory to run the command in.
        check: If True (default), raise on non-zero exit.

    Returns:
        CompletedProcess with returncode for checking success.
    """
    return subprocess.run(args, cwd=cwd, check=check)


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate major phases of a command in terminal output.
    """
    click.echo(f"\n{'─' * 60}\n{click.style(msg, bold=True)}\n{'─' * 60}")


def warn(msg: str) -> None:
    """Print a warning to stderr without stopping."""
    click.echo(click.style(f"Warning: {msg}", fg="yellow"), err=True)


def fatal(msg: str) -> None:
    """Print an error message and exit with code 1.

    Use for unrecoverable errors that should halt the command.
    """
    click.echo(click.style(f"ERROR: {msg}", fg="red"), err=True)
    raise SystemExit(1)
