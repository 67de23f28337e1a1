"""CLI entry point for monobump."""

from __future__ import annotations

from pathlib import Path

import click

from monobump.config import load_config
from monobump.pipeline import (
    add_changeset,
    add_empty_changeset,
    run_init,
    run_status,
    run_version,
)
from monobump.publish import run_publish
from monobump.snapshot import run_snapshot


@click.group()
@click.version_option(package_name="monobump")
def cli() -> None:
    """Changeset-driven versioning for JavaScript monorepos."""


@cli.command()
def init() -> None:
    """Create the .changeset directory with a default config."""
    run_init(Path.cwd())


@cli.command()
@click.option(
    "-p",
    "--package",
    "packages",
    multiple=True,
    help="Package the change applies to (repeatable).",
)
@click.option("-t", "--type", "declared_type", default="fix", show_default=True)
@click.option("--breaking", is_flag=True, help="Mark the change as breaking.")
@click.option("-m", "--message", default="", help="Changelog message.")
@click.option("--empty", is_flag=True, help="Create an empty changeset.")
def add(
    packages: tuple[str, ...],
    declared_type: str,
    breaking: bool,
    message: str,
    empty: bool,
) -> None:
    """Record a changeset for one or more packages."""
    root = Path.cwd()
    if empty:
        path = add_empty_changeset(root)
        click.echo(click.style("Empty changeset added! You can now commit it.", fg="green"))
        click.echo(f"  {path}")
        return

    config = load_config(root)
    if not packages:
        raise click.ClickException("At least one --package is required.")
    if config.find_type(declared_type) is None:
        known = ", ".join(t.type for t in config.types)
        raise click.ClickException(
            f"Unknown changeset type {declared_type!r}. Known types: {known}"
        )
    if not message.strip():
        raise click.ClickException("Message cannot be empty.")

    path = add_changeset(root, packages, declared_type, message.strip(), breaking)
    click.echo(click.style(f"✓ Wrote changeset to {path.relative_to(root)}", fg="green"))


@cli.command()
def status() -> None:
    """Show pending changesets and the releases they would produce."""
    root = Path.cwd()
    run_status(load_config(root), root)


@cli.command()
@click.option("--dry-run", is_flag=True, help="Show changes without writing files.")
@click.option(
    "--ignore",
    multiple=True,
    help="Package name to leave out of the release (repeatable).",
)
@click.option(
    "--install", is_flag=True, help="Run the package manager install afterwards."
)
def version(dry_run: bool, ignore: tuple[str, ...], install: bool) -> None:
    """Bump package versions based on changesets."""
    root = Path.cwd()
    try:
        run_version(load_config(root), root, dry_run=dry_run, ignore=ignore, install=install)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command()
@click.option("--dry-run", is_flag=True, help="Show what would be published.")
@click.option("--draft", is_flag=True, help="Create GitHub releases as drafts.")
def publish(dry_run: bool, draft: bool) -> None:
    """Tag, publish and create GitHub releases for all packages."""
    root = Path.cwd()
    _, failed = run_publish(load_config(root), root, dry_run=dry_run, draft=draft)
    if failed:
        raise SystemExit(1)


@cli.command()
@click.option("--dry-run", is_flag=True, help="Show what would be published.")
def snapshot(dry_run: bool) -> None:
    """Publish a temporary snapshot release of changed packages."""
    root = Path.cwd()
    _, failed = run_snapshot(load_config(root), root, dry_run=dry_run)
    if failed:
        raise SystemExit(1)
