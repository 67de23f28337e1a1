"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from monobump.config import ChangesetConfig, ChangesetType


def write_package(root: Path, rel: str, data: dict[str, Any]) -> Path:
    """Write a package.json under root/rel and return its path."""
    pkg_dir = root / rel
    pkg_dir.mkdir(parents=True, exist_ok=True)
    path = pkg_dir / "package.json"
    path.write_text(json.dumps(data, indent=2) + "\n")
    return path


def write_changeset_file(root: Path, name: str, content: str) -> Path:
    path = root / ".changeset" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


@pytest.fixture
def config() -> ChangesetConfig:
    """Config with the built-in type table."""
    return ChangesetConfig()


@pytest.fixture
def small_config() -> ChangesetConfig:
    """Config with only feat and fix configured."""
    return ChangesetConfig(
        type_settings={
            "types": [
                ChangesetType(
                    type="feat",
                    display_name="New Features",
                    emoji="🚀",
                    release_type="minor",
                ),
                ChangesetType(type="fix", display_name="Bug Fixes", emoji="🐛"),
            ]
        }
    )


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A small monorepo: app → lib → core, plus an unrelated tool.

    Layout::

        package.json             (private root, no version)
        packages/core            1.0.0
        packages/lib             1.2.0   depends on core ^1.0.0
        packages/app             0.3.0   depends on lib workspace:^1.2.0,
                                          dev-depends on core workspace:*
        packages/tool            2.0.0   no internal deps
    """
    (tmp_path / ".changeset").mkdir()
    (tmp_path / ".changeset" / "config.json").write_text("{}\n")
    (tmp_path / ".changeset" / "README.md").write_text("# Changesets\n")

    write_package(tmp_path, ".", {"name": "root", "private": True})
    write_package(
        tmp_path,
        "packages/core",
        {"name": "@acme/core", "version": "1.0.0", "license": "MIT"},
    )
    write_package(
        tmp_path,
        "packages/lib",
        {
            "name": "@acme/lib",
            "version": "1.2.0",
            "dependencies": {"@acme/core": "^1.0.0", "lodash": "^4.17.21"},
        },
    )
    write_package(
        tmp_path,
        "packages/app",
        {
            "name": "@acme/app",
            "version": "0.3.0",
            "private": True,
            "dependencies": {"@acme/lib": "workspace:^1.2.0"},
            "devDependencies": {"@acme/core": "workspace:*"},
        },
    )
    write_package(tmp_path, "packages/tool", {"name": "@acme/tool", "version": "2.0.0"})
    return tmp_path
