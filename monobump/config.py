"""Configuration for monobump.

Configuration lives in ``.changeset/config.json``. It is loaded once per
command and then passed explicitly to every component that needs it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .models import BumpKind, UpdatePolicy
from .shell import fatal

CHANGESET_DIR = ".changeset"
CONFIG_FILE = "config.json"


class ChangesetType(BaseModel):
    """One entry of the changeset type table.

    Attributes:
        type: Type keyword used in changeset files (e.g. "feat").
        display_name: Heading shown in the changelog.
        emoji: Prefix shown before the heading.
        release_type: Bump kind for this type. Types without one are patches.
        prompt_breaking_change: Whether interactive tooling should ask if a
            change of this type is breaking.
    """

    model_config = ConfigDict(populate_by_name=True)

    type: str
    display_name: str = Field(alias="displayName")
    emoji: str = "•"
    release_type: BumpKind | None = Field(default=None, alias="releaseType")
    prompt_breaking_change: bool = Field(default=False, alias="promptBreakingChange")


DEFAULT_CHANGESET_TYPES: list[ChangesetType] = [
    ChangesetType(
        type="feat",
        display_name="New Features",
        emoji="🚀",
        release_type="minor",
        prompt_breaking_change=True,
    ),
    ChangesetType(
        type="fix", display_name="Bug Fixes", emoji="🐛", prompt_breaking_change=True
    ),
    ChangesetType(
        type="perf",
        display_name="Performance Improvements",
        emoji="⚡️",
        prompt_breaking_change=True,
    ),
    ChangesetType(type="chore", display_name="Chores", emoji="🏠"),
    ChangesetType(type="docs", display_name="Documentation", emoji="📚"),
    ChangesetType(type="style", display_name="Styles", emoji="🎨"),
    ChangesetType(
        type="refactor",
        display_name="Refactoring",
        emoji="♻️",
        prompt_breaking_change=True,
    ),
    ChangesetType(type="test", display_name="Tests", emoji="✅"),
    ChangesetType(
        type="build", display_name="Build", emoji="📦", prompt_breaking_change=True
    ),
    ChangesetType(type="ci", display_name="Automation", emoji="🤖"),
    ChangesetType(
        type="revert", display_name="Reverts", emoji="⏪", prompt_breaking_change=True
    ),
]


class TypeSettings(BaseModel):
    types: list[ChangesetType] = Field(
        default_factory=lambda: list(DEFAULT_CHANGESET_TYPES)
    )


class ChangesetConfig(BaseModel):
    """Contents of ``.changeset/config.json`` with defaults applied."""

    model_config = ConfigDict(populate_by_name=True)

    access: Literal["restricted", "public"] = "restricted"
    base_branch: str = Field(default="main", alias="baseBranch")
    update_internal_dependencies: UpdatePolicy = Field(
        default="patch", alias="updateInternalDependencies"
    )
    ignore: list[str] = Field(default_factory=list)
    type_settings: TypeSettings = Field(
        default_factory=TypeSettings, alias="lazyChangesets"
    )

    @property
    def types(self) -> list[ChangesetType]:
        return self.type_settings.types

    def find_type(self, type_name: str) -> ChangesetType | None:
        for entry in self.types:
            if entry.type == type_name:
                return entry
        return None

    def type_index(self, type_name: str) -> int | None:
        for i, entry in enumerate(self.types):
            if entry.type == type_name:
                return i
        return None


def load_config(root: Path) -> ChangesetConfig:
    """Load ``.changeset/config.json`` from the repository root.

    Missing keys fall back to their defaults; a missing ``lazyChangesets``
    section (or one without ``types``) uses the built-in type table.

    Raises:
        SystemExit: If the changeset directory or config file is missing.
        pydantic.ValidationError: If the file holds invalid values.
    """
    changeset_dir = root / CHANGESET_DIR
    if not changeset_dir.is_dir():
        fatal(f"Directory {CHANGESET_DIR} does not exist.")

    config_path = changeset_dir / CONFIG_FILE
    if not config_path.exists():
        fatal(f"File {CHANGESET_DIR}/{CONFIG_FILE} does not exist.")

    return ChangesetConfig.model_validate_json(config_path.read_text())


def default_config_json() -> str:
    """Render the config written by ``monobump init``.

    The type table is left out so that the built-in defaults apply.
    """
    config = ChangesetConfig()
    return config.model_dump_json(
        by_alias=True, indent=2, exclude={"type_settings"}
    )
