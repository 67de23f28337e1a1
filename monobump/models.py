"""Data models for monobump.

These Pydantic models represent the core data structures used throughout
the versioning pipeline: parsed changesets, resolved releases, the internal
dependency graph and the per-package results of a version run.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

BumpKind = Literal["patch", "minor", "major"]
UpdatePolicy = Literal["none", "patch", "minor", "major"]


class Declaration(BaseModel):
    """A single `"package": type` line from a changeset frontmatter block.

    Attributes:
        package_name: Package the declaration applies to.
        declared_type: Conventional-commit style type (feat, fix, ...).
        is_breaking: Set by a trailing ``!``.
        is_explicit_major: Set by a trailing ``@major``. Forces a major bump
            without marking the change as breaking.
    """

    package_name: str
    declared_type: str
    is_breaking: bool = False
    is_explicit_major: bool = False


class ChangesetRecord(BaseModel):
    """All declarations of one changeset document plus its shared message."""

    declarations: list[Declaration] = Field(default_factory=list)
    message: str = ""
    path: Path | None = None


class ResolvedRelease(BaseModel):
    """A declaration after its bump kind has been resolved from config."""

    package_name: str
    bump_kind: BumpKind
    message: str
    declared_type: str
    is_breaking: bool = False


class PackageReleases(BaseModel):
    """Everything pending for one package across all changeset documents.

    Attributes:
        releases: Resolved releases in the order they were encountered.
        documents: Raw text of each changeset document that named the
            package, each document listed once. Used to build the changelog.
    """

    releases: list[ResolvedRelease] = Field(default_factory=list)
    documents: list[str] = Field(default_factory=list)

    @property
    def is_breaking(self) -> bool:
        return any(r.is_breaking for r in self.releases)


class Manifest(BaseModel):
    """Typed view of a package.json.

    Only the fields monobump reads or mutates are named. Everything else is
    kept as extra data so that writing the manifest back is lossless.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str | None = None
    version: str | None = None
    private: bool | None = None
    dependencies: dict[str, str] | None = None
    dev_dependencies: dict[str, str] | None = Field(
        default=None, alias="devDependencies"
    )
    peer_dependencies: dict[str, str] | None = Field(
        default=None, alias="peerDependencies"
    )
    publish_config: dict[str, Any] | None = Field(default=None, alias="publishConfig")

    _key_order: list[str] = PrivateAttr(default_factory=list)

    @classmethod
    def from_json(cls, text: str) -> Manifest:
        """Parse manifest text, remembering the original key order."""
        data = json.loads(text)
        manifest = cls.model_validate(data)
        manifest._key_order = list(data)
        return manifest

    def to_json(self) -> str:
        """Serialize with 2-space indent and a trailing newline.

        Keys keep the order they had when the manifest was read; keys that
        were added afterwards are appended.
        """
        data = self.model_dump(by_alias=True, exclude_unset=True)
        ordered = {key: data[key] for key in self._key_order if key in data}
        ordered.update((k, v) for k, v in data.items() if k not in ordered)
        return json.dumps(ordered, indent=2, ensure_ascii=False) + "\n"

    @property
    def is_private(self) -> bool:
        return self.private is True

    @property
    def access(self) -> str | None:
        if self.publish_config:
            return self.publish_config.get("access")
        return None

    def dependency_sections(self) -> list[dict[str, str]]:
        """Return the dependency maps that are present, in manifest order."""
        sections = [self.dependencies, self.dev_dependencies, self.peer_dependencies]
        return [s for s in sections if s]

    def all_dependency_names(self) -> list[str]:
        """Union of runtime, dev and peer dependency names (deduplicated)."""
        names: list[str] = []
        for section in self.dependency_sections():
            for dep in section:
                if dep not in names:
                    names.append(dep)
        return names


class PackageNode(BaseModel):
    """Metadata for a single internal package in the monorepo.

    Attributes:
        name: Package name from the manifest.
        version: Current version string from the manifest, or None if the
            manifest declares none. Versionless packages keep their edges
            but are never re-versioned.
        manifest_path: Path to the package.json file.
        manifest: Parsed manifest. Mutated in place during a cascade and
            written back to disk afterwards.
    """

    name: str
    version: str | None = None
    manifest_path: Path
    manifest: Manifest

    @property
    def directory(self) -> Path:
        return self.manifest_path.parent


class DependencyGraph(BaseModel):
    """Internal packages and who depends on whom.

    Attributes:
        nodes: Map of package name → PackageNode.
        dependents: Reverse adjacency. ``a in dependents[b]`` means package
            ``a`` declares a dependency on internal package ``b``.
    """

    nodes: dict[str, PackageNode] = Field(default_factory=dict)
    dependents: dict[str, set[str]] = Field(default_factory=dict)

    def dependents_of(self, name: str) -> set[str]:
        return self.dependents.get(name, set())


class DependencyUpdate(BaseModel):
    """One rewritten internal dependency range."""

    name: str
    from_range: str
    to_range: str


class UpdateResult(BaseModel):
    """Records a version change for a package.

    Produced for every package touched by a version run, whether it was
    named by a changeset or pulled in by the cascade.
    """

    package_name: str
    old_version: str
    new_version: str
    bump_kind: BumpKind
    reason: Literal["changeset", "dependency"]
    dependency_updates: list[DependencyUpdate] = Field(default_factory=list)
