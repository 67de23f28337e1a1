"""Tests for monobump.snapshot."""

from __future__ import annotations

import json
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import write_changeset_file, write_package
from monobump.config import ChangesetConfig
from monobump.graph import build_graph
from monobump.manifest import find_manifests
from monobump.models import ChangesetRecord, Declaration
from monobump.publish import PublishTarget
from monobump.snapshot import (
    SNAPSHOT_TAG,
    cascade_dependents,
    find_affected_packages,
    run_snapshot,
)

SNAPSHOT = "0.0.0-1718000000"


def manifest_bytes(root: Path) -> dict[Path, bytes]:
    return {p: p.read_bytes() for p in find_manifests(root)}


class RecordingPublisher:
    """Stand-in for the registry publish that records what it saw on disk."""

    def __init__(self, fail: set[str] | None = None, error: Exception | None = None):
        self.fail = fail or set()
        self.error = error
        self.published: list[tuple[str, str, str]] = []
        self.manifests: dict[str, dict] = {}

    def __call__(self, target: PublishTarget, config: ChangesetConfig, dist_tag: str) -> None:
        self.manifests[target.name] = json.loads(
            (target.directory / "package.json").read_text()
        )
        if self.error is not None:
            raise self.error
        if target.name in self.fail:
            raise subprocess.CalledProcessError(1, ["npm", "publish"])
        self.published.append((target.name, target.version, dist_tag))


class TestFindAffectedPackages:
    """Tests for find_affected_packages()."""

    def test_first_encountered_order(self) -> None:
        """Each package is listed once, in the order first seen."""
        records = [
            ChangesetRecord(
                declarations=[
                    Declaration(package_name="b", declared_type="fix"),
                    Declaration(package_name="a", declared_type="feat"),
                ]
            ),
            ChangesetRecord(
                declarations=[Declaration(package_name="b", declared_type="feat")]
            ),
        ]
        assert find_affected_packages(records) == ["b", "a"]


class TestCascadeDependents:
    """Tests for cascade_dependents()."""

    def test_includes_transitive_dependents(self, workspace: Path) -> None:
        """Dependents are added breadth-first with no policy filter."""
        graph = build_graph(find_manifests(workspace))
        assert cascade_dependents(["@acme/core"], graph) == [
            "@acme/core",
            "@acme/app",
            "@acme/lib",
        ]

    def test_leaf_has_no_dependents(self, workspace: Path) -> None:
        graph = build_graph(find_manifests(workspace))
        assert cascade_dependents(["@acme/tool"], graph) == ["@acme/tool"]

    def test_versionless_dependent_left_out(
        self, workspace: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """A dependent without a version is never given the snapshot version."""
        write_package(
            workspace,
            ".",
            {
                "name": "root",
                "private": True,
                "devDependencies": {"@acme/tool": "workspace:*"},
            },
        )
        graph = build_graph(find_manifests(workspace))

        assert cascade_dependents(["@acme/tool"], graph) == ["@acme/tool"]
        assert "root has no version" in capsys.readouterr().err


@patch("monobump.snapshot.generate_snapshot_version", return_value=SNAPSHOT)
class TestRunSnapshot:
    """Tests for run_snapshot()."""

    def test_publishes_pinned_snapshot(
        self, _mock_version: object, workspace: Path, config: ChangesetConfig
    ) -> None:
        """Public packages are published with internal deps pinned exactly."""
        write_changeset_file(workspace, "change.md", '---\n"@acme/core": fix\n---\n\nFix')
        publisher = RecordingPublisher()

        success, failed = run_snapshot(config, workspace, publish=publisher)

        assert (success, failed) == (2, 0)
        assert publisher.published == [
            ("@acme/core", SNAPSHOT, SNAPSHOT_TAG),
            ("@acme/lib", SNAPSHOT, SNAPSHOT_TAG),
        ]
        lib = publisher.manifests["@acme/lib"]
        assert lib["version"] == SNAPSHOT
        assert lib["dependencies"] == {"@acme/core": SNAPSHOT, "lodash": "^4.17.21"}

    def test_private_packages_not_published(
        self, _mock_version: object, workspace: Path, config: ChangesetConfig
    ) -> None:
        """Private dependents are rewritten but never published."""
        write_changeset_file(workspace, "change.md", '---\n"@acme/lib": fix\n---\n\nFix')
        publisher = RecordingPublisher()

        run_snapshot(config, workspace, publish=publisher)

        assert [name for name, _, _ in publisher.published] == ["@acme/lib"]
        assert "@acme/app" not in publisher.manifests

    def test_manifests_restored_after_success(
        self, _mock_version: object, workspace: Path, config: ChangesetConfig
    ) -> None:
        """Manifests go back to their original bytes; changesets are kept."""
        write_changeset_file(workspace, "change.md", '---\n"@acme/core": fix\n---\n\nFix')
        before = manifest_bytes(workspace)

        run_snapshot(config, workspace, publish=RecordingPublisher())

        assert manifest_bytes(workspace) == before
        assert (workspace / ".changeset" / "change.md").exists()

    def test_publish_failures_are_counted(
        self, _mock_version: object, workspace: Path, config: ChangesetConfig
    ) -> None:
        """A failed publish command is tallied and the rest still publish."""
        write_changeset_file(workspace, "change.md", '---\n"@acme/core": fix\n---\n\nFix')
        before = manifest_bytes(workspace)

        success, failed = run_snapshot(
            config, workspace, publish=RecordingPublisher(fail={"@acme/core"})
        )

        assert (success, failed) == (1, 1)
        assert manifest_bytes(workspace) == before

    def test_unexpected_error_restores_then_propagates(
        self, _mock_version: object, workspace: Path, config: ChangesetConfig
    ) -> None:
        """Any other error restores the manifests before it propagates."""
        write_changeset_file(workspace, "change.md", '---\n"@acme/core": fix\n---\n\nFix')
        before = manifest_bytes(workspace)
        publisher = RecordingPublisher(error=RuntimeError("registry down"))

        with pytest.raises(RuntimeError, match="registry down"):
            run_snapshot(config, workspace, publish=publisher)

        # the publisher saw the rewritten manifest before failing
        assert publisher.manifests["@acme/core"]["version"] == SNAPSHOT
        assert manifest_bytes(workspace) == before

    def test_dry_run_changes_nothing(
        self, _mock_version: object, workspace: Path, config: ChangesetConfig
    ) -> None:
        """Dry run prints the plan without writing or publishing."""
        write_changeset_file(workspace, "change.md", '---\n"@acme/core": fix\n---\n\nFix')
        before = manifest_bytes(workspace)
        publisher = RecordingPublisher()

        assert run_snapshot(config, workspace, dry_run=True, publish=publisher) == (0, 0)
        assert publisher.published == []
        assert manifest_bytes(workspace) == before

    def test_no_changesets_is_fatal(
        self, _mock_version: object, workspace: Path, config: ChangesetConfig
    ) -> None:
        with pytest.raises(SystemExit):
            run_snapshot(config, workspace, publish=RecordingPublisher())

    def test_empty_changesets_are_fatal(
        self, _mock_version: object, workspace: Path, config: ChangesetConfig
    ) -> None:
        write_changeset_file(workspace, "empty.md", "---\n---\n\n")
        with pytest.raises(SystemExit):
            run_snapshot(config, workspace, publish=RecordingPublisher())

    def test_ignored_package_is_dropped(
        self, _mock_version: object, workspace: Path
    ) -> None:
        """Ignored packages named by a changeset are left out, not fatal."""
        config = ChangesetConfig(ignore=["@acme/tool"])
        write_changeset_file(
            workspace,
            "change.md",
            '---\n"@acme/tool": fix\n"@acme/core": fix\n---\n\nFix',
        )
        publisher = RecordingPublisher()

        assert run_snapshot(config, workspace, publish=publisher) == (2, 0)
        assert "@acme/tool" not in publisher.manifests

    def test_only_ignored_packages_is_fatal(
        self, _mock_version: object, workspace: Path
    ) -> None:
        config = ChangesetConfig(ignore=["@acme/tool"])
        write_changeset_file(workspace, "change.md", '---\n"@acme/tool": fix\n---\n\nFix')
        with pytest.raises(SystemExit):
            run_snapshot(config, workspace, publish=RecordingPublisher())

    def test_unknown_package_is_fatal(
        self, _mock_version: object, workspace: Path, config: ChangesetConfig
    ) -> None:
        """A changeset naming a package that doesn't exist stops the snapshot."""
        write_changeset_file(workspace, "change.md", '---\n"@acme/ghost": fix\n---\n\nBoo')
        with pytest.raises(SystemExit):
            run_snapshot(config, workspace, publish=RecordingPublisher())

    def test_versionless_package_is_fatal(
        self, _mock_version: object, workspace: Path, config: ChangesetConfig
    ) -> None:
        """A snapshot can't give a version to a package that declares none."""
        write_changeset_file(workspace, "change.md", '---\n"root": fix\n---\n\nFix')
        before = manifest_bytes(workspace)

        with pytest.raises(SystemExit):
            run_snapshot(config, workspace, publish=RecordingPublisher())
        assert manifest_bytes(workspace) == before

    def test_missing_changeset_dir_is_fatal(
        self, _mock_version: object, tmp_path: Path, config: ChangesetConfig
    ) -> None:
        with pytest.raises(SystemExit):
            run_snapshot(config, tmp_path, publish=RecordingPublisher())
