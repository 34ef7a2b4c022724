"""Tests for DisplayService rendering and the confirmation prompt"""
from datetime import datetime, timezone
from pathlib import Path

import pytest
from rich.console import Console

from git_worktree_keeper.config import WorktreeConfig
from git_worktree_keeper.models.cleanup import (
    CleanupAction,
    CleanupOptions,
    CleanupReport,
    CleanupStrategy,
    SafetyViolation,
    ViolationKind,
    ViolationSeverity,
    WorktreeCleanupResult,
)
from git_worktree_keeper.models.merge import MergeDetectionResult
from git_worktree_keeper.models.status import (
    ChangedFile,
    CommitInfo,
    RemoteState,
    StatusSeverity,
    WorktreeStatus,
)
from git_worktree_keeper.models.worktree import WorktreeRecord
from git_worktree_keeper.services import display_service
from git_worktree_keeper.services.display_service import DisplayService


@pytest.fixture
def output():
    return Console(record=True, width=200)


def render(output):
    return output.export_text()


def feature_record():
    return WorktreeRecord(
        path=Path("/repo/.worktrees/feat__1"),
        branch="vibe-ws/feat",
        head="abcdef1234567890",
        age=3 * 86400,
    )


class TestWorktreeTable:
    """Test the worktree listing table."""

    def test_rows(self, output):
        main = WorktreeRecord(Path("/repo"), "main", "1234567890", is_main=True, age=7200)
        orphan = WorktreeRecord(Path("/gone"), "vibe-ws/gone", "fedcba98765", is_orphaned=True)
        feature = feature_record()
        statuses = {
            feature.path: WorktreeStatus(
                severity=StatusSeverity.LIGHT_WARNING,
                untracked_files=["a.txt"],
                remote_state=RemoteState.NO_REMOTE,
            )
        }

        DisplayService(WorktreeConfig(), output).display_worktree_table([main, feature, orphan], statuses)

        text = render(output)
        assert "main (main)" in text
        assert "vibe-ws/feat" in text
        assert "abcdef1" in text
        assert "3d" in text
        assert "1 untracked" in text
        assert "orphaned" in text

    def test_rows_ordered_by_severity(self, output):
        main = WorktreeRecord(Path("/repo"), "main", "1234567890", is_main=True)
        clean = WorktreeRecord(Path("/repo/.worktrees/clean"), "vibe-ws/clean", "1111111111")
        stale = WorktreeRecord(Path("/repo/.worktrees/stale"), "vibe-ws/stale", "2222222222")
        dirty = WorktreeRecord(Path("/repo/.worktrees/dirty"), "vibe-ws/dirty", "3333333333")
        unknown = WorktreeRecord(Path("/repo/.worktrees/unknown"), "vibe-ws/unknown", "4444444444")
        statuses = {
            main.path: WorktreeStatus(is_clean=True, severity=StatusSeverity.CLEAN),
            clean.path: WorktreeStatus(is_clean=True, severity=StatusSeverity.CLEAN),
            stale.path: WorktreeStatus(severity=StatusSeverity.WARNING),
            dirty.path: WorktreeStatus(severity=StatusSeverity.LIGHT_WARNING),
        }

        DisplayService(WorktreeConfig(), output).display_worktree_table(
            [unknown, clean, dirty, stale, main], statuses
        )

        text = render(output)
        positions = [text.index(name) for name in ("main (main)", "stale", "dirty", "clean", "unknown")]
        assert positions == sorted(positions)

    def test_without_statuses(self, output):
        DisplayService(WorktreeConfig(), output).display_worktree_table([feature_record()])
        assert "vibe-ws/feat" in render(output)


class TestStatusDetail:
    """Test the per-worktree status view."""

    def _status(self, files=3, commits=2):
        return WorktreeStatus(
            severity=StatusSeverity.LIGHT_WARNING,
            changed_files=[ChangedFile(f"file{i}.py", " M", "modified (unstaged)") for i in range(files)],
            unpushed_commits=[
                CommitInfo(f"c{i:06d}", f"Commit number {i}", "Dev", datetime(2024, 1, 1, tzinfo=timezone.utc))
                for i in range(commits)
            ],
            remote_state=RemoteState.AHEAD,
            upstream="origin/vibe-ws/feat",
            ahead_count=commits,
            merge_info=MergeDetectionResult(False, "standard", 0.8, "not reachable from any main branch"),
        )

    def test_full_detail(self, output):
        DisplayService(WorktreeConfig(), output).display_status(feature_record(), self._status())

        text = render(output)
        assert "vibe-ws/feat" in text
        assert "light warning" in text
        assert "↑2" in text
        assert "origin/vibe-ws/feat" in text
        assert "not merged via standard (80%)" in text
        assert "modified (unstaged): file0.py" in text
        assert "Commit number 1" in text
        assert "more" not in text

    def test_limits(self, output):
        config = WorktreeConfig(max_files_shown=10, max_commits_shown=1)
        DisplayService(config, output).display_status(feature_record(), self._status(files=12, commits=3))

        text = render(output)
        assert "file9.py" in text
        assert "file10.py" not in text
        assert "... and 2 more" in text
        assert "Commit number 0" in text
        assert "Commit number 1" not in text

    def test_sections_switched_off(self, output):
        config = WorktreeConfig(show_files=False, show_commit_messages=False)
        DisplayService(config, output).display_status(feature_record(), self._status())

        text = render(output)
        assert "file0.py" not in text
        assert "Commit number" not in text


class TestCleanupReport:
    """Test the cleanup report rendering."""

    def test_report(self, output):
        report = CleanupReport(
            CleanupStrategy.DISCARD,
            was_dry_run=True,
            results=[
                WorktreeCleanupResult(Path("/repo"), "main", CleanupAction.SKIPPED, "Main repository worktree"),
                WorktreeCleanupResult(
                    feature_record().path, "vibe-ws/feat", CleanupAction.CLEANED, "Would be cleaned (dry run)"
                ),
                WorktreeCleanupResult(
                    Path("/repo/.worktrees/x"),
                    "vibe-ws/x",
                    CleanupAction.FAILED,
                    "Failed to remove worktree",
                    error="[rejected] permission denied",
                ),
            ],
        )

        DisplayService(WorktreeConfig(), output).display_cleanup_report(report)

        text = render(output)
        assert "Cleanup report (dry run)" in text
        assert "Main repository worktree" in text
        assert "vibe-ws/feat" in text
        assert "[rejected] permission denied" in text
        assert "Strategy: discard" in text
        assert "[dry run] 3 evaluated: 1 cleaned, 1 skipped, 1 failed" in text


class TestConfirmCleanup:
    """Test the default terminal confirmation prompt."""

    def test_prompt(self, monkeypatch):
        output = Console(record=True, width=200)
        monkeypatch.setattr(display_service, "console", output)
        asked = {}

        def fake_ask(prompt, default=None, console=None):
            asked["prompt"] = prompt
            asked["default"] = default
            return True

        monkeypatch.setattr(display_service.Confirm, "ask", fake_ask)
        violation = SafetyViolation(ViolationKind.UNPUSHED_COMMITS, "2 unpushed commits", ViolationSeverity.WARNING)

        assert display_service.confirm_cleanup(feature_record(), CleanupOptions(), [violation])

        text = output.export_text()
        assert "vibe-ws/feat" in text
        assert "Strategy: discard" in text
        assert "2 unpushed commits" in text
        assert asked["default"] is False
