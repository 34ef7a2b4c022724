"""Tests for exceptions, formatters, logging and threading helpers"""
import logging
import sys
from unittest.mock import patch

import git
import pytest

from git_worktree_keeper.exceptions import (
    BranchExistsError,
    GitOperationError,
    InputError,
    InvalidBranchNameError,
    MergeConflictError,
    MergeTargetMissingError,
    WorktreeKeeperError,
    WorktreeStateError,
)
from git_worktree_keeper.formatters import (
    format_action,
    format_age,
    format_duration,
    format_remote_state,
    format_violation,
)
from git_worktree_keeper.logging_config import ColoredFormatter, get_logger, setup_logging
from git_worktree_keeper.models.cleanup import (
    CleanupAction,
    SafetyViolation,
    ViolationKind,
    ViolationSeverity,
)
from git_worktree_keeper.models.status import RemoteState, WorktreeStatus
from git_worktree_keeper.utils.threading import get_optimal_worker_count, is_free_threading_enabled


class TestExceptions:
    """Test the exception hierarchy and messages."""

    def test_hierarchy(self):
        assert issubclass(InvalidBranchNameError, InputError)
        assert issubclass(BranchExistsError, WorktreeStateError)
        assert issubclass(MergeTargetMissingError, WorktreeStateError)
        for cls in (InputError, WorktreeStateError, GitOperationError, MergeConflictError):
            assert issubclass(cls, WorktreeKeeperError)

    def test_from_command_error(self):
        error = git.exc.GitCommandError(["git", "worktree", "add"], 128, stderr=b"fatal: bad ref")

        wrapped = GitOperationError.from_command_error("worktree add", error, "vibe-ws/x")

        assert wrapped.status == 128
        assert wrapped.message == "fatal: bad ref"
        assert str(wrapped) == "Git operation 'worktree add' failed for 'vibe-ws/x' (exit 128): fatal: bad ref"

    def test_state_error_message(self):
        error = BranchExistsError("vibe-ws/dup")
        assert error.operation == "create"
        assert error.target == "vibe-ws/dup"
        assert "already exists" in str(error)

    def test_merge_conflict_error(self):
        error = MergeConflictError("vibe-ws/login", "login", ["a.py", "b.py"])
        assert error.conflicted_files == ["a.py", "b.py"]
        assert "2 conflicted files" in str(error)


class TestFormatters:
    """Test display formatting helpers."""

    @pytest.mark.parametrize(
        "seconds,expected",
        [(0, "0 minutes"), (600, "10 minutes"), (7200, "2 hours"), (3 * 86400 + 5, "3 days"), (-5, "0 minutes")],
    )
    def test_format_duration(self, seconds, expected):
        assert format_duration(seconds) == expected

    @pytest.mark.parametrize("seconds,expected", [(59, "0m"), (720, "12m"), (18000, "5h"), (86400 * 3, "3d")])
    def test_format_age(self, seconds, expected):
        assert format_age(seconds) == expected

    @pytest.mark.parametrize(
        "state,ahead,behind,expected",
        [
            (RemoteState.NO_REMOTE, 0, 0, "no remote"),
            (RemoteState.REMOTE_DELETED, 0, 0, "remote deleted"),
            (RemoteState.UP_TO_DATE, 0, 0, "✓"),
            (RemoteState.AHEAD, 2, 0, "↑2"),
            (RemoteState.DIVERGED, 1, 4, "↑1 ↓4"),
        ],
    )
    def test_format_remote_state(self, state, ahead, behind, expected):
        status = WorktreeStatus(remote_state=state, ahead_count=ahead, behind_count=behind)
        assert format_remote_state(status) == expected

    def test_format_action_uses_outcome_color(self):
        assert format_action(CleanupAction.STASH_CREATED) == "[green]stash created[/green]"
        assert format_action(CleanupAction.FAILED) == "[red]failed[/red]"

    def test_format_violation(self):
        violation = SafetyViolation(ViolationKind.WORKTREE_IN_USE, "Worktree is locked", ViolationSeverity.CRITICAL)
        assert format_violation(violation) == "🚨 Worktree is locked"
        assert str(violation) == "[critical] Worktree is locked"


class TestLogging:
    """Test logging setup."""

    def test_get_logger_strips_package_prefix(self):
        assert get_logger("git_worktree_keeper.services.cleanup_service").name == "cleanup_service"
        assert get_logger("git_worktree_keeper.core.worktree_keeper").name == "core.worktree_keeper"

    @pytest.mark.parametrize(
        "verbose,level", [(False, logging.WARNING), (True, logging.INFO)]
    )
    def test_setup_logging_levels(self, verbose, level):
        root = logging.getLogger()
        handlers, previous_level = root.handlers[:], root.level
        try:
            setup_logging(verbose=verbose)
            assert root.level == level
            assert len(root.handlers) == 1
            assert root.handlers[0].level == level
        finally:
            root.handlers = handlers
            root.setLevel(previous_level)

    def test_log_file(self, temp_dir):
        root = logging.getLogger()
        handlers, previous_level = root.handlers[:], root.level
        log_file = temp_dir / "logs" / "keeper.log"
        try:
            setup_logging(log_to_file=True, log_file=log_file)
            get_logger("git_worktree_keeper.core.worktree_keeper").debug("hello file")
            for handler in root.handlers:
                handler.flush()
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 2
            assert "hello file" in log_file.read_text()
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers = handlers
            root.setLevel(previous_level)

    def test_colored_formatter_leaves_record_untouched(self):
        formatter = ColoredFormatter(fmt="%(levelname)s %(message)s", use_color=True)
        record = logging.LogRecord("x", logging.WARNING, __file__, 1, "careful", None, None)

        assert formatter.format(record) == "\033[33mWARNING\033[0m careful"
        assert record.levelname == "WARNING"


class TestThreading:
    """Test worker pool sizing."""

    def test_user_specified(self):
        assert get_optimal_worker_count(3) == 3

    def test_non_positive_ignored(self):
        assert get_optimal_worker_count(0) == get_optimal_worker_count()

    @patch("git_worktree_keeper.utils.threading.is_free_threading_enabled", return_value=False)
    @patch("git_worktree_keeper.utils.threading.os.cpu_count", return_value=4)
    def test_gil_build(self, _cpu, _free):
        assert get_optimal_worker_count() == 8

    @patch("git_worktree_keeper.utils.threading.is_free_threading_enabled", return_value=True)
    @patch("git_worktree_keeper.utils.threading.os.cpu_count", return_value=48)
    def test_free_threaded_build(self, _cpu, _free):
        assert get_optimal_worker_count() == 64

    def test_free_threading_detection(self):
        expected = hasattr(sys, "_is_gil_enabled") and not sys._is_gil_enabled()
        assert is_free_threading_enabled() == expected
