"""Data models for git-worktree-keeper."""

from .worktree import WorktreeRecord
from .merge import MethodResult, MergeDetectionResult, MergeInfo
from .status import StatusSeverity, RemoteState, ChangedFile, CommitInfo, WorktreeStatus
from .cleanup import (
    CleanupStrategy,
    CleanupAction,
    ViolationKind,
    ViolationSeverity,
    SafetyViolation,
    CleanupOptions,
    WorktreeCleanupResult,
    CleanupReport,
    merged_worktrees_options,
    old_worktrees_options,
)

__all__ = [
    "WorktreeRecord",
    "MethodResult",
    "MergeDetectionResult",
    "MergeInfo",
    "StatusSeverity",
    "RemoteState",
    "ChangedFile",
    "CommitInfo",
    "WorktreeStatus",
    "CleanupStrategy",
    "CleanupAction",
    "ViolationKind",
    "ViolationSeverity",
    "SafetyViolation",
    "CleanupOptions",
    "WorktreeCleanupResult",
    "CleanupReport",
    "merged_worktrees_options",
    "old_worktrees_options",
]
