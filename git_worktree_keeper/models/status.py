"""Worktree status models and related enums"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from git_worktree_keeper.constants import MERGED_CONFIDENCE_THRESHOLD, SEVERITY_ICONS
from git_worktree_keeper.models.merge import MergeInfo


class StatusSeverity(Enum):
    """Risk tier of a worktree for automated operations."""
    CLEAN = "clean"
    LIGHT_WARNING = "light_warning"  # Worktree issues (uncommitted/unsynced)
    WARNING = "warning"  # Branch issues (stale, deleted remote, diverged)

    @property
    def priority(self) -> int:
        """Numeric priority for sorting (lower is more severe)."""
        return {
            StatusSeverity.WARNING: 0,
            StatusSeverity.LIGHT_WARNING: 1,
            StatusSeverity.CLEAN: 2,
        }[self]

    @property
    def icon(self) -> str:
        return SEVERITY_ICONS[self.value]


class RemoteState(Enum):
    """Tracking state of a worktree branch against its upstream."""
    NO_REMOTE = "no-remote"
    UP_TO_DATE = "up-to-date"
    AHEAD = "ahead"
    BEHIND = "behind"
    DIVERGED = "diverged"
    REMOTE_DELETED = "remote-deleted"

    @classmethod
    def from_counts(cls, ahead: int, behind: int) -> "RemoteState":
        if ahead and behind:
            return cls.DIVERGED
        if ahead:
            return cls.AHEAD
        if behind:
            return cls.BEHIND
        return cls.UP_TO_DATE


@dataclass(frozen=True)
class ChangedFile:
    """A tracked file with uncommitted changes, from a porcelain status entry."""
    path: str
    code: str  # Two-character porcelain code, index then worktree
    label: str
    original_path: Optional[str] = None  # Source of a rename or copy

    @property
    def is_staged(self) -> bool:
        return self.code[0] not in " ?"

    @property
    def is_unstaged(self) -> bool:
        return self.code[1] not in " ?"

    def __str__(self) -> str:
        if self.original_path:
            return f"{self.label}: {self.original_path} -> {self.path}"
        return f"{self.label}: {self.path}"


@dataclass(frozen=True)
class CommitInfo:
    """Summary of a commit."""
    id: str  # Short SHA
    message: str  # First line only
    author: str
    timestamp: datetime


@dataclass
class WorktreeStatus:
    """Detailed status information for a worktree."""
    is_clean: bool = False
    severity: StatusSeverity = StatusSeverity.WARNING
    changed_files: list[ChangedFile] = field(default_factory=list)
    untracked_files: list[str] = field(default_factory=list)
    unpushed_commits: list[CommitInfo] = field(default_factory=list)
    remote_state: RemoteState = RemoteState.NO_REMOTE
    upstream: Optional[str] = None
    ahead_count: int = 0
    behind_count: int = 0
    merge_info: Optional[MergeInfo] = None

    @property
    def has_uncommitted_changes(self) -> bool:
        return bool(self.changed_files or self.untracked_files)

    @property
    def is_confirmed_merged(self) -> bool:
        return (
            self.merge_info is not None
            and self.merge_info.is_merged
            and self.merge_info.confidence > MERGED_CONFIDENCE_THRESHOLD
        )

    def is_safe_to_cleanup(self) -> bool:
        """Clean tree, and either nothing unpushed or the branch is merged."""
        return (
            self.is_clean
            and not self.has_uncommitted_changes
            and (
                not self.unpushed_commits
                or (self.merge_info is not None and self.merge_info.is_merged)
            )
        )

    def description(self) -> str:
        """Get a user-friendly status description."""
        if self.is_clean and self.severity == StatusSeverity.CLEAN:
            if self.merge_info and self.merge_info.is_merged:
                return f"Clean ({self.merge_info.detection_method})"
            return "Clean"

        issues = []
        if self.changed_files:
            issues.append(f"{len(self.changed_files)} uncommitted")
        if self.untracked_files:
            issues.append(f"{len(self.untracked_files)} untracked")
        if self.ahead_count:
            issues.append(f"{self.ahead_count} unpushed")
        if self.remote_state == RemoteState.NO_REMOTE:
            issues.append("no remote")
        elif self.remote_state == RemoteState.BEHIND:
            issues.append(f"{self.behind_count} behind")
        elif self.remote_state == RemoteState.DIVERGED:
            issues.append(f"{self.ahead_count} ahead, {self.behind_count} behind")
        elif self.remote_state == RemoteState.REMOTE_DELETED:
            issues.append("remote deleted")
        if self.merge_info and self.merge_info.is_merged:
            issues.append(f"merged ({self.merge_info.detection_method})")

        return ", ".join(issues) if issues else "Clean"
