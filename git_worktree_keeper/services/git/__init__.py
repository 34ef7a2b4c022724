"""Git-related services for git-worktree-keeper."""

from .validation import (
    sanitize_branch_name,
    validate_branch_name,
    resolve_worktree_path,
    resolve_base_dir,
)
from .worktrees import WorktreeService
from .status import StatusTracker
from .github import GitHubService
from .merge_detector import MergeDetector, MergeStrategy

__all__ = [
    "sanitize_branch_name",
    "validate_branch_name",
    "resolve_worktree_path",
    "resolve_base_dir",
    "WorktreeService",
    "StatusTracker",
    "GitHubService",
    "MergeDetector",
    "MergeStrategy",
]
