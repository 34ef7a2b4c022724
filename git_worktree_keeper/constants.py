"""Shared constants for git-worktree-keeper."""

from dataclasses import dataclass
from typing import List


# Defaults
DEFAULT_BASE_DIR = ".worktrees"
DEFAULT_BRANCH_PREFIX = "vibe-ws/"
DEFAULT_MAIN_BRANCHES = ("main", "master")
DEFAULT_MERGE_METHODS = ("standard", "squash", "github_pr", "file_content")
ENV_PREFIX = "WORKTREE_KEEPER_"
GLOBAL_WORKTREE_ROOT = (".git-worktree-keeper", "worktrees")


# Branch name validation
MAX_BRANCH_NAME_LENGTH = 255
FORBIDDEN_BRANCH_CHARS = frozenset(
    ["$", "`", "(", ")", "{", "}", "|", "&", ";", "<", ">", "\n", "\r", "\0", '"', "'", "\\"]
)


# Ignore file management
IGNORE_FILE_NAME = ".gitignore"
IGNORE_FILE_MARKER = "# Managed worktree directories"


# Status tracking
MAX_UNPUSHED_COMMITS = 100
BEHIND_WARNING_THRESHOLD = 10
DIVERGED_BEHIND_WARNING_THRESHOLD = 5
DIVERGED_AHEAD_WARNING_THRESHOLD = 20
MERGED_CONFIDENCE_THRESHOLD = 0.8


# Merge detection confidences
STANDARD_MERGED_CONFIDENCE = 0.95
STANDARD_UNMERGED_CONFIDENCE = 0.8
SQUASH_NO_CHANGES_CONFIDENCE = 0.6
SQUASH_MESSAGE_CONFIDENCE = 0.7
SQUASH_TIMING_CONFIDENCE = 0.5
SQUASH_TIMING_WINDOW_SECONDS = 3600
SQUASH_LOG_SCAN_LIMIT = 200
GITHUB_PR_CONFIDENCE = 0.9
FILE_CONTENT_SCALE = 0.7
FILE_CONTENT_MATCH_RATIO = 0.8
FILE_CONTENT_NO_CHANGES_CONFIDENCE = 0.8


# Cleanup
STASH_NAME_PREFIX = "worktree-cleanup"
DEFAULT_MIN_MERGE_CONFIDENCE = 0.8


@dataclass
class ColumnDefinition:
    """Definition of a table column."""

    key: str
    label: str
    width: int = 0  # 0 means auto-width


WORKTREE_COLUMNS: List[ColumnDefinition] = [
    ColumnDefinition("branch", "Branch", 30),
    ColumnDefinition("path", "Path", 40),
    ColumnDefinition("head", "HEAD", 9),
    ColumnDefinition("age", "Age", 10),
    ColumnDefinition("status", "Status", 30),
]

REPORT_COLUMNS: List[ColumnDefinition] = [
    ColumnDefinition("branch", "Branch", 30),
    ColumnDefinition("action", "Action", 18),
    ColumnDefinition("reason", "Reason", 50),
]


# Severity icons
SEVERITY_ICONS = {
    "clean": "✅",
    "light_warning": "⚠️",
    "warning": "⚡",
}

VIOLATION_ICONS = {
    "warning": "⚠️",
    "critical": "🚨",
}


# CLI colors (Rich color names)
SEVERITY_COLORS = {
    "clean": "green",
    "light_warning": "yellow",
    "warning": "red",
}

ACTION_COLORS = {
    "cleaned": "green",
    "skipped": "yellow",
    "failed": "red",
}
