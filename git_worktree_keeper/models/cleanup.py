"""Cleanup policy, safety and report models."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from git_worktree_keeper.constants import DEFAULT_MIN_MERGE_CONFIDENCE


class CleanupStrategy(Enum):
    """What happens to a worktree's work when it is cleaned up."""
    DISCARD = "discard"
    MERGE_TO_FEATURE = "merge_to_feature"
    BACKUP_TO_ORIGIN = "backup_to_origin"
    STASH_AND_DISCARD = "stash_and_discard"


class CleanupAction(Enum):
    """Per-worktree outcome recorded in a cleanup report."""
    CLEANED = "cleaned"
    SKIPPED = "skipped"
    FAILED = "failed"
    STASH_CREATED = "stash_created"
    MERGED_TO_FEATURE = "merged_to_feature"
    BACKED_UP_TO_ORIGIN = "backed_up_to_origin"

    @property
    def outcome(self) -> "CleanupAction":
        """Collapse strategy-specific actions onto Cleaned, Skipped or Failed."""
        if self in (CleanupAction.SKIPPED, CleanupAction.FAILED):
            return self
        return CleanupAction.CLEANED


class ViolationKind(Enum):
    UNCOMMITTED_CHANGES = "uncommitted_changes"
    UNPUSHED_COMMITS = "unpushed_commits"
    BRANCH_TOO_NEW = "branch_too_new"
    NO_REMOTE_TRACKING = "no_remote_tracking"
    LOW_MERGE_CONFIDENCE = "low_merge_confidence"
    REMOTE_BRANCH_MISSING = "remote_branch_missing"
    WORKTREE_IN_USE = "worktree_in_use"


class ViolationSeverity(Enum):
    WARNING = "warning"  # Overridable by force
    CRITICAL = "critical"  # Never overridable


@dataclass(frozen=True)
class SafetyViolation:
    """A reason a worktree should not be cleaned up automatically."""
    kind: ViolationKind
    description: str
    severity: ViolationSeverity

    @property
    def is_critical(self) -> bool:
        return self.severity == ViolationSeverity.CRITICAL

    def __str__(self) -> str:
        return f"[{self.severity.value}] {self.description}"


@dataclass
class CleanupOptions:
    """Options controlling a cleanup run."""
    strategy: CleanupStrategy = CleanupStrategy.DISCARD
    min_age_hours: Optional[int] = None  # None uses the configured threshold
    force: bool = False
    dry_run: bool = False
    auto_confirm: bool = False
    branch_prefix_filter: Optional[str] = None
    merged_only: bool = False
    min_merge_confidence: float = DEFAULT_MIN_MERGE_CONFIDENCE
    delete_branch: Optional[bool] = None  # None uses auto_delete_branch

    def __post_init__(self):
        if not 0.0 <= self.min_merge_confidence <= 1.0:
            raise ValueError(
                f"min_merge_confidence must be between 0 and 1, got {self.min_merge_confidence}"
            )
        if self.min_age_hours is not None and self.min_age_hours < 0:
            raise ValueError(f"min_age_hours cannot be negative, got {self.min_age_hours}")


def merged_worktrees_options(**overrides) -> CleanupOptions:
    """Options for cleaning worktrees whose branches have been merged."""
    values = {"merged_only": True, "min_merge_confidence": 0.7}
    values.update(overrides)
    return CleanupOptions(**values)


def old_worktrees_options(days: int, **overrides) -> CleanupOptions:
    """Options for cleaning worktrees older than ``days``."""
    values = {"min_age_hours": days * 24}
    values.update(overrides)
    return CleanupOptions(**values)


@dataclass
class WorktreeCleanupResult:
    """What happened to one worktree during a cleanup run."""
    path: Path
    branch: str
    action: CleanupAction
    reason: str
    error: Optional[str] = None
    violations: list[SafetyViolation] = field(default_factory=list)

    @property
    def outcome(self) -> CleanupAction:
        return self.action.outcome


@dataclass
class CleanupReport:
    """Aggregated result of a cleanup run."""
    strategy_used: CleanupStrategy
    was_dry_run: bool = False
    results: list[WorktreeCleanupResult] = field(default_factory=list)

    @property
    def total_evaluated(self) -> int:
        return len(self.results)

    @property
    def cleaned_count(self) -> int:
        return self._count(CleanupAction.CLEANED)

    @property
    def skipped_count(self) -> int:
        return self._count(CleanupAction.SKIPPED)

    @property
    def failed_count(self) -> int:
        return self._count(CleanupAction.FAILED)

    def _count(self, outcome: CleanupAction) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)

    def find(self, branch: str) -> Optional[WorktreeCleanupResult]:
        for result in self.results:
            if result.branch == branch:
                return result
        return None

    def summary(self) -> str:
        prefix = "[dry run] " if self.was_dry_run else ""
        return (
            f"{prefix}{self.total_evaluated} evaluated: {self.cleaned_count} cleaned, "
            f"{self.skipped_count} skipped, {self.failed_count} failed"
        )
