"""Worktree data models."""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class WorktreeRecord:
    """Information about a git worktree, as reported by the worktree listing."""

    path: Path
    branch: str
    head: str
    is_detached: bool = False
    age: float = 0.0  # Seconds since the directory was created
    is_main: bool = False  # Is this the main working tree?
    is_bare: bool = False
    is_locked: bool = False
    is_prunable: bool = False
    is_orphaned: bool = False  # Directory missing?

    @property
    def short_head(self) -> str:
        return self.head[:7]

    @property
    def age_hours(self) -> float:
        return self.age / 3600

    def __str__(self) -> str:
        """String representation of worktree."""
        status = "orphaned" if self.is_orphaned else "active"
        main_marker = " (main)" if self.is_main else ""
        branch = self.branch or "(detached)"
        return f"{branch} @ {self.path}{main_marker} [{status}]"
