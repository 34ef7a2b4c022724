"""Formatting utilities for git-worktree-keeper.

This package provides formatting functions for displaying worktree information:
- duration: Age and duration formatting
- status: Severity, remote state and cleanup formatting
"""

# Duration formatters
from .duration import format_duration, format_age

# Status formatters
from .status import (
    format_severity,
    format_remote_state,
    format_action,
    format_violation,
)

__all__ = [
    # Duration
    "format_duration",
    "format_age",
    # Status
    "format_severity",
    "format_remote_state",
    "format_action",
    "format_violation",
]
