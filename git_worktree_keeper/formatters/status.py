"""Status, remote state and cleanup action formatting utilities."""

from git_worktree_keeper.constants import ACTION_COLORS, SEVERITY_COLORS, VIOLATION_ICONS
from git_worktree_keeper.models.cleanup import CleanupAction, SafetyViolation
from git_worktree_keeper.models.status import RemoteState, StatusSeverity, WorktreeStatus


def format_severity(severity: StatusSeverity) -> str:
    """
    Format a severity tier as icon and rich-styled label.

    Args:
        severity: Severity tier

    Returns:
        Rich markup string
    """
    color = SEVERITY_COLORS.get(severity.value, "white")
    label = severity.value.replace("_", " ")
    return f"{severity.icon} [{color}]{label}[/{color}]"


def format_remote_state(status: WorktreeStatus) -> str:
    """
    Format the remote tracking state with its counts.

    Args:
        status: Worktree status

    Returns:
        Display text such as "↑2", "↓3", "↑1 ↓4" or "no remote"
    """
    state = status.remote_state
    if state == RemoteState.NO_REMOTE:
        return "no remote"
    if state == RemoteState.REMOTE_DELETED:
        return "remote deleted"
    if state == RemoteState.UP_TO_DATE:
        return "✓"
    parts = []
    if status.ahead_count:
        parts.append(f"↑{status.ahead_count}")
    if status.behind_count:
        parts.append(f"↓{status.behind_count}")
    return " ".join(parts)


def format_action(action: CleanupAction) -> str:
    """Rich-styled cleanup action, colored by its terminal outcome."""
    color = ACTION_COLORS.get(action.outcome.value, "white")
    return f"[{color}]{action.value.replace('_', ' ')}[/{color}]"


def format_violation(violation: SafetyViolation) -> str:
    icon = VIOLATION_ICONS.get(violation.severity.value, "")
    return f"{icon} {violation.description}"
