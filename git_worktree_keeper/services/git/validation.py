"""Branch name and worktree path validation.

Everything here runs before any git invocation, so a rejected name never
reaches a subprocess.
"""

import re
import time
from pathlib import Path
from typing import Optional, TYPE_CHECKING

from git_worktree_keeper.constants import (
    FORBIDDEN_BRANCH_CHARS,
    GLOBAL_WORKTREE_ROOT,
    MAX_BRANCH_NAME_LENGTH,
)
from git_worktree_keeper.exceptions import InvalidBranchNameError, InvalidIdentifierError

if TYPE_CHECKING:
    from git_worktree_keeper.config import WorktreeConfig

_INVALID_CHARS = re.compile(r"[^a-zA-Z0-9\-_/]")
_REPEATED_HYPHENS = re.compile(r"-+")


def sanitize_branch_name(task_id: str) -> str:
    """Turn a free-form task identifier into a branch-safe name.

    Characters outside ``[A-Za-z0-9-_/]`` become hyphens, runs of hyphens
    collapse, and leading or trailing hyphens and slashes are trimmed.

    Raises:
        InvalidIdentifierError: If the identifier is empty before or after sanitizing
    """
    if not task_id:
        raise InvalidIdentifierError(task_id, "cannot be empty")

    sanitized = _INVALID_CHARS.sub("-", task_id)
    sanitized = _REPEATED_HYPHENS.sub("-", sanitized)
    sanitized = sanitized.strip("-/")

    if not sanitized:
        raise InvalidIdentifierError(task_id)
    return sanitized


def validate_branch_name(name: str) -> None:
    """Reject branch names that are unsafe to pass to git.

    Raises:
        InvalidBranchNameError: Describing the first rule the name breaks
    """
    if not name:
        raise InvalidBranchNameError(name, "Branch name cannot be empty")

    if any(c in FORBIDDEN_BRANCH_CHARS for c in name):
        raise InvalidBranchNameError(name, "Branch name contains invalid characters")

    if name.startswith(".") or name.endswith("."):
        raise InvalidBranchNameError(name, "Branch name cannot start or end with a dot")

    if name.startswith("/") or name.endswith("/"):
        raise InvalidBranchNameError(name, "Branch name cannot start or end with a slash")

    if ".." in name:
        raise InvalidBranchNameError(name, "Branch name cannot contain consecutive dots")

    if "@{" in name:
        raise InvalidBranchNameError(name, "Branch name cannot contain '@{' sequence")

    if len(name) > MAX_BRANCH_NAME_LENGTH:
        raise InvalidBranchNameError(
            name, f"Branch name too long (max {MAX_BRANCH_NAME_LENGTH} characters)"
        )


def resolve_worktree_path(base_dir: Path, task_id: str, timestamp: Optional[int] = None) -> Path:
    """Build the directory for a new worktree.

    Slash-separated task ids become nested directories, and the last segment
    gets a ``__<hex unix time>`` suffix so repeated ids never collide.
    """
    if timestamp is None:
        timestamp = int(time.time())

    segments = [s for s in task_id.split("/") if s]
    if not segments:
        segments = ["worktree"]

    path = Path(base_dir).joinpath(*segments[:-1])
    return path / f"{segments[-1]}__{timestamp:x}"


def resolve_base_dir(config: "WorktreeConfig", repo_root: Path) -> Path:
    """Resolve the configured base directory to an absolute path."""
    base = Path(config.base_dir).expanduser()
    if base.is_absolute():
        return base
    if config.mode == "global":
        return Path.home().joinpath(*GLOBAL_WORKTREE_ROOT, Path(repo_root).name)
    return Path(repo_root) / base
