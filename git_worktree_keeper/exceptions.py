"""Custom exceptions for git-worktree-keeper"""

from typing import Optional

import git


class WorktreeKeeperError(Exception):
    """Base exception for all git-worktree-keeper errors."""
    pass


class InputError(WorktreeKeeperError):
    """Invalid or unsafe identifier, rejected before any git call."""
    pass


class InvalidIdentifierError(InputError):
    """Exception raised when a task identifier cannot become a branch name."""

    def __init__(self, task_id: str, message: Optional[str] = None):
        self.task_id = task_id
        self.message = message or "cannot be sanitized to a valid branch name"
        super().__init__(f"Task ID '{task_id}' {self.message}")


class InvalidBranchNameError(InputError):
    """Exception raised when a branch name fails validation."""

    def __init__(self, branch: str, message: str):
        self.branch = branch
        self.message = message
        super().__init__(f"Invalid branch name {branch!r}: {message}")


class WorktreeStateError(WorktreeKeeperError):
    """Repository state prevents the operation; a forced retry may succeed."""

    def __init__(self, operation: str, target: Optional[str] = None, message: Optional[str] = None):
        self.operation = operation
        self.target = target
        self.message = message

        error_msg = f"Worktree operation '{operation}' refused"
        if target:
            error_msg += f" for '{target}'"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class BranchExistsError(WorktreeStateError):
    """Exception raised when creating a worktree for a branch that already exists."""

    def __init__(self, branch: str):
        super().__init__("create", branch, "Branch already exists. Use force to recreate.")


class NotAWorktreeError(WorktreeStateError):
    """Exception raised when a target does not resolve to a known worktree."""

    def __init__(self, target: str):
        super().__init__("resolve", target, "Not a worktree of this repository")


class MergeTargetMissingError(WorktreeStateError):
    """Exception raised when the merge-forward target branch cannot be found."""

    def __init__(self, branch: str, message: Optional[str] = None):
        super().__init__("merge_to_feature", branch, message or "Target branch does not exist")


class GitOperationError(WorktreeKeeperError):
    """Exception raised when a git invocation exits non-zero."""

    def __init__(
        self,
        operation: str,
        target: Optional[str] = None,
        message: Optional[str] = None,
        status: Optional[int] = None,
    ):
        self.operation = operation
        self.target = target
        self.message = message
        self.status = status

        error_msg = f"Git operation '{operation}' failed"
        if target:
            error_msg += f" for '{target}'"
        if status is not None:
            error_msg += f" (exit {status})"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)

    @classmethod
    def from_command_error(
        cls, operation: str, error: git.exc.GitCommandError, target: Optional[str] = None
    ) -> "GitOperationError":
        """Wrap a GitPython command error, keeping its diagnostic text."""
        stderr = (error.stderr if getattr(error, "stderr", None) else str(error)).strip()
        # GitPython prefixes stderr with "stderr: '...'"
        if stderr.startswith("stderr:"):
            stderr = stderr[len("stderr:"):].strip().strip("'").strip()
        status = error.status if isinstance(getattr(error, "status", None), int) else None
        return cls(operation, target, stderr or None, status)


class DetectionError(WorktreeKeeperError):
    """Exception raised when a single merge detection strategy cannot run."""

    def __init__(self, method: str, message: str):
        self.method = method
        self.message = message
        super().__init__(f"Merge detection '{method}' failed: {message}")


class MergeConflictError(WorktreeKeeperError):
    """Exception raised when merging a worktree branch forward hits conflicts."""

    def __init__(self, branch: str, target: str, conflicted_files: list[str]):
        self.branch = branch
        self.target = target
        self.conflicted_files = conflicted_files
        super().__init__(
            f"Merging '{branch}' into '{target}' produced "
            f"{len(conflicted_files)} conflicted files"
        )


class GitHubAPIError(WorktreeKeeperError):
    """Exception raised for errors in GitHub API operations."""

    def __init__(self, operation: str, message: Optional[str] = None):
        self.operation = operation
        self.message = message

        error_msg = f"GitHub API operation '{operation}' failed"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)
