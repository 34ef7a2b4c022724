"""Per-worktree status tracking for git-worktree-keeper."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union, TYPE_CHECKING

import git

from git_worktree_keeper.constants import (
    BEHIND_WARNING_THRESHOLD,
    DIVERGED_AHEAD_WARNING_THRESHOLD,
    DIVERGED_BEHIND_WARNING_THRESHOLD,
    MAX_UNPUSHED_COMMITS,
)
from git_worktree_keeper.exceptions import GitOperationError
from git_worktree_keeper.logging_config import get_logger
from git_worktree_keeper.models.status import (
    ChangedFile,
    CommitInfo,
    RemoteState,
    StatusSeverity,
    WorktreeStatus,
)

if TYPE_CHECKING:
    from git_worktree_keeper.config import WorktreeConfig
    from git_worktree_keeper.services.git.merge_detector import MergeDetector

logger = get_logger(__name__)

_CHANGE_KINDS = {
    "M": "modified",
    "A": "added",
    "D": "deleted",
    "R": "renamed",
    "C": "copied",
    "T": "type changed",
}

_FIELD_SEP = "\x1f"


def describe_change(code: str) -> str:
    """Human label for a two-character porcelain status code."""
    index, worktree = code[0], code[1]
    if "U" in code or code in ("AA", "DD"):
        return "unmerged"

    if index != " " and worktree != " ":
        if index == worktree:
            return f"{_CHANGE_KINDS.get(index, 'changed')} (staged and unstaged)"
        return f"{_CHANGE_KINDS.get(index, 'changed')} (staged), {_CHANGE_KINDS.get(worktree, 'changed')} (unstaged)"
    if index != " ":
        return f"{_CHANGE_KINDS.get(index, 'changed')} (staged)"
    if worktree != " ":
        return f"{_CHANGE_KINDS.get(worktree, 'changed')} (unstaged)"
    return "unknown"


def parse_porcelain_status(output: str) -> tuple[list[ChangedFile], list[str]]:
    """Parse ``git status --porcelain=v1 -z`` output.

    Returns:
        Tuple of (changed tracked files, untracked paths)
    """
    changed: list[ChangedFile] = []
    untracked: list[str] = []

    entries = output.split("\0")
    i = 0
    while i < len(entries):
        entry = entries[i]
        i += 1
        if len(entry) < 4:
            continue

        code, path = entry[:2], entry[3:]
        if code == "??":
            untracked.append(path)
            continue
        if code == "!!":
            continue

        original = None
        if "R" in code or "C" in code:
            # With -z the source path follows as its own entry
            if i < len(entries):
                original = entries[i]
                i += 1

        changed.append(ChangedFile(path=path, code=code, label=describe_change(code), original_path=original))

    return changed, untracked


def classify_severity(status: WorktreeStatus) -> StatusSeverity:
    """Assign the risk tier of a worktree status; the first matching rule wins."""
    if status.is_confirmed_merged:
        return StatusSeverity.CLEAN if status.is_clean else StatusSeverity.LIGHT_WARNING

    if status.remote_state == RemoteState.REMOTE_DELETED:
        return StatusSeverity.WARNING
    if status.behind_count > BEHIND_WARNING_THRESHOLD:
        return StatusSeverity.WARNING
    if status.remote_state == RemoteState.DIVERGED and (
        status.behind_count > DIVERGED_BEHIND_WARNING_THRESHOLD
        or status.ahead_count > DIVERGED_AHEAD_WARNING_THRESHOLD
    ):
        return StatusSeverity.WARNING

    if (
        status.changed_files
        or status.untracked_files
        or status.unpushed_commits
        or status.ahead_count > 0
        or status.behind_count > 0
        or status.remote_state == RemoteState.NO_REMOTE
    ):
        return StatusSeverity.LIGHT_WARNING

    return StatusSeverity.CLEAN


class StatusTracker:
    """Computes the status of individual worktrees."""

    def __init__(self, config: "WorktreeConfig", merge_detector: Optional["MergeDetector"] = None):
        self.config = config
        self.merge_detector = merge_detector

    def _get_repo(self, path: Union[str, Path]) -> git.Repo:
        """Open the worktree at ``path`` as its own repository instance."""
        try:
            return git.Repo(path)
        except (git.exc.NoSuchPathError, git.exc.InvalidGitRepositoryError) as e:
            raise GitOperationError("status", str(path), f"Not a git worktree: {e}") from e

    def compute_status(self, path: Union[str, Path], branch: Optional[str] = None) -> WorktreeStatus:
        """Compute uncommitted, remote and merge state of the worktree at ``path``.

        Args:
            path: Worktree directory
            branch: Branch checked out there; looked up when not given

        Raises:
            GitOperationError: If git status cannot be read
        """
        repo = self._get_repo(path)
        status = WorktreeStatus()

        try:
            output = repo.git.status("--porcelain=v1", "-z", strip_newline_in_stdout=False)
        except git.exc.GitCommandError as e:
            raise GitOperationError.from_command_error("status", e, str(path)) from e
        status.changed_files, status.untracked_files = parse_porcelain_status(output)

        if branch is None:
            branch = self.current_branch(path)

        if branch:
            self._fill_remote_state(repo, branch, status)
            if status.ahead_count > 0:
                status.unpushed_commits = self._unpushed_commits(repo)

        status.is_clean = not status.has_uncommitted_changes and (
            status.ahead_count == 0 or status.remote_state == RemoteState.NO_REMOTE
        )

        if branch and self.merge_detector is not None:
            try:
                status.merge_info = self.merge_detector.detect_merge(path, branch)
            except Exception as e:
                logger.warning(f"Merge detection failed for {branch}: {e}")
                status.merge_info = None

        status.severity = classify_severity(status)
        logger.debug(f"Status of {path}: {status.severity.value} ({status.description()})")
        return status

    def _fill_remote_state(self, repo: git.Repo, branch: str, status: WorktreeStatus) -> None:
        tracking = repo.git.for_each_ref(
            f"--format=%(upstream:short){_FIELD_SEP}%(upstream:track)",
            f"refs/heads/{branch}",
        ).strip()
        upstream, _, track = tracking.partition(_FIELD_SEP)
        if not upstream:
            status.remote_state = RemoteState.NO_REMOTE
            return

        status.upstream = upstream
        if "gone" in track:
            status.remote_state = RemoteState.REMOTE_DELETED
            return

        code, counts, _ = repo.git.rev_list(
            "--left-right",
            "--count",
            f"{upstream}...{branch}",
            with_extended_output=True,
            with_exceptions=False,
        )
        if code != 0:
            logger.debug(f"Upstream {upstream} of {branch} cannot be resolved")
            status.remote_state = RemoteState.REMOTE_DELETED
            return

        behind, ahead = (int(n) for n in counts.split())
        status.ahead_count = ahead
        status.behind_count = behind
        status.remote_state = RemoteState.from_counts(ahead, behind)

    def _unpushed_commits(self, repo: git.Repo) -> list[CommitInfo]:
        try:
            output = repo.git.log(
                f"--max-count={MAX_UNPUSHED_COMMITS}",
                f"--format=%H{_FIELD_SEP}%s{_FIELD_SEP}%an{_FIELD_SEP}%ct",
                "@{u}..HEAD",
            )
        except git.exc.GitCommandError as e:
            logger.debug(f"Could not list unpushed commits: {e}")
            return []

        commits = []
        for line in output.splitlines():
            parts = line.split(_FIELD_SEP)
            if len(parts) < 4:
                continue
            sha, message, author, timestamp = parts[:4]
            commits.append(
                CommitInfo(
                    id=sha[:7],
                    message=message,
                    author=author,
                    timestamp=datetime.fromtimestamp(int(timestamp or 0), tz=timezone.utc),
                )
            )
        return commits

    def has_uncommitted_changes(self, path: Union[str, Path]) -> bool:
        """True if the worktree has staged, unstaged or untracked changes."""
        repo = self._get_repo(path)
        return repo.is_dirty(untracked_files=True)

    def current_branch(self, path: Union[str, Path]) -> Optional[str]:
        """Branch checked out in the worktree, or None when HEAD is detached."""
        repo = self._get_repo(path)
        if repo.head.is_detached:
            return None
        return repo.active_branch.name

    def check_activity(self, path: Union[str, Path], days: int) -> bool:
        """True if HEAD has commits from the last ``days`` days."""
        repo = self._get_repo(path)
        code, output, _ = repo.git.log(
            "--oneline",
            f"--since={days} days ago",
            "HEAD",
            with_extended_output=True,
            with_exceptions=False,
        )
        return code == 0 and bool(output.strip())
