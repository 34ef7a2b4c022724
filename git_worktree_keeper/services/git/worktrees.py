"""Worktree operations service for git-worktree-keeper."""

import os
import time
from pathlib import Path
from typing import Optional, Dict, Any, Union, TYPE_CHECKING

import git

from git_worktree_keeper.constants import IGNORE_FILE_MARKER, IGNORE_FILE_NAME
from git_worktree_keeper.exceptions import (
    BranchExistsError,
    GitOperationError,
    NotAWorktreeError,
    WorktreeStateError,
)
from git_worktree_keeper.logging_config import get_logger
from git_worktree_keeper.models.worktree import WorktreeRecord
from git_worktree_keeper.services.git.validation import (
    resolve_base_dir,
    resolve_worktree_path,
    sanitize_branch_name,
    validate_branch_name,
)

if TYPE_CHECKING:
    from git_worktree_keeper.config import WorktreeConfig

logger = get_logger(__name__)


def worktree_marker(path: Path) -> Path:
    """File whose timestamp dates the worktree at ``path``.

    A linked worktree's ``.git`` file points at its admin directory, where
    ``git worktree add`` writes ``commondir`` once and never touches it again.
    The main working tree, or anything without that file, is dated by the
    directory itself.
    """
    try:
        content = (path / ".git").read_text()
    except OSError:
        return path
    if not content.startswith("gitdir:"):
        return path
    admin = Path(content[len("gitdir:"):].strip())
    if not admin.is_absolute():
        admin = path / admin
    marker = admin / "commondir"
    return marker if marker.exists() else path


def directory_age(path: Path, now: Optional[float] = None) -> float:
    """Seconds since the worktree at ``path`` was created, or zero if it cannot be stat'ed.

    Uses the birth time where the platform records one and falls back to the
    modification time of the worktree marker. When only the directory itself
    is available its mtime moves whenever an entry in it is added or removed,
    so the age can read younger than the worktree is.
    """
    try:
        stat = os.stat(worktree_marker(path))
    except OSError:
        return 0.0
    created = getattr(stat, "st_birthtime", None) or stat.st_mtime
    now = time.time() if now is None else now
    return max(0.0, now - created)


def parse_worktree_porcelain(output: str, now: Optional[float] = None) -> list[WorktreeRecord]:
    """Parse ``git worktree list --porcelain`` output into records.

    Each block starts with a ``worktree <path>`` header; the first block is
    the main working tree.
    """
    records = []
    current: Dict[str, Any] = {}

    def flush():
        if not current.get("path"):
            return
        path = Path(current["path"])
        records.append(
            WorktreeRecord(
                path=path,
                branch=current.get("branch", ""),
                head=current.get("HEAD", ""),
                is_detached=current.get("detached", False),
                age=directory_age(path, now),
                is_main=not records,
                is_bare=current.get("bare", False),
                is_locked=current.get("locked", False),
                is_prunable=current.get("prunable", False),
                is_orphaned=not path.exists(),
            )
        )

    for line in output.splitlines():
        line = line.rstrip()
        if line.startswith("worktree "):
            flush()
            current = {"path": line[len("worktree "):]}
        elif not line:
            continue
        elif line.startswith("HEAD "):
            current["HEAD"] = line[len("HEAD "):]
        elif line.startswith("branch "):
            ref = line[len("branch "):]
            current["branch"] = ref[len("refs/heads/"):] if ref.startswith("refs/heads/") else ref
        elif line == "detached":
            current["detached"] = True
            current["branch"] = ""
        elif line == "bare":
            current["bare"] = True
        elif line == "locked" or line.startswith("locked "):
            current["locked"] = True
        elif line == "prunable" or line.startswith("prunable "):
            current["prunable"] = True
    flush()

    return records


class WorktreeService:
    """Service for creating, listing and removing git worktrees."""

    def __init__(self, repo_path: Union[str, Path], config: "WorktreeConfig"):
        """Initialize the worktree service.

        Args:
            repo_path: Path to the root of the git repository
            config: Worktree configuration
        """
        self.repo_path = Path(repo_path)
        self.config = config
        self.base_dir = resolve_base_dir(config, self.repo_path)

    def _get_repo(self) -> git.Repo:
        """Get a fresh git.Repo instance; one per call keeps threads independent."""
        return git.Repo(self.repo_path)

    def get_repo_root(self) -> Path:
        """Top-level directory of the repository's working tree."""
        try:
            return Path(self._get_repo().git.rev_parse("--show-toplevel"))
        except git.exc.GitCommandError as e:
            raise GitOperationError.from_command_error("rev-parse", e, str(self.repo_path)) from e

    def create_worktree(
        self,
        task_id: str,
        base_branch: Optional[str] = None,
        force: bool = False,
        custom_path: Optional[Union[str, Path]] = None,
    ) -> WorktreeRecord:
        """Create a worktree on a new managed branch for ``task_id``.

        Args:
            task_id: Free-form task identifier, sanitized into the branch name
            base_branch: Start point of the new branch (defaults to HEAD)
            force: Recreate the branch (and its worktree) if it already exists
            custom_path: Use this directory instead of the generated one

        Returns:
            The record of the new worktree

        Raises:
            InvalidIdentifierError, InvalidBranchNameError: Bad task id
            BranchExistsError: Branch exists and force is not set
            GitOperationError: git refused to create the worktree
        """
        sanitized = sanitize_branch_name(task_id)
        branch = f"{self.config.prefix}{sanitized}"
        validate_branch_name(branch)
        if base_branch:
            validate_branch_name(base_branch)

        if custom_path is not None:
            path = Path(custom_path).expanduser()
            if not path.is_absolute():
                path = self.repo_path / path
        else:
            path = resolve_worktree_path(self.base_dir, sanitized)

        self.ensure_base_directory()
        if self.config.auto_gitignore:
            self.update_ignore_file()

        if self.branch_exists(branch):
            if not force:
                raise BranchExistsError(branch)
            existing = self.find_worktree(branch)
            if existing is not None:
                logger.warning(f"Removing existing worktree at: {existing.path}")
                self._run("worktree remove", branch, "worktree", "remove", "--force", str(existing.path))
            self.delete_branch(branch)

        start_point = base_branch or "HEAD"
        self._run("worktree add", branch, "worktree", "add", "-b", branch, str(path), start_point)
        logger.info(f"Created worktree for {branch} at {path}")

        record = self.find_worktree(str(path))
        if record is not None:
            return record

        head = self._get_repo().git.rev_parse(branch)
        return WorktreeRecord(path=path, branch=branch, head=head, age=directory_age(path))

    def remove_worktree(self, target: str, force: bool = False, delete_branch: bool = False) -> WorktreeRecord:
        """Remove the worktree identified by a path or branch name.

        Returns:
            The record of the removed worktree

        Raises:
            NotAWorktreeError: ``target`` matches no worktree
            WorktreeStateError: ``target`` is the main working tree
            GitOperationError: git refused the removal
        """
        record = self.find_worktree(target)
        if record is None:
            raise NotAWorktreeError(target)
        if record.is_main or record.is_bare:
            raise WorktreeStateError("remove", target, "Cannot remove the main working tree")

        args = ["worktree", "remove"]
        if force:
            args.append("--force")
        args.append(str(record.path))
        self._run("worktree remove", str(record.path), *args)
        logger.info(f"Removed worktree at {record.path}")

        if delete_branch and record.branch:
            self.delete_branch(record.branch)

        return record

    def list_worktrees(self) -> list[WorktreeRecord]:
        """List every worktree of the repository, main working tree first."""
        output = self._run("worktree list", None, "worktree", "list", "--porcelain")
        records = parse_worktree_porcelain(output)
        logger.debug(f"Found {len(records)} worktrees")
        for record in records:
            logger.debug(f"  {record}")
        return records

    def find_worktree(self, branch_or_path: Union[str, Path]) -> Optional[WorktreeRecord]:
        """Find a worktree by branch name, falling back to its directory."""
        records = self.list_worktrees()
        target = str(branch_or_path)
        for record in records:
            if record.branch and record.branch == target:
                return record

        candidate = Path(target).expanduser()
        if not candidate.is_absolute():
            candidate = self.repo_path / candidate
        candidate = _normalize(candidate)
        for record in records:
            if _normalize(record.path) == candidate:
                return record
        return None

    def branch_exists(self, name: str) -> bool:
        repo = self._get_repo()
        status, _, _ = repo.git.show_ref(
            "--verify",
            "--quiet",
            f"refs/heads/{name}",
            with_extended_output=True,
            with_exceptions=False,
        )
        return status == 0

    def delete_branch(self, name: str) -> None:
        """Force-delete a local branch."""
        validate_branch_name(name)
        self._run("branch delete", name, "branch", "-D", name)
        logger.info(f"Deleted branch {name}")

    def prune_worktrees(self) -> None:
        """Drop metadata of worktrees whose directories no longer exist."""
        self._run("worktree prune", None, "worktree", "prune")
        logger.info("Pruned orphaned worktree metadata")

    def ensure_base_directory(self) -> Path:
        """Create the base directory if needed."""
        self.base_dir.mkdir(parents=True, exist_ok=True)
        return self.base_dir

    def update_ignore_file(self) -> bool:
        """Add the base directory to the repository's ignore file once.

        Returns:
            True if the ignore file was changed
        """
        try:
            relative = _normalize(self.base_dir).relative_to(_normalize(self.repo_path))
        except ValueError:
            logger.debug(f"Base directory {self.base_dir} is outside the repository")
            return False

        pattern = f"{relative.as_posix()}/"
        ignore_path = self.repo_path / IGNORE_FILE_NAME
        content = ignore_path.read_text() if ignore_path.exists() else ""

        if any(line.strip() == pattern for line in content.splitlines()):
            return False

        if content and not content.endswith("\n"):
            content += "\n"
        content += f"{IGNORE_FILE_MARKER}\n{pattern}\n"
        ignore_path.write_text(content)

        logger.debug(f"Updated {IGNORE_FILE_NAME} with pattern: {pattern}")
        return True

    def _run(self, operation: str, target: Optional[str], *args: str) -> str:
        """Run a git command in the repository root, wrapping failures."""
        repo = self._get_repo()
        logger.debug(f"git {' '.join(args)}")
        try:
            return repo.git.execute(["git", *args])
        except git.exc.GitCommandError as e:
            error = GitOperationError.from_command_error(operation, e, target)
            logger.error(str(error))
            raise error from e


def _normalize(path: Path) -> Path:
    try:
        return path.resolve()
    except OSError:
        return path.absolute()
