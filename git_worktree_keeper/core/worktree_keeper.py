"""Core functionality for git-worktree-keeper"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, List, Optional, Union

import git

from git_worktree_keeper.config import WorktreeConfig
from git_worktree_keeper.exceptions import GitOperationError, NotAWorktreeError
from git_worktree_keeper.logging_config import get_logger
from git_worktree_keeper.models.cleanup import CleanupOptions, CleanupReport
from git_worktree_keeper.models.merge import MergeDetectionResult
from git_worktree_keeper.models.status import WorktreeStatus
from git_worktree_keeper.models.worktree import WorktreeRecord
from git_worktree_keeper.services.cache_service import StatusCache
from git_worktree_keeper.services.cleanup_service import CleanupService, ConfirmCallback
from git_worktree_keeper.services.display_service import DisplayService
from git_worktree_keeper.services.git import GitHubService, MergeDetector, StatusTracker, WorktreeService
from git_worktree_keeper.utils.threading import get_optimal_worker_count

logger = get_logger(__name__)


class WorktreeKeeper:
    """Main class for managing the worktrees of one repository."""

    def __init__(
        self,
        repo_path: Union[str, Path],
        config: Optional[Union[WorktreeConfig, dict]] = None,
        confirm: Optional[ConfirmCallback] = None,
    ):
        """Initialize WorktreeKeeper.

        Args:
            repo_path: Path to the git repository (any directory inside it)
            config: Configuration dict or WorktreeConfig object
            confirm: Cleanup confirmation callback; defaults to a terminal prompt
        """
        if config is None:
            self.config = WorktreeConfig()
        elif isinstance(config, dict):
            self.config = WorktreeConfig.from_dict(config)
        else:
            self.config = config

        try:
            repo = git.Repo(repo_path, search_parent_directories=True)
        except (git.exc.NoSuchPathError, git.exc.InvalidGitRepositoryError) as e:
            raise GitOperationError("open", str(repo_path), "Not a git repository") from e
        if repo.working_tree_dir is None:
            raise GitOperationError("open", str(repo_path), "Bare repositories have no worktrees")
        self.repo_path = Path(repo.working_tree_dir)

        self.worktree_service = WorktreeService(self.repo_path, self.config)
        self.github_service = GitHubService(self.repo_path, self.config)
        self.merge_detector = MergeDetector(self.config, self.github_service)
        self.status_tracker = StatusTracker(self.config, self.merge_detector)
        self.cleanup_service = CleanupService(
            self.config, self.worktree_service, self.status_tracker, confirm=confirm
        )
        self.cache = StatusCache(self.config.cache_ttl_seconds)
        self.display_service = DisplayService(self.config)

        logger.debug(f"WorktreeKeeper initialized for {self.repo_path}")

    def create(
        self,
        task_id: str,
        base_branch: Optional[str] = None,
        force: bool = False,
        custom_path: Optional[Union[str, Path]] = None,
    ) -> WorktreeRecord:
        """Create a worktree on branch ``{prefix}{sanitized task_id}``."""
        return self.worktree_service.create_worktree(task_id, base_branch, force, custom_path)

    def remove(self, target: str, force: bool = False, delete_branch: bool = False) -> None:
        """Remove a worktree identified by branch name or path."""
        record = self.worktree_service.remove_worktree(target, force=force, delete_branch=delete_branch)
        self.cache.invalidate(record.path)

    def list(self) -> List[WorktreeRecord]:
        return self.worktree_service.list_worktrees()

    def status(self, path: Union[str, Path]) -> WorktreeStatus:
        """Compute the status of one worktree, bypassing the cache."""
        status = self.status_tracker.compute_status(path)
        self.cache.put(path, status)
        return status

    def detect_merge(self, path: Union[str, Path], branch: str) -> MergeDetectionResult:
        return self.merge_detector.detect_merge(path, branch)

    def cleanup(self, options: Optional[CleanupOptions] = None) -> CleanupReport:
        """Clean up worktrees according to ``options`` and report every decision."""
        report = self.cleanup_service.cleanup(options or CleanupOptions())
        if not report.was_dry_run:
            for result in report.results:
                self.cache.invalidate(result.path)
        return report

    def statuses(self) -> Dict[Path, WorktreeStatus]:
        """Status of every existing worktree, computed in parallel and cached.

        Worktrees whose status cannot be computed are left out and logged.
        """
        records = [r for r in self.list() if not r.is_orphaned and not r.is_bare]
        results: Dict[Path, WorktreeStatus] = {}
        pending = []
        for record in records:
            cached = self.cache.get(record.path)
            if cached is not None:
                results[record.path] = cached
            else:
                pending.append(record)

        if not pending:
            return results

        if self.config.sequential:
            for record in pending:
                status = self._status_or_none(record)
                if status is not None:
                    results[record.path] = status
            return results

        max_workers = min(get_optimal_worker_count(self.config.workers), len(pending))
        logger.debug(f"Computing status of {len(pending)} worktrees using {max_workers} workers")
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_record = {executor.submit(self._status_or_none, r): r for r in pending}
            for future in as_completed(future_to_record):
                status = future.result()
                if status is not None:
                    results[future_to_record[future].path] = status
        return results

    def _status_or_none(self, record: WorktreeRecord) -> Optional[WorktreeStatus]:
        try:
            status = self.status_tracker.compute_status(record.path, record.branch or None)
        except Exception as e:
            logger.warning(f"Could not compute status of {record.path}: {e}")
            return None
        self.cache.put(record.path, status)
        return status

    def display_worktrees(self, with_status: bool = True) -> None:
        records = self.list()
        self.display_service.display_worktree_table(records, self.statuses() if with_status else None)

    def display_status(self, target: str) -> None:
        record = self.worktree_service.find_worktree(target)
        if record is None:
            raise NotAWorktreeError(target)
        self.display_service.display_status(record, self.status(record.path))

    def display_cleanup_report(self, report: CleanupReport) -> None:
        self.display_service.display_cleanup_report(report)

    def close(self) -> None:
        """Release external connections."""
        self.github_service.close()
        self.cache.clear()
