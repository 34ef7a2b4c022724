"""Cleanup orchestration for git-worktree-keeper.

Evaluation (status and merge detection) of different worktrees runs on a
bounded thread pool; decisions and cleanup actions are applied strictly one
worktree at a time in listing order.
"""

import os
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Union, TYPE_CHECKING

import git

from git_worktree_keeper.constants import STASH_NAME_PREFIX
from git_worktree_keeper.exceptions import (
    GitOperationError,
    MergeConflictError,
    MergeTargetMissingError,
    WorktreeKeeperError,
)
from git_worktree_keeper.formatters import format_duration
from git_worktree_keeper.logging_config import get_logger
from git_worktree_keeper.models.cleanup import (
    CleanupAction,
    CleanupOptions,
    CleanupReport,
    CleanupStrategy,
    SafetyViolation,
    ViolationKind,
    ViolationSeverity,
    WorktreeCleanupResult,
)
from git_worktree_keeper.models.status import RemoteState, WorktreeStatus
from git_worktree_keeper.models.worktree import WorktreeRecord
from git_worktree_keeper.services.display_service import confirm_cleanup
from git_worktree_keeper.utils.threading import get_optimal_worker_count

if TYPE_CHECKING:
    from git_worktree_keeper.config import WorktreeConfig
    from git_worktree_keeper.services.git.status import StatusTracker
    from git_worktree_keeper.services.git.worktrees import WorktreeService

logger = get_logger(__name__)

ConfirmCallback = Callable[[WorktreeRecord, CleanupOptions, list[SafetyViolation]], bool]


class CleanupService:
    """Decides which worktrees can be removed and removes them."""

    def __init__(
        self,
        config: "WorktreeConfig",
        worktree_service: "WorktreeService",
        status_tracker: "StatusTracker",
        confirm: Optional[ConfirmCallback] = None,
    ):
        """Initialize the cleanup service.

        Args:
            config: Worktree configuration
            worktree_service: Used to list and remove worktrees
            status_tracker: Used to evaluate each worktree (with merge detection attached)
            confirm: Asked before each cleanup unless auto-confirmed; defaults to a rich prompt
        """
        self.config = config
        self.worktree_service = worktree_service
        self.status_tracker = status_tracker
        self.confirm = confirm or confirm_cleanup

    def cleanup(self, options: CleanupOptions) -> CleanupReport:
        """Evaluate every worktree and apply ``options.strategy`` where it is safe."""
        logger.info(f"Starting worktree cleanup with strategy: {options.strategy.value}")
        report = CleanupReport(strategy_used=options.strategy, was_dry_run=options.dry_run)

        records = self.worktree_service.list_worktrees()
        candidates = [r for r in records if not self._is_main_checkout(r) and self._matches_filters(r, options)]
        evaluations = self._evaluate_all(candidates)

        for record in records:
            try:
                result = self._process(record, options, evaluations.get(record.path))
            except Exception as e:
                logger.warning(f"Failed to process worktree {record.path}: {e}")
                result = self._result(record, CleanupAction.FAILED, "Processing error", error=str(e))
            logger.info(f"{record.branch or record.path}: {result.action.value} ({result.reason})")
            report.results.append(result)

        logger.info(
            f"Cleanup complete: {report.cleaned_count} cleaned, "
            f"{report.skipped_count} skipped, {report.failed_count} failed"
        )
        return report

    def _evaluate_all(self, records: list[WorktreeRecord]) -> dict:
        """Compute the status of every candidate; a failure is kept as the exception."""
        if not records:
            return {}

        if self.config.sequential or len(records) == 1:
            return {r.path: self._evaluate(r) for r in records}

        workers = min(get_optimal_worker_count(self.config.workers), len(records))
        logger.debug(f"Evaluating {len(records)} worktrees using {workers} workers")
        with ThreadPoolExecutor(max_workers=workers) as executor:
            outcomes = list(executor.map(self._evaluate, records))
        return {r.path: outcome for r, outcome in zip(records, outcomes)}

    def _evaluate(self, record: WorktreeRecord) -> Union[WorktreeStatus, Exception]:
        try:
            return self.status_tracker.compute_status(record.path, record.branch or None)
        except Exception as e:
            logger.debug(f"Could not evaluate {record.path}: {e}")
            return e

    def _process(
        self,
        record: WorktreeRecord,
        options: CleanupOptions,
        evaluation: Optional[Union[WorktreeStatus, Exception]],
    ) -> WorktreeCleanupResult:
        if self._is_main_checkout(record):
            return self._result(record, CleanupAction.SKIPPED, "Main repository worktree")

        if not self._matches_filters(record, options):
            return self._result(record, CleanupAction.SKIPPED, "Does not match cleanup filters")

        if evaluation is None or isinstance(evaluation, Exception):
            return self._result(
                record,
                CleanupAction.FAILED,
                "Failed to evaluate worktree",
                error=str(evaluation) if evaluation else "no status available",
            )
        status = evaluation

        violations = self.check_safety_violations(record, status, options)

        critical = [v for v in violations if v.severity == ViolationSeverity.CRITICAL]
        if critical:
            return self._result(
                record,
                CleanupAction.SKIPPED,
                f"Critical safety violations: {_describe(critical)}",
                violations=violations,
            )

        warnings = [v for v in violations if v.severity == ViolationSeverity.WARNING]
        if warnings and not options.force:
            return self._result(
                record,
                CleanupAction.SKIPPED,
                f"Safety violations (use force to override): {_describe(warnings)}",
                violations=violations,
            )

        if options.dry_run:
            return self._result(
                record, CleanupAction.CLEANED, "Would be cleaned (dry run)", violations=violations
            )

        if self._needs_confirmation(options) and not self.confirm(record, options, violations):
            return self._result(record, CleanupAction.SKIPPED, "User declined cleanup", violations=violations)

        return self._execute(record, status, options, violations)

    def check_safety_violations(
        self, record: WorktreeRecord, status: WorktreeStatus, options: CleanupOptions
    ) -> list[SafetyViolation]:
        """Every reason ``record`` should not be cleaned up under ``options``."""
        violations = []

        min_hours = options.min_age_hours
        if min_hours is None:
            min_hours = self.config.age_threshold_hours
        if min_hours and record.age_hours < min_hours:
            violations.append(
                SafetyViolation(
                    ViolationKind.BRANCH_TOO_NEW,
                    f"Worktree is only {format_duration(record.age)} old (minimum: {min_hours} hours)",
                    ViolationSeverity.WARNING,
                )
            )

        if status.has_uncommitted_changes:
            violations.append(
                SafetyViolation(
                    ViolationKind.UNCOMMITTED_CHANGES,
                    f"{len(status.changed_files)} uncommitted changes, "
                    f"{len(status.untracked_files)} untracked files",
                    ViolationSeverity.WARNING,
                )
            )

        if status.unpushed_commits:
            violations.append(
                SafetyViolation(
                    ViolationKind.UNPUSHED_COMMITS,
                    f"{len(status.unpushed_commits)} unpushed commits",
                    ViolationSeverity.WARNING,
                )
            )

        merge_info = status.merge_info
        if options.merged_only:
            if merge_info is None:
                violations.append(
                    SafetyViolation(
                        ViolationKind.LOW_MERGE_CONFIDENCE,
                        "No merge information available",
                        ViolationSeverity.CRITICAL,
                    )
                )
            elif not merge_info.is_merged:
                violations.append(
                    SafetyViolation(
                        ViolationKind.LOW_MERGE_CONFIDENCE,
                        "Branch does not appear to be merged",
                        ViolationSeverity.CRITICAL,
                    )
                )
            else:
                if merge_info.confidence < options.min_merge_confidence:
                    violations.append(
                        SafetyViolation(
                            ViolationKind.LOW_MERGE_CONFIDENCE,
                            f"Merge confidence too low: {merge_info.confidence:.0%} "
                            f"(minimum: {options.min_merge_confidence:.0%})",
                            ViolationSeverity.WARNING,
                        )
                    )
                if merge_info.soft_signal and not self._needs_confirmation(options):
                    violations.append(
                        SafetyViolation(
                            ViolationKind.LOW_MERGE_CONFIDENCE,
                            "Merge evidence is only commit timing; confirm interactively",
                            ViolationSeverity.CRITICAL,
                        )
                    )

        is_merged = merge_info is not None and merge_info.is_merged
        if self.config.verify_remote and not is_merged:
            if status.remote_state == RemoteState.REMOTE_DELETED:
                violations.append(
                    SafetyViolation(
                        ViolationKind.REMOTE_BRANCH_MISSING,
                        f"Upstream {status.upstream} no longer exists"
                        if status.upstream
                        else "Upstream branch no longer exists",
                        ViolationSeverity.WARNING,
                    )
                )
            elif (
                status.remote_state == RemoteState.NO_REMOTE
                and options.strategy != CleanupStrategy.BACKUP_TO_ORIGIN
            ):
                violations.append(
                    SafetyViolation(
                        ViolationKind.NO_REMOTE_TRACKING,
                        "Branch has no remote tracking branch",
                        ViolationSeverity.WARNING,
                    )
                )

        if record.is_locked:
            violations.append(
                SafetyViolation(
                    ViolationKind.WORKTREE_IN_USE,
                    "Worktree is locked",
                    ViolationSeverity.CRITICAL,
                )
            )
        elif _contains_cwd(record.path):
            violations.append(
                SafetyViolation(
                    ViolationKind.WORKTREE_IN_USE,
                    "Worktree is currently in use (current directory)",
                    ViolationSeverity.CRITICAL,
                )
            )

        return violations

    def _needs_confirmation(self, options: CleanupOptions) -> bool:
        return not options.auto_confirm and self.config.require_confirmation

    def _is_main_checkout(self, record: WorktreeRecord) -> bool:
        if record.is_main or record.is_bare:
            return True
        if _same_path(record.path, self.worktree_service.repo_path):
            return True
        return (record.path / ".git").is_dir()

    @staticmethod
    def _matches_filters(record: WorktreeRecord, options: CleanupOptions) -> bool:
        if options.branch_prefix_filter and not record.branch.startswith(options.branch_prefix_filter):
            return False
        return True

    def _delete_branch(self, options: CleanupOptions) -> bool:
        if options.delete_branch is None:
            return self.config.auto_delete_branch
        return options.delete_branch

    def _execute(
        self,
        record: WorktreeRecord,
        status: WorktreeStatus,
        options: CleanupOptions,
        violations: list[SafetyViolation],
    ) -> WorktreeCleanupResult:
        handlers = {
            CleanupStrategy.DISCARD: self._discard,
            CleanupStrategy.MERGE_TO_FEATURE: self._merge_to_feature,
            CleanupStrategy.BACKUP_TO_ORIGIN: self._backup_to_origin,
            CleanupStrategy.STASH_AND_DISCARD: self._stash_and_discard,
        }
        result = handlers[options.strategy](record, status, options)
        result.violations = violations
        return result

    def _remove(self, record: WorktreeRecord, delete_branch: bool, branch: Optional[str] = None) -> None:
        """Force-remove the worktree by path, then optionally delete its branch."""
        self.worktree_service.remove_worktree(str(record.path), force=True)
        branch = branch if branch is not None else record.branch
        if delete_branch and branch:
            self.worktree_service.delete_branch(branch)

    def _discard(self, record: WorktreeRecord, status: WorktreeStatus, options: CleanupOptions) -> WorktreeCleanupResult:
        try:
            self._remove(record, self._delete_branch(options))
        except (WorktreeKeeperError, git.exc.GitError) as e:
            return self._result(record, CleanupAction.FAILED, "Failed to remove worktree", error=str(e))
        return self._result(record, CleanupAction.CLEANED, "Worktree removed")

    def _merge_to_feature(
        self, record: WorktreeRecord, status: WorktreeStatus, options: CleanupOptions
    ) -> WorktreeCleanupResult:
        try:
            target = self._feature_branch_for(record.branch)
            self._merge_into(record, target)
        except MergeConflictError as e:
            logger.warning(str(e))
            return self._result(
                record,
                CleanupAction.FAILED,
                f"Merge conflicts detected: {len(e.conflicted_files)} conflicted files",
                error=str(e),
            )
        except MergeTargetMissingError as e:
            return self._result(record, CleanupAction.FAILED, e.message or str(e), error=str(e))
        except (WorktreeKeeperError, git.exc.GitError) as e:
            return self._result(record, CleanupAction.FAILED, "Failed to merge to feature branch", error=str(e))

        try:
            # The worktree now has the target checked out, so the branch is free to delete
            self._remove(record, True)
        except (WorktreeKeeperError, git.exc.GitError) as e:
            return self._result(record, CleanupAction.FAILED, f"Merged to '{target}' but failed to clean", error=str(e))
        return self._result(record, CleanupAction.MERGED_TO_FEATURE, f"Merged to '{target}' and cleaned")

    def _feature_branch_for(self, branch: str) -> str:
        prefix = self.config.prefix
        if not branch or not branch.startswith(prefix) or len(branch) == len(prefix):
            raise MergeTargetMissingError(
                branch, f"Branch '{branch}' does not have expected prefix '{prefix}'"
            )
        target = branch[len(prefix):]
        if not self.worktree_service.branch_exists(target):
            raise MergeTargetMissingError(target, f"Target feature branch '{target}' does not exist")
        return target

    def _merge_into(self, record: WorktreeRecord, target: str) -> None:
        """Check out ``target`` inside the worktree and merge the worktree branch into it.

        Raises:
            MergeConflictError: The merge stopped with conflicts; nothing is resolved or aborted
        """
        repo = git.Repo(record.path)
        try:
            repo.git.checkout(target)
        except git.exc.GitCommandError as e:
            raise GitOperationError.from_command_error("checkout", e, target) from e

        code, stdout, stderr = repo.git.merge(
            "--no-edit", record.branch, with_extended_output=True, with_exceptions=False
        )
        if code == 0:
            logger.info(f"Merged {record.branch} into {target}")
            return

        conflicted = [f for f in repo.git.diff("--name-only", "--diff-filter=U").splitlines() if f]
        if conflicted or "CONFLICT" in stdout or "conflict" in stderr:
            raise MergeConflictError(record.branch, target, conflicted)
        raise GitOperationError("merge", record.branch, (stderr or stdout).strip() or None, code)

    def _backup_to_origin(
        self, record: WorktreeRecord, status: WorktreeStatus, options: CleanupOptions
    ) -> WorktreeCleanupResult:
        if not record.branch:
            return self._result(record, CleanupAction.FAILED, "Detached worktree has no branch to back up")

        remote = self.config.remote_name
        try:
            git.Repo(record.path).git.push(remote, record.branch)
        except git.exc.GitCommandError as e:
            error = GitOperationError.from_command_error("push", e, record.branch)
            return self._result(record, CleanupAction.FAILED, f"Failed to backup to {remote}", error=str(error))

        try:
            self._remove(record, False)
        except (WorktreeKeeperError, git.exc.GitError) as e:
            return self._result(
                record, CleanupAction.FAILED, f"Backed up to {remote} but failed to clean", error=str(e)
            )
        return self._result(record, CleanupAction.BACKED_UP_TO_ORIGIN, f"Backed up to {remote} and cleaned")

    def _stash_and_discard(
        self, record: WorktreeRecord, status: WorktreeStatus, options: CleanupOptions
    ) -> WorktreeCleanupResult:
        stash_name = stash_name_for(record.branch or record.path.name)
        stashed = False
        if status.has_uncommitted_changes:
            try:
                git.Repo(record.path).git.stash("push", "--include-untracked", "-m", stash_name)
                stashed = True
                logger.info(f"Stashed changes of {record.path} as '{stash_name}'")
            except git.exc.GitCommandError as e:
                error = GitOperationError.from_command_error("stash", e, str(record.path))
                return self._result(record, CleanupAction.FAILED, "Failed to create stash", error=str(error))

        try:
            self._remove(record, self._delete_branch(options))
        except (WorktreeKeeperError, git.exc.GitError) as e:
            reason = "Stash created but failed to remove worktree" if stashed else "Failed to remove worktree"
            return self._result(record, CleanupAction.FAILED, reason, error=str(e))

        if stashed:
            return self._result(record, CleanupAction.STASH_CREATED, f"Stashed changes as '{stash_name}' and cleaned")
        return self._result(record, CleanupAction.CLEANED, "No changes to stash, worktree cleaned")

    @staticmethod
    def _result(
        record: WorktreeRecord,
        action: CleanupAction,
        reason: str,
        error: Optional[str] = None,
        violations: Optional[list[SafetyViolation]] = None,
    ) -> WorktreeCleanupResult:
        return WorktreeCleanupResult(
            path=record.path,
            branch=record.branch,
            action=action,
            reason=reason,
            error=error,
            violations=list(violations or []),
        )


def stash_name_for(branch: str, now: Optional[datetime] = None) -> str:
    """Stash message embedding the branch and a timestamp."""
    now = now or datetime.now()
    return f"{STASH_NAME_PREFIX}-{branch}-{now.strftime('%Y%m%d-%H%M%S')}"


def _describe(violations: list[SafetyViolation]) -> str:
    return ", ".join(v.description for v in violations)


def _same_path(a: Path, b: Path) -> bool:
    try:
        return Path(a).resolve() == Path(b).resolve()
    except OSError:
        return False


def _contains_cwd(path: Path) -> bool:
    try:
        cwd = Path(os.getcwd()).resolve()
        return cwd == Path(path).resolve() or Path(path).resolve() in cwd.parents
    except OSError:
        return False
