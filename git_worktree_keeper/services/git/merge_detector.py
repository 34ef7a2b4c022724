"""Merge detection service for git-worktree-keeper."""

import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union, TYPE_CHECKING

import git

from git_worktree_keeper.constants import (
    FILE_CONTENT_MATCH_RATIO,
    FILE_CONTENT_NO_CHANGES_CONFIDENCE,
    FILE_CONTENT_SCALE,
    GITHUB_PR_CONFIDENCE,
    SQUASH_LOG_SCAN_LIMIT,
    SQUASH_MESSAGE_CONFIDENCE,
    SQUASH_NO_CHANGES_CONFIDENCE,
    SQUASH_TIMING_CONFIDENCE,
    SQUASH_TIMING_WINDOW_SECONDS,
    STANDARD_MERGED_CONFIDENCE,
    STANDARD_UNMERGED_CONFIDENCE,
)
from git_worktree_keeper.exceptions import DetectionError
from git_worktree_keeper.logging_config import get_logger
from git_worktree_keeper.models.merge import MergeDetectionResult, MethodResult

if TYPE_CHECKING:
    from git_worktree_keeper.config import WorktreeConfig
    from git_worktree_keeper.services.git.github import GitHubService

logger = get_logger(__name__)


class MergeStrategy(ABC):
    """One way of deciding whether a branch has been merged."""

    name: str = ""

    def __init__(self, config: "WorktreeConfig"):
        self.config = config

    def is_available(self) -> bool:
        """False when the strategy's integration is switched off."""
        return True

    @abstractmethod
    def detect(self, repo: git.Repo, branch: str) -> MethodResult:
        """Inspect ``branch`` using ``repo``; may raise on git failures."""

    def result(self, is_merged: bool, confidence: float, details: Optional[str] = None, **kwargs) -> MethodResult:
        return MethodResult(self.name, is_merged, confidence, details, **kwargs)

    def find_main_branch(self, repo: git.Repo) -> str:
        """First configured main branch that resolves in this repository."""
        for candidate in self.config.main_branches:
            code, _, _ = repo.git.rev_parse(
                "--verify", "--quiet", candidate, with_extended_output=True, with_exceptions=False
            )
            if code == 0:
                return candidate
        raise DetectionError(self.name, f"No main branch found (tried {', '.join(self.config.main_branches)})")

    def merge_base(self, repo: git.Repo, main_branch: str, branch: str) -> Optional[str]:
        code, output, _ = repo.git.merge_base(
            main_branch, branch, with_extended_output=True, with_exceptions=False
        )
        return output.strip() if code == 0 and output.strip() else None


class StandardStrategy(MergeStrategy):
    """Branch is reachable from a main branch (fast-forward or merge commit)."""

    name = "standard"

    def detect(self, repo: git.Repo, branch: str) -> MethodResult:
        logger.debug(f"[standard] Checking if {branch} is merged into a main branch...")
        for main_branch in self.config.main_branches:
            code, output, _ = repo.git.branch(
                "--merged", main_branch, with_extended_output=True, with_exceptions=False
            )
            if code != 0:
                logger.debug(f"[standard] Main branch {main_branch} not available")
                continue
            for line in output.splitlines():
                # Strip current (*) and other-worktree (+) markers
                name = line.strip().lstrip("*+").strip()
                if name == branch:
                    logger.debug(f"[standard] {branch} is merged into {main_branch}")
                    return self.result(True, STANDARD_MERGED_CONFIDENCE, f"merged into {main_branch}")
        return self.result(False, STANDARD_UNMERGED_CONFIDENCE, "not reachable from any main branch")


class SquashStrategy(MergeStrategy):
    """Evidence that the branch landed on main as a single rewritten commit."""

    name = "squash"

    def detect(self, repo: git.Repo, branch: str) -> MethodResult:
        logger.debug(f"[squash] Checking {branch} for squash merge evidence...")
        main_branch = self.find_main_branch(repo)
        merge_base = self.merge_base(repo, main_branch, branch)
        if merge_base is None:
            return self.result(False, 0.0, "Cannot find merge base")

        code, _, _ = repo.git.diff(
            "--quiet", merge_base, branch, with_extended_output=True, with_exceptions=False
        )
        if code == 0:
            logger.debug(f"[squash] {branch} has no unique changes")
            return self.result(True, SQUASH_NO_CHANGES_CONFIDENCE, "no unique changes")

        subjects = repo.git.log(
            f"--max-count={SQUASH_LOG_SCAN_LIMIT}", "--format=%s", f"{merge_base}..{main_branch}"
        ).splitlines()
        mentions = [s for s in subjects if self._mentions_branch(s, branch)]
        if mentions:
            logger.debug(f"[squash] Found {len(mentions)} commits mentioning {branch}")
            return self.result(
                True, SQUASH_MESSAGE_CONFIDENCE, f"found {len(mentions)} potential squash commits"
            )

        branch_times = self._commit_times(repo, f"{merge_base}..{branch}")
        main_times = self._commit_times(repo, f"{merge_base}..{main_branch}")
        if branch_times and main_times:
            earliest = min(branch_times) - SQUASH_TIMING_WINDOW_SECONDS
            latest = max(branch_times) + SQUASH_TIMING_WINDOW_SECONDS
            if any(earliest <= t <= latest for t in main_times):
                logger.debug(f"[squash] Main has commits in the timeframe of {branch}")
                return self.result(
                    True,
                    SQUASH_TIMING_CONFIDENCE,
                    "commits with similar timing found",
                    soft_signal=True,
                )

        return self.result(False, 0.0, "no squash merge evidence")

    def _mentions_branch(self, subject: str, branch: str) -> bool:
        """Whether ``subject`` names the branch, or its task id, as a whole word."""
        names = [branch]
        prefix = self.config.prefix
        if prefix and branch.startswith(prefix) and len(branch) > len(prefix):
            names.append(branch[len(prefix):])
        return any(
            re.search(rf"(?<![\w-]){re.escape(name)}(?![\w-])", subject) for name in names
        )

    @staticmethod
    def _commit_times(repo: git.Repo, revision_range: str) -> list[int]:
        output = repo.git.log(f"--max-count={SQUASH_LOG_SCAN_LIMIT}", "--format=%ct", revision_range)
        return [int(line) for line in output.split() if line.isdigit()]


class GitHubPRStrategy(MergeStrategy):
    """GitHub reports a merged pull request whose head is the branch."""

    name = "github_pr"

    def __init__(self, config: "WorktreeConfig", github_service: Optional["GitHubService"] = None):
        super().__init__(config)
        self.github_service = github_service

    def is_available(self) -> bool:
        return (
            bool(self.config.use_github)
            and self.github_service is not None
            and self.github_service.is_enabled()
        )

    def detect(self, repo: git.Repo, branch: str) -> MethodResult:
        logger.debug(f"[github_pr] Looking up merged pull requests for {branch}...")
        assert self.github_service is not None
        pr_number = self.github_service.find_merged_pr(branch)
        if pr_number is None:
            return self.result(False, 0.0, "no merged pull request")
        return self.result(True, GITHUB_PR_CONFIDENCE, f"PR #{pr_number} merged")


class FileContentStrategy(MergeStrategy):
    """Every file the branch changed has identical content on main."""

    name = "file_content"

    def detect(self, repo: git.Repo, branch: str) -> MethodResult:
        logger.debug(f"[file_content] Comparing changed files of {branch} with main...")
        main_branch = self.find_main_branch(repo)
        merge_base = self.merge_base(repo, main_branch, branch)
        if merge_base is None:
            return self.result(False, 0.0, "Cannot find merge base")

        changed = [f for f in repo.git.diff("--name-only", merge_base, branch).splitlines() if f]
        if not changed:
            return self.result(True, FILE_CONTENT_NO_CHANGES_CONFIDENCE, "no file changes")

        matching = sum(1 for f in changed if self._same_blob(repo, f, main_branch, branch))
        ratio = matching / len(changed)
        confidence = ratio * FILE_CONTENT_SCALE
        is_merged = ratio > FILE_CONTENT_MATCH_RATIO
        label = "file contents match" if is_merged else "partial file match"
        return self.result(is_merged, confidence, f"{label} ({matching}/{len(changed)})")

    @staticmethod
    def _same_blob(repo: git.Repo, file_path: str, main_branch: str, branch: str) -> bool:
        # A file missing on both sides (deleted everywhere) counts as a match
        return _blob_id(repo, main_branch, file_path) == _blob_id(repo, branch, file_path)


def _blob_id(repo: git.Repo, ref: str, file_path: str) -> Optional[str]:
    code, output, _ = repo.git.rev_parse(
        "--verify", "--quiet", f"{ref}:{file_path}", with_extended_output=True, with_exceptions=False
    )
    return output.strip() if code == 0 else None


STRATEGIES = {
    StandardStrategy.name: StandardStrategy,
    SquashStrategy.name: SquashStrategy,
    GitHubPRStrategy.name: GitHubPRStrategy,
    FileContentStrategy.name: FileContentStrategy,
}


class MergeDetector:
    """Service for detecting if worktree branches have been merged."""

    def __init__(self, config: "WorktreeConfig", github_service: Optional["GitHubService"] = None):
        """Initialize the merge detector.

        Args:
            config: Worktree configuration; ``merge_methods`` sets the strategy order
            github_service: GitHub integration for the ``github_pr`` strategy
        """
        self.config = config
        self.strategies: list[MergeStrategy] = []
        for method in config.merge_methods:
            strategy_class = STRATEGIES.get(method)
            if strategy_class is None:
                logger.warning(f"Unknown merge detection method: {method}")
                continue
            if strategy_class is GitHubPRStrategy:
                self.strategies.append(GitHubPRStrategy(config, github_service))
            else:
                self.strategies.append(strategy_class(config))

        logger.debug(f"Merge detector initialized with: {', '.join(s.name for s in self.strategies)}")

    def detect_merge(self, path: Union[str, Path], branch: str) -> MergeDetectionResult:
        """Run every enabled strategy against ``branch`` and combine the verdicts.

        Args:
            path: Worktree (or repository) directory the git commands run in
            branch: Branch to check
        """
        if branch in self.config.main_branches:
            logger.debug(f"Skipping merge check: {branch} is a main branch")
            return MergeDetectionResult(
                is_merged=False,
                detection_method="none",
                confidence=0.0,
                details=f"{branch} is a main branch",
            )

        repo = git.Repo(path)
        method_results = []
        for strategy in self.strategies:
            if not strategy.is_available():
                logger.debug(f"[{strategy.name}] Skipped (integration disabled)")
                continue
            method_results.append(self._run_strategy(strategy, repo, branch))

        result = MergeDetectionResult.combine(method_results)
        logger.debug(f"Merge verdict for {branch}: {result.summary()}")
        return result

    @staticmethod
    def _run_strategy(strategy: MergeStrategy, repo: git.Repo, branch: str) -> MethodResult:
        try:
            return strategy.detect(repo, branch)
        except Exception as e:
            logger.debug(f"[{strategy.name}] Detection failed: {e}")
            return MethodResult(strategy.name, False, 0.0, error=str(e))
