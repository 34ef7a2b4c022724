"""GitHub API integration service"""

import os
from pathlib import Path
from threading import Lock
from typing import Optional, Union, TYPE_CHECKING
from urllib.parse import urlparse

import git
from github import Github, Auth

from git_worktree_keeper.exceptions import GitHubAPIError
from git_worktree_keeper.logging_config import get_logger

if TYPE_CHECKING:
    from github.Repository import Repository
    from git_worktree_keeper.config import WorktreeConfig

logger = get_logger(__name__)


def parse_github_repo(remote_url: str) -> Optional[str]:
    """Extract ``owner/repo`` from an SSH or HTTPS GitHub remote URL."""
    if not remote_url or "github.com" not in remote_url:
        return None

    if remote_url.startswith("git@"):
        # SSH format (git@github.com:org/repo.git)
        path = remote_url.split("github.com:", 1)[-1]
    else:
        # HTTPS or ssh:// format (https://github.com/org/repo.git)
        path = urlparse(remote_url).path

    path = path.strip("/")
    if path.endswith(".git"):
        path = path[:-4]

    parts = path.split("/")
    if len(parts) != 2 or not all(parts):
        return None
    return path


class GitHubService:
    """Looks up pull request state on GitHub for worktree branches."""

    def __init__(self, repo_path: Union[str, Path], config: "WorktreeConfig"):
        self.repo_path = Path(repo_path)
        self.config = config
        self.github_token = config.get("github_token") or os.environ.get("GITHUB_TOKEN")
        self.github_repo: Optional[str] = None
        self.github: Optional[Github] = None
        self.gh_repo: Optional["Repository"] = None
        self._setup_lock = Lock()

    def is_enabled(self) -> bool:
        """True when GitHub lookups are switched on and a token is available."""
        return bool(self.config.get("use_github", False) and self.github_token)

    def setup_github_api(self) -> None:
        """Connect to the GitHub repository behind the configured remote.

        Raises:
            GitHubAPIError: If the remote is not on GitHub or the API is unreachable
        """
        with self._setup_lock:
            if self.gh_repo is not None:
                return

            remote_name = self.config.get("remote_name", "origin")
            try:
                remote_url = git.Repo(self.repo_path).remotes[remote_name].url
            except (IndexError, ValueError, git.exc.GitError) as e:
                raise GitHubAPIError("setup", f"No remote named '{remote_name}'") from e

            github_repo = parse_github_repo(remote_url)
            if github_repo is None:
                raise GitHubAPIError("setup", f"Remote '{remote_name}' is not a GitHub URL: {remote_url}")

            try:
                self.github = Github(auth=Auth.Token(self.github_token))
                self.gh_repo = self.github.get_repo(github_repo)
            except Exception as e:
                logger.error(f"[GitHub] Failed to setup GitHub API: {e}")
                raise GitHubAPIError("setup", str(e)) from e

            self.github_repo = github_repo
            logger.debug(f"[GitHub] GitHub integration enabled for: {github_repo}")

    def find_merged_pr(self, branch_name: str) -> Optional[int]:
        """Number of a merged pull request whose head is ``branch_name``, if any.

        Raises:
            GitHubAPIError: If the lookup fails
        """
        self.setup_github_api()
        assert self.gh_repo is not None
        assert self.github_repo is not None

        owner = self.github_repo.split("/")[0]
        try:
            for pr in self.gh_repo.get_pulls(state="closed", head=f"{owner}:{branch_name}"):
                if pr.merged:
                    logger.debug(f"[GitHub] Branch {branch_name} has merged PR #{pr.number}")
                    return pr.number
        except Exception as e:
            raise GitHubAPIError("get_pulls", f"{branch_name}: {e}") from e

        logger.debug(f"[GitHub] No merged PR for {branch_name}")
        return None

    def close(self) -> None:
        """Close the GitHub API connection to clean up resources."""
        if self.github:
            try:
                self.github.close()
                logger.debug("[GitHub] Closed GitHub API connection")
            except Exception as e:
                logger.debug(f"[GitHub] Error closing GitHub API connection: {e}")
