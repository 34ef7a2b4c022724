"""Pytest fixtures for git-worktree-keeper tests"""
import os
import tempfile
import time
from pathlib import Path

import pytest
import git

from git_worktree_keeper.config import WorktreeConfig
from git_worktree_keeper.core import WorktreeKeeper
from git_worktree_keeper.services.git.worktrees import worktree_marker


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def git_repo(temp_dir):
    """Create a real Git repository with one commit on main."""
    repo_path = temp_dir / "test_repo"
    repo_path.mkdir()

    repo = git.Repo.init(repo_path)

    # Configure git user for commits
    with repo.config_writer() as writer:
        writer.set_value("user", "name", "Test User")
        writer.set_value("user", "email", "test@example.com")

    test_file = repo_path / "README.md"
    test_file.write_text("# Test Repository\n")
    repo.index.add(["README.md"])
    repo.index.commit("Initial commit")

    # Rename master to main if needed
    repo.git.branch("-M", "main")

    yield repo

    repo.close()


@pytest.fixture
def remote_repo(git_repo, temp_dir):
    """Attach a bare repository as origin and push main to it."""
    bare = git.Repo.init(temp_dir / "origin.git", bare=True)
    git_repo.create_remote("origin", str(bare.git_dir))
    git_repo.git.push("-u", "origin", "main")
    yield bare
    bare.close()


@pytest.fixture
def config():
    """Configuration without GitHub lookups."""
    return WorktreeConfig(use_github=False)


@pytest.fixture
def keeper(git_repo, config):
    """WorktreeKeeper for the test repository."""
    keeper = WorktreeKeeper(git_repo.working_dir, config)
    yield keeper
    keeper.close()


@pytest.fixture
def commit_file():
    """Return a helper that writes, stages and commits one file in a worktree."""

    def _commit(path, name, content, message=None):
        repo = git.Repo(path)
        (Path(path) / name).write_text(content)
        repo.git.add(name)
        repo.git.commit("-m", message or f"Update {name}")
        sha = repo.git.rev_parse("HEAD")
        repo.close()
        return sha

    return _commit


@pytest.fixture
def age_directory():
    """Return a helper that backdates a worktree and its marker by ``hours``."""

    def _age(path, hours):
        past = time.time() - hours * 3600
        os.utime(path, (past, past))
        os.utime(worktree_marker(Path(path)), (past, past))

    return _age
