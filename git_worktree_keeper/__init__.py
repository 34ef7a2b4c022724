"""
git-worktree-keeper - Create, track and safely clean up git worktrees
"""

from .__version__ import __version__
from .config import WorktreeConfig
from .core import WorktreeKeeper

__all__ = ["WorktreeKeeper", "WorktreeConfig", "__version__"]
