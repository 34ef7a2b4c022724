"""Configuration handling for git-worktree-keeper"""

import os
from dataclasses import dataclass, field, fields
from typing import Optional, List

from git_worktree_keeper.constants import (
    DEFAULT_BASE_DIR,
    DEFAULT_BRANCH_PREFIX,
    DEFAULT_MAIN_BRANCHES,
    DEFAULT_MERGE_METHODS,
    ENV_PREFIX,
)


@dataclass
class WorktreeConfig:
    """Configuration for git-worktree-keeper with validation."""

    # Layout
    mode: str = "local"  # local, global
    base_dir: str = DEFAULT_BASE_DIR
    prefix: str = DEFAULT_BRANCH_PREFIX
    auto_gitignore: bool = True
    remote_name: str = "origin"

    # Cleanup policy
    age_threshold_hours: int = 24
    verify_remote: bool = True
    auto_delete_branch: bool = False
    require_confirmation: bool = True

    # Merge detection
    use_github: bool = True
    github_token: Optional[str] = None
    merge_methods: List[str] = field(default_factory=lambda: list(DEFAULT_MERGE_METHODS))
    main_branches: List[str] = field(default_factory=lambda: list(DEFAULT_MAIN_BRANCHES))

    # Status display limits
    show_files: bool = True
    max_files_shown: int = 10
    show_commit_messages: bool = True
    max_commits_shown: int = 5

    # Execution
    cache_ttl_seconds: int = 300
    sequential: bool = False  # Force sequential processing (disable parallelism)
    workers: Optional[int] = None  # Number of parallel workers (None = auto-detect)
    verbose: bool = False
    debug: bool = False

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_mode()
        self._validate_base_dir()
        self._validate_prefix()
        self._validate_age_threshold()
        self._validate_merge_methods()
        self._validate_main_branches()
        self._validate_display_limits()

    def _validate_mode(self):
        """Validate mode is one of allowed values."""
        allowed = ["local", "global"]
        if self.mode not in allowed:
            raise ValueError(f"mode must be one of {allowed}, got '{self.mode}'")

    def _validate_base_dir(self):
        """Validate base_dir is not blank."""
        if not self.base_dir or not str(self.base_dir).strip():
            raise ValueError("base_dir cannot be empty")
        self.base_dir = str(self.base_dir).strip()

    def _validate_prefix(self):
        """Validate the managed branch prefix."""
        if not self.prefix:
            raise ValueError("prefix cannot be empty")
        if ".." in self.prefix or "\0" in self.prefix:
            raise ValueError("prefix contains invalid characters")
        if len(self.prefix) > 50:
            raise ValueError("prefix is too long (max 50 characters)")

    def _validate_age_threshold(self):
        """Validate age_threshold_hours is within one year."""
        if self.age_threshold_hours <= 0:
            raise ValueError(
                f"age_threshold_hours must be positive, got {self.age_threshold_hours}"
            )
        if self.age_threshold_hours > 24 * 365:
            raise ValueError("age_threshold_hours is too high (max 1 year)")

    def _validate_merge_methods(self):
        """Validate at least one merge detection method is configured."""
        if not isinstance(self.merge_methods, list) or not self.merge_methods:
            raise ValueError("At least one merge detection method must be configured")

    def _validate_main_branches(self):
        """Validate at least one main branch is configured."""
        if not isinstance(self.main_branches, list) or not self.main_branches:
            raise ValueError("At least one main branch must be configured")

    def _validate_display_limits(self):
        """Validate status display limits."""
        if not 1 <= self.max_files_shown <= 100:
            raise ValueError(
                f"max_files_shown must be between 1 and 100, got {self.max_files_shown}"
            )
        if not 1 <= self.max_commits_shown <= 50:
            raise ValueError(
                f"max_commits_shown must be between 1 and 50, got {self.max_commits_shown}"
            )

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def get(self, key: str, default=None):
        """Get config value by key for dict-style callers."""
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "WorktreeConfig":
        """Create WorktreeConfig from dictionary, ignoring unknown keys."""
        known_fields = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in config_dict.items() if k in known_fields}
        return cls(**filtered)

    @classmethod
    def from_env(cls, base: Optional[dict] = None) -> "WorktreeConfig":
        """Create WorktreeConfig from defaults (or ``base``) plus environment overrides.

        Every field can be overridden by ``WORKTREE_KEEPER_<FIELD>``; list fields
        take comma-separated values and booleans accept true/false/1/0/yes/no.
        Unparseable values are ignored.
        """
        values = dict(base or {})
        for f in fields(cls):
            raw = os.environ.get(f"{ENV_PREFIX}{f.name.upper()}")
            if raw is None:
                continue
            parsed = _parse_env_value(f.name, raw)
            if parsed is not None:
                values[f.name] = parsed
        return cls.from_dict(values)


_LIST_FIELDS = {"merge_methods", "main_branches"}
_BOOL_FIELDS = {
    "auto_gitignore",
    "verify_remote",
    "auto_delete_branch",
    "require_confirmation",
    "use_github",
    "show_files",
    "show_commit_messages",
    "sequential",
    "verbose",
    "debug",
}
_INT_FIELDS = {
    "age_threshold_hours",
    "max_files_shown",
    "max_commits_shown",
    "cache_ttl_seconds",
    "workers",
}


def _parse_env_value(name: str, raw: str):
    """Parse one environment override, returning None when it should be ignored."""
    raw = raw.strip()
    if name in _LIST_FIELDS:
        items = [item.strip() for item in raw.split(",") if item.strip()]
        return items or None
    if name in _BOOL_FIELDS:
        lowered = raw.lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
        return None
    if name in _INT_FIELDS:
        try:
            return int(raw)
        except ValueError:
            return None
    if name == "mode":
        # Unknown modes fall back to local
        return raw.lower() if raw.lower() in ("local", "global") else "local"
    return raw or None
