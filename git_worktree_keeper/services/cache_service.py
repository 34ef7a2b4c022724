"""Cache service for storing worktree status results."""
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Dict, Optional, Union

from git_worktree_keeper.models.status import WorktreeStatus

logger = logging.getLogger(__name__)


@dataclass
class _CacheEntry:
    status: WorktreeStatus
    stored_at: float
    mtime: float


def _directory_mtime(path: Path) -> float:
    """Latest modification time of the worktree directory or its git index."""
    mtimes = []
    for candidate in (path, path / ".git"):
        try:
            mtimes.append(os.stat(candidate).st_mtime)
        except OSError:
            continue
    return max(mtimes) if mtimes else 0.0


class StatusCache:
    """Thread-safe in-memory memo of worktree statuses.

    An entry is served while it is younger than the TTL and the worktree
    directory has not been modified since it was stored.
    """

    def __init__(self, ttl_seconds: int = 300):
        """Initialize the cache.

        Args:
            ttl_seconds: Maximum age of an entry; zero disables caching
        """
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[Path, _CacheEntry] = {}
        self._lock = Lock()
        self._hits = 0
        self._misses = 0

    @staticmethod
    def _key(path: Union[str, Path]) -> Path:
        return Path(path).absolute()

    def get(self, path: Union[str, Path]) -> Optional[WorktreeStatus]:
        """Return the cached status for ``path`` if it is still fresh."""
        key = self._key(path)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or not self._is_fresh(key, entry):
                if entry is not None:
                    del self._entries[key]
                    logger.debug(f"Cache entry for {key} expired")
                self._misses += 1
                return None
            self._hits += 1
            return entry.status

    def put(self, path: Union[str, Path], status: WorktreeStatus) -> None:
        if self.ttl_seconds <= 0:
            return
        key = self._key(path)
        entry = _CacheEntry(status=status, stored_at=time.time(), mtime=_directory_mtime(key))
        with self._lock:
            self._entries[key] = entry

    def invalidate(self, path: Union[str, Path]) -> None:
        """Remove a single worktree from the cache."""
        with self._lock:
            self._entries.pop(self._key(path), None)

    def clear(self) -> None:
        """Clear all cached data."""
        with self._lock:
            self._entries.clear()
        logger.debug("Status cache cleared")

    def cleanup_stale_entries(self) -> int:
        """Drop every expired entry.

        Returns:
            Number of entries removed
        """
        with self._lock:
            stale = [key for key, entry in self._entries.items() if not self._is_fresh(key, entry)]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.debug(f"Removed {len(stale)} stale cache entries")
        return len(stale)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"entries": len(self._entries), "hits": self._hits, "misses": self._misses}

    def _is_fresh(self, key: Path, entry: _CacheEntry) -> bool:
        if time.time() - entry.stored_at > self.ttl_seconds:
            return False
        return _directory_mtime(key) <= entry.mtime
