"""Threading utilities for sizing the status evaluation pool."""

import os
import sys
from typing import Optional


def is_free_threading_enabled() -> bool:
    """Detect if Python is running with the GIL disabled (3.13+ free-threading)."""
    is_gil_enabled = getattr(sys, "_is_gil_enabled", None)
    return is_gil_enabled is not None and not is_gil_enabled()


def get_optimal_worker_count(user_specified: Optional[int] = None) -> int:
    """Calculate worker count for I/O-bound git subprocess work.

    Args:
        user_specified: User-specified worker count, if provided

    Returns:
        Number of workers for parallel processing
    """
    if user_specified is not None and user_specified > 0:
        return user_specified

    cpu_count = os.cpu_count() or 1

    if is_free_threading_enabled():
        return min(64, cpu_count * 2)

    # Each task mostly waits on git, so oversubscribe the CPUs a little
    return min(32, cpu_count + 4)
