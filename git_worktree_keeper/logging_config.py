"""Logging configuration for git-worktree-keeper"""
import copy
import logging
import sys
from pathlib import Path
from typing import Optional

LOG_DIR = Path.home() / '.git-worktree-keeper'
LOG_FILE_NAME = 'git-worktree-keeper.log'

DETAILED_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Libraries that log every request or subprocess at DEBUG
NOISY_LOGGERS = ('git.cmd', 'git.util', 'github', 'urllib3')


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name when stderr is a terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: '\033[36m',     # Cyan
        logging.INFO: '\033[32m',      # Green
        logging.WARNING: '\033[33m',   # Yellow
        logging.ERROR: '\033[31m',     # Red
        logging.CRITICAL: '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def __init__(self, *args, use_color: Optional[bool] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.use_color = sys.stderr.isatty() if use_color is None else use_color

    def format(self, record):
        color = self.LEVEL_COLORS.get(record.levelno)
        if not self.use_color or color is None:
            return super().format(record)
        # Other handlers share the record, so color a copy
        colored = copy.copy(record)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


def setup_logging(
    verbose: bool = False,
    debug: bool = False,
    log_to_file: bool = False,
    log_file: Optional[Path] = None,
) -> None:
    """
    Configure logging for the application.

    Args:
        verbose: If True, show INFO level messages
        debug: If True, show DEBUG level messages with timestamps and write the log file
        log_to_file: If True, write the log file even without debug
        log_file: Log file location (defaults to ~/.git-worktree-keeper/git-worktree-keeper.log)
    """
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    write_file = log_to_file or debug
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if write_file else level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if write_file:
        path = log_file or LOG_DIR / LOG_FILE_NAME
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, mode='w')  # One log per run
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(fmt=DETAILED_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    if debug:
        console_handler.setFormatter(ColoredFormatter(fmt=DETAILED_FORMAT, datefmt=DATE_FORMAT))
    else:
        console_handler.setFormatter(ColoredFormatter(fmt='[%(name)s] %(message)s'))
    root_logger.addHandler(console_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO if debug else logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module, without the package prefix.

    ``git_worktree_keeper.services.git.status`` logs as ``git.status`` and
    ``git_worktree_keeper.core.worktree_keeper`` as ``core.worktree_keeper``.
    """
    for prefix in ('git_worktree_keeper.', 'services.'):
        if name.startswith(prefix):
            name = name[len(prefix):]
    return logging.getLogger(name)
