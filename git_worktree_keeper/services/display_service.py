"""Display and formatting service for worktree information"""
from pathlib import Path
from typing import Dict, List, Optional, TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm
from rich.table import Table

from git_worktree_keeper.constants import REPORT_COLUMNS, SEVERITY_COLORS, WORKTREE_COLUMNS
from git_worktree_keeper.formatters import (
    format_action,
    format_age,
    format_remote_state,
    format_severity,
    format_violation,
)
from git_worktree_keeper.logging_config import get_logger
from git_worktree_keeper.models.cleanup import CleanupOptions, CleanupReport, SafetyViolation
from git_worktree_keeper.models.status import StatusSeverity, WorktreeStatus
from git_worktree_keeper.models.worktree import WorktreeRecord

if TYPE_CHECKING:
    from git_worktree_keeper.config import WorktreeConfig

console = Console()
logger = get_logger(__name__)


def confirm_cleanup(
    record: WorktreeRecord, options: CleanupOptions, violations: List[SafetyViolation]
) -> bool:
    """Ask on the terminal whether one worktree should be cleaned up."""
    console.print(f"[yellow]?[/yellow] Cleanup worktree: [cyan]{record.branch or '(detached)'}[/cyan]")
    console.print(f"  Path: [blue]{record.path}[/blue]")
    console.print(f"  Strategy: {options.strategy.value}")

    if violations:
        console.print("  [yellow]Safety concerns:[/yellow]")
        for violation in violations:
            console.print(f"    {format_violation(violation)}")

    answer = Confirm.ask("  Proceed?", default=False, console=console)
    logger.debug(f"Cleanup of {record.path} {'confirmed' if answer else 'declined'}")
    return answer


def _severity_rank(status: Optional[WorktreeStatus]) -> int:
    # Worktrees without a status sort last
    return status.severity.priority if status is not None else len(StatusSeverity)


class DisplayService:
    def __init__(self, config: "WorktreeConfig", output: Optional[Console] = None):
        self.config = config
        self.console = output or console

    def display_worktree_table(
        self,
        records: List[WorktreeRecord],
        statuses: Optional[Dict[Path, WorktreeStatus]] = None,
    ) -> None:
        """Display a table of worktrees, with their status when available.

        The main working tree stays on top; the rest are ordered most severe first.
        """
        statuses = statuses or {}
        if statuses:
            records = sorted(records, key=lambda r: (not r.is_main, _severity_rank(statuses.get(r.path))))
        table = Table()

        for col in WORKTREE_COLUMNS:
            table.add_column(col.label, max_width=col.width or None)

        for record in records:
            status = statuses.get(record.path)
            row_style = SEVERITY_COLORS.get(status.severity.value) if status else None

            branch = record.branch or "(detached)"
            if record.is_main:
                branch += " (main)"
            if record.is_orphaned:
                status_text = "[red]orphaned[/red]"
            elif status is not None:
                status_text = f"{status.severity.icon} {status.description()}"
            else:
                status_text = ""

            # Match WORKTREE_COLUMNS order: Branch, Path, HEAD, Age, Status
            table.add_row(
                branch,
                str(record.path),
                record.short_head,
                format_age(record.age),
                status_text,
                style=row_style,
            )

        self.console.print(table)

    def display_status(self, record: WorktreeRecord, status: WorktreeStatus) -> None:
        """Display the detailed status of one worktree."""
        self.console.print(f"[bold]{record.branch or '(detached)'}[/bold] @ {record.path}")
        self.console.print(f"  Severity: {format_severity(status.severity)}")
        self.console.print(f"  Remote:   {format_remote_state(status)}")
        if status.upstream:
            self.console.print(f"  Upstream: {status.upstream}")
        if status.merge_info is not None:
            self.console.print(f"  Merge:    {status.merge_info.summary()}")

        if self.config.show_files:
            files = [str(f) for f in status.changed_files]
            files += [f"untracked: {path}" for path in status.untracked_files]
            self._print_limited("Changed files", files, self.config.max_files_shown)

        if self.config.show_commit_messages and status.unpushed_commits:
            commits = [f"{c.id} {c.message} ({c.author})" for c in status.unpushed_commits]
            self._print_limited("Unpushed commits", commits, self.config.max_commits_shown)

    def _print_limited(self, title: str, lines: List[str], limit: int) -> None:
        if not lines:
            return
        self.console.print(f"  {title}:")
        for line in lines[:limit]:
            self.console.print(f"    {escape(line)}")
        if len(lines) > limit:
            self.console.print(f"    ... and {len(lines) - limit} more")

    def display_cleanup_report(self, report: CleanupReport) -> None:
        """Display the per-worktree outcome of a cleanup run and its totals."""
        title = "Cleanup report (dry run)" if report.was_dry_run else "Cleanup report"
        table = Table(title=title)
        for col in REPORT_COLUMNS:
            table.add_column(col.label, max_width=col.width or None)

        for result in report.results:
            reason = escape(result.reason)
            if result.error:
                reason += f"\n[red]{escape(result.error)}[/red]"
            table.add_row(result.branch or str(result.path), format_action(result.action), reason)

        self.console.print(table)
        self.console.print(f"\nStrategy: {report.strategy_used.value}")
        self.console.print(escape(report.summary()))
