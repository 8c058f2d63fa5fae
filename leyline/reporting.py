"""Rich rendering of sync results, comparisons, stats and status."""

from __future__ import annotations

import shutil
from io import StringIO
from typing import Any, Callable, Dict, Iterable, Optional, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .cache.stats import CacheStats, format_bytes
from .sync.manifest import ComparisonResult
from .sync.status import StatusReport
from .sync.syncer import SyncResult
from .sync.update import UpdatePlan

DEFAULT_MAX_ROWS = 10


def render_rich(render_fn: Callable[[Console], None]) -> str:
    """Render a Rich layout to an ANSI string without printing live."""

    terminal_size = shutil.get_terminal_size(fallback=(80, 24))
    width = max(20, terminal_size.columns)
    height = max(10, terminal_size.lines)

    console = Console(
        record=True,
        force_terminal=True,
        color_system="auto",
        width=width,
        height=height,
        file=StringIO(),
    )
    render_fn(console)
    return console.export_text(clear=False, styles=True)


def _path_table(title: str, rows: Sequence[Sequence[str]], max_rows: int) -> Table:
    table = Table(
        title=title,
        show_header=True,
        header_style="bold cyan",
        box=box.SIMPLE,
        pad_edge=False,
    )
    table.add_column("Change", no_wrap=True)
    table.add_column("Path", overflow="fold")
    for row in rows[:max_rows]:
        table.add_row(*row)
    if len(rows) > max_rows:
        table.caption = f"Showing {max_rows}/{len(rows)}"
    return table


def _change_rows(added: Iterable[str], modified: Iterable[str], removed: Iterable[str]):
    rows = [("[green]added", path) for path in sorted(added)]
    rows += [("[yellow]modified", path) for path in sorted(modified)]
    rows += [("[red]removed", path) for path in sorted(removed)]
    return rows


def render_sync_result(result: SyncResult, verbose: bool = False) -> str:
    """Summary panel for a sync run; ``verbose`` lists each copied or failed file."""

    def _render(console: Console) -> None:
        info = Table.grid(padding=(0, 1))
        info.add_column("Key", style="bold", no_wrap=True)
        info.add_column("Value", overflow="fold")
        info.add_row("Copied", str(len(result.copied)))
        info.add_row("Skipped", str(len(result.skipped)))
        info.add_row("Errors", str(len(result.errors)))
        if result.cache_hit_ratio is not None:
            info.add_row("Cache hit ratio", f"{result.cache_hit_ratio * 100:.1f}%")
        if result.served_from_cache:
            info.add_row("Source", "cache (remote fetch skipped)")

        console.print(
            Panel(
                info,
                title="Sync Complete" if result.success else "Sync Finished With Errors",
                border_style="green" if result.success else "red",
                padding=(0, 1),
            )
        )

        if verbose and result.copied:
            rows = [("[green]copied", path) for path in result.copied]
            console.print(_path_table("Files", rows, len(rows)))
        if result.errors:
            errors = Table(show_header=True, header_style="bold red", box=box.SIMPLE)
            errors.add_column("File", overflow="fold")
            errors.add_column("Error", overflow="fold")
            for failure in result.errors:
                errors.add_row(failure.path, failure.error)
            console.print(errors)

    return render_rich(_render)


def render_comparison(
    comparison: Optional[ComparisonResult],
    *,
    title: str = "Changes",
    max_rows: int = DEFAULT_MAX_ROWS,
) -> str:
    """Table of added, modified and removed paths."""

    def _render(console: Console) -> None:
        if comparison is None:
            console.print(Panel("[yellow]No previous sync state found.", title=title))
            return
        if not comparison.has_changes:
            console.print(Panel("[green]No changes detected.", title=title))
            return
        rows = _change_rows(comparison.added, comparison.modified, comparison.removed)
        console.print(f"[bold]{title}:[/bold] {comparison.summary()}", soft_wrap=True)
        console.print(_path_table(title, rows, max_rows))

    return render_rich(_render)


def render_stats(stats: CacheStats, directory: Optional[Dict[str, Any]] = None) -> str:
    """Cache performance panel, with cache directory usage when given."""

    def _render(console: Console) -> None:
        table = Table.grid(padding=(0, 1))
        table.add_column("Key", style="bold", no_wrap=True)
        table.add_column("Value")
        table.add_row("Cache hits", str(stats.cache_hits))
        table.add_row("Cache misses", str(stats.cache_misses))
        table.add_row("Hit ratio", f"{stats.cache_hit_ratio * 100:.1f}%")
        table.add_row("Cache puts", str(stats.cache_puts))
        table.add_row("Sync time", f"{stats.total_sync_time:.2f}s")
        table.add_row("Cache check time", f"{stats.cache_check_time:.2f}s")
        if stats.fetch_skipped:
            table.add_row("Time saved (est.)", f"{stats.time_saved_estimate:.1f}s")
        if directory:
            table.add_row("Cache path", str(directory.get("path", "")))
            table.add_row("Cache size", format_bytes(int(directory.get("size", 0))))
            table.add_row("Cached files", str(directory.get("file_count", 0)))
            table.add_row("Utilization", f"{directory.get('utilization_percent', 0.0)}%")
        console.print(Panel(table, title="Cache Statistics", border_style="cyan", padding=(0, 1)))

    return render_rich(_render)


def render_status(report: StatusReport, max_rows: int = DEFAULT_MAX_ROWS) -> str:
    """Sync state panel followed by local changes."""

    def _render(console: Console) -> None:
        info = Table.grid(padding=(0, 1))
        info.add_column("Key", style="bold", no_wrap=True)
        info.add_column("Value", overflow="fold")
        info.add_row("Project", str(report.project_dir))
        if report.state_exists:
            info.add_row("Last sync", report.last_sync or "(unknown)")
            info.add_row("Synced version", report.synced_version or "(unknown)")
            info.add_row("Categories", ", ".join(report.synced_categories) or "(none)")
            if report.state_age_seconds is not None:
                info.add_row("State age", f"{report.state_age_seconds / 3600:.1f}h")
        else:
            info.add_row("Sync state", "[yellow]none (run a sync first)")
        console.print(Panel(info, title="Leyline Status", border_style="green", padding=(0, 1)))

        if report.has_local_changes:
            rows = _change_rows(report.added, report.modified, report.removed)
            console.print(_path_table("Local Changes", rows, max_rows))
        elif report.state_exists:
            console.print("[green]No local changes.")

    return render_rich(_render)


def render_update_plan(plan: UpdatePlan, max_rows: int = DEFAULT_MAX_ROWS) -> str:
    """Pending upstream changes and any conflicts."""

    def _render(console: Console) -> None:
        console.print(Panel(plan.status, title="Update", border_style="red" if plan.conflicts else "green"))
        rows = _change_rows(plan.added, plan.modified, plan.removed)
        if rows:
            console.print(_path_table("Upstream Changes", rows, max_rows))
        if plan.conflicts:
            table = Table(show_header=True, header_style="bold red", box=box.SIMPLE)
            table.add_column("Conflict", no_wrap=True)
            table.add_column("Path", overflow="fold")
            for conflict in plan.conflicts:
                table.add_row(conflict.type.value, conflict.path)
            console.print(table)

    return render_rich(_render)


__all__ = [
    "render_rich",
    "render_sync_result",
    "render_comparison",
    "render_stats",
    "render_status",
    "render_update_plan",
]
