"""Rich rendering of an analysis, to the terminal or to a plain-text file."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from gccat.analysis import LEVELS, AnalysisFinding
from gccat.model import EVENT_KINDS, LogEvent
from gccat.pipeline import AnalysisResult
from gccat.stats import HighWaterMark, Statistics
from gccat.store import Run
from gccat.units import micros_to_millis, millis_to_secs_text

# ============================================================
# RICH OUTPUT RENDERING
# ============================================================

GCCAT_THEME = Theme(
    {
        "critical": "bold red",
        "warning": "bold yellow",
        "success": "bold green",
        "info": "cyan",
        "metric": "white",
        "label": "dim white",
        "header": "bold magenta",
    }
)

LEVEL_STYLES = {"error": "critical", "warn": "warning", "info": "info"}

console = Console(theme=GCCAT_THEME)


def create_key_value_table(title: str, rows: list[tuple[str, str]]) -> Table:
    """Create a simple two-column key/value table."""
    table = Table(title=title, show_header=False, box=None, padding=(0, 2))
    table.add_column("Metric", style="label")
    table.add_column("Value", style="metric")
    for label, value in rows:
        table.add_row(label, value)
    return table


def format_micros(micros: int) -> str:
    """Duration as seconds with millisecond precision."""
    return f"{millis_to_secs_text(micros_to_millis(micros))} secs"


def format_timestamp(event: LogEvent) -> str:
    return f"{millis_to_secs_text(event.timestamp_ms)} secs"


def build_jvm_rows(run: Run) -> list[tuple[str, str]]:
    """Build JVM context rows; empty when the log and caller said nothing."""
    jvm = run.jvm
    rows: list[tuple[str, str]] = []
    if jvm.version:
        rows.append(("Version", escape(jvm.version)))
    if jvm.options:
        rows.append(("Options", escape(jvm.options)))
    if jvm.memory:
        rows.append(("Memory", escape(jvm.memory)))
    if jvm.collector:
        rows.append(("Collector", jvm.collector))
    if jvm.start:
        rows.append(("Start", jvm.start.isoformat(sep=" ", timespec="milliseconds")))
    return rows


def _memory_rows(name: str, mark: HighWaterMark | None) -> list[tuple[str, str]]:
    if mark is None:
        return []
    return [
        (f"Max {name} Occupancy", f"{mark.occupancy_kb}K"),
        (f"Max {name} After GC", f"{mark.after_gc_kb}K"),
        (f"Max {name} Space", f"{mark.space_kb}K"),
    ]


def build_summary_rows(stats: Statistics, run: Run) -> list[tuple[str, str]]:
    """Build summary rows in the order a GC report is usually read."""
    rows: list[tuple[str, str]] = [("# GC Events", str(stats.event_count))]

    if stats.kinds:
        rows.append(("Event Types", ", ".join(EVENT_KINDS[kind].display_name for kind in stats.kinds)))
    if stats.parallel_event_count > 0:
        rows.append(("# Parallel Events", str(stats.parallel_event_count)))
        rows.append(("# Inverted Parallelism", str(stats.inverted_parallelism_count)))
        if (worst := stats.worst_inverted_parallelism_event) is not None and worst.times is not None:
            rows.append(("Inverted Parallelism Max", f"{worst.times.parallelism:.2f}"))
            rows.append(("", escape(worst.log_entry)))
    if stats.sys_gt_user_count > 0:
        rows.append(("# Sys > User", str(stats.sys_gt_user_count)))
    if stats.new_ratio is not None:
        rows.append(("NewRatio", str(stats.new_ratio)))

    rows.extend(_memory_rows("Heap", stats.heap or stats.heap_non_blocking))
    rows.extend(_memory_rows("Perm Gen", stats.perm))
    rows.extend(_memory_rows("Metaspace", stats.metaspace))

    if stats.gc_throughput_label is not None:
        rows.append(("GC Throughput", stats.gc_throughput_label))
        rows.append(("GC Max Pause", format_micros(stats.max_pause_us)))
        rows.append(("GC Total Pause", format_micros(stats.total_pause_us)))
    if stats.stopped_time_throughput_label is not None:
        rows.append(("Stopped Time Throughput", stats.stopped_time_throughput_label))
        rows.append(("Stopped Time Max Pause", format_micros(stats.max_stopped_us)))
        rows.append(("Stopped Time Total", format_micros(stats.total_stopped_us)))
        if stats.gc_stopped_ratio is not None:
            rows.append(("GC/Stopped Ratio", f"{stats.gc_stopped_ratio}%"))

    if stats.first_event is not None and stats.last_event is not None:
        if stats.first_event.datestamp:
            rows.append(("First Datestamp", stats.first_event.datestamp))
        rows.append(("First Timestamp", format_timestamp(stats.first_event)))
        if stats.last_event.datestamp:
            rows.append(("Last Datestamp", stats.last_event.datestamp))
        rows.append(("Last Timestamp", format_timestamp(stats.last_event)))

    if run.time_warps:
        rows.append(("Time Warps", str(len(run.time_warps))))
    rows.append(("# Unidentified Lines", str(stats.unidentified_count)))
    return rows


def render_findings_panel(findings: list[AnalysisFinding]) -> Panel:
    """Findings grouped error, warn, info."""
    if not findings:
        return Panel(Text("No issues found", style="success"), title="Analysis", border_style="green")

    text = Text()
    for level in LEVELS:
        level_findings = [finding for finding in findings if finding.level == level]
        if not level_findings:
            continue
        if text:
            text.append("\n")
        text.append(f"{level}\n", style=f"{LEVEL_STYLES[level]} underline")
        for finding in level_findings:
            text.append(f"* {finding.message}\n", style=LEVEL_STYLES[level])
            if finding.event is not None:
                text.append(f"    {finding.event.log_entry}\n", style="label")

    text.rstrip()
    border_style = {"error": "red", "warn": "yellow", "info": "cyan"}[findings[0].level]
    return Panel(text, title="Analysis", border_style=border_style, expand=True)


def render_bottlenecks_panel(stats: Statistics, threshold: int) -> Panel | None:
    if not stats.bottlenecks:
        return None
    text = Text()
    for line in stats.bottlenecks:
        text.append(f"{line}\n")
    if stats.bottleneck_count > 0:
        text.append(f"{stats.bottleneck_count} interval(s) below threshold", style="info")
    return Panel(text, title=f"Throughput less than {threshold}%", border_style="yellow")


def render_unidentified_panel(run: Run, limit: int) -> Panel | None:
    if run.unidentified_count == 0:
        return None
    text = Text()
    for line in run.unidentified[:limit]:
        text.append(f"{line}\n")
    shown = min(limit, len(run.unidentified))
    if run.unidentified_count > shown:
        text.append(f"... {run.unidentified_count - shown} more", style="label")
    return Panel(
        text,
        title=f"{run.unidentified_count} UNIDENTIFIED LOG LINE(S)",
        border_style="yellow",
    )


def render_report(result: AnalysisResult, *, out: Console | None = None) -> None:
    """Render the full report on ``out`` (the shared console by default)."""
    out = out or console
    run = result.run
    stats = result.statistics
    settings = run.settings

    out.print()
    out.print(Panel("gccat GC log analysis", style="header", expand=True))
    out.print()

    if jvm_rows := build_jvm_rows(run):
        out.print(create_key_value_table("JVM", jvm_rows))
        out.print()

    out.print(create_key_value_table("Summary", build_summary_rows(stats, run)))
    out.print()

    if result.unresolved_datestamps:
        out.print(
            f"[warning]{result.unresolved_datestamps} datestamp-only line(s) could not be "
            "resolved to uptime (pass --startdatetime)[/warning]"
        )
        out.print()

    out.print(render_findings_panel(result.findings))
    out.print()

    if (bottlenecks := render_bottlenecks_panel(stats, settings.throughput_threshold)) is not None:
        out.print(bottlenecks)
        out.print()

    if (unidentified := render_unidentified_panel(run, settings.unidentified_report_limit)) is not None:
        out.print(unidentified)
        out.print()


def export_text_report(result: AnalysisResult, output_path: Path, *, width: int = 120) -> None:
    """Write the same report as plain text (no color codes)."""
    with output_path.open("w", encoding="utf-8") as f:
        file_console = Console(file=f, theme=GCCAT_THEME, width=width, no_color=True, highlight=False)
        render_report(result, out=file_console)
