#!/usr/bin/env python3
"""gccat command line: analyze a JVM GC log and print a rich report."""

from __future__ import annotations

import cProfile
import logging
import pstats
import sys
from io import StringIO
from pathlib import Path
from typing import Annotated

import typer
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from gccat import __version__
from gccat.analysis import highest_level
from gccat.config import AnalyzerSettings
from gccat.errors import GcCatError
from gccat.jvm import parse_start_datetime
from gccat.pipeline import analyze_file, write_lines
from gccat.report import console, export_text_report, render_report

# ============================================================
# TYPER CLI INTERFACE
# ============================================================

app = typer.Typer(
    name="gccat",
    help="GC log analyzer for HotSpot JVMs: Serial, Parallel, CMS and G1, legacy and unified logging",
    add_completion=False,
    rich_markup_mode="rich",
)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=False)],
        force=True,
    )


@app.command()
def analyze(
    log_file: Annotated[
        Path,
        typer.Argument(
            help="Path to GC log file to analyze",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    jvm_options: Annotated[
        str | None,
        typer.Option(
            "--jvm-options",
            "-j",
            help="JVM options used when the log was written (overrides a 'CommandLine flags' header)",
        ),
    ] = None,
    preprocess: Annotated[
        bool,
        typer.Option(
            "--preprocess",
            "-p",
            help="Canonicalize the log first (multi-line events, concurrent start/end, unified decorators)",
        ),
    ] = False,
    startdatetime: Annotated[
        str | None,
        typer.Option(
            "--startdatetime",
            "-s",
            help="JVM start 'yyyy-MM-dd HH:mm:ss,SSS'; resolves datestamp-only lines (implies --preprocess)",
        ),
    ] = None,
    threshold: Annotated[
        int,
        typer.Option(
            "--threshold",
            "-t",
            help="Throughput percentage below which an interval is reported as a bottleneck (default: 90)",
            min=0,
            max=100,
        ),
    ] = 90,
    reorder: Annotated[
        bool,
        typer.Option("--reorder", "-r", help="Sort events by timestamp before checking chronology"),
    ] = False,
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Export the report to a plain-text file (e.g., report.txt)",
            file_okay=True,
            dir_okay=False,
        ),
    ] = None,
    preprocessed_output: Annotated[
        Path | None,
        typer.Option(
            "--preprocessed-output",
            help="Save the preprocessed log (implies --preprocess)",
            file_okay=True,
            dir_okay=False,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output with detailed parsing information",
        ),
    ] = False,
    profile: Annotated[
        bool,
        typer.Option(
            "--profile",
            help="Enable performance profiling and display timing statistics",
        ),
    ] = False,
    profile_output: Annotated[
        Path | None,
        typer.Option(
            "--profile-output",
            help="Save detailed profiling data to file (e.g., profile.prof)",
            file_okay=True,
            dir_okay=False,
        ),
    ] = None,
) -> None:
    """Analyze a JVM GC log file.

    Exit codes: 0 = clean or info only, 1 = warnings (or the run aborted), 2 = errors.
    """
    configure_logging(verbose)

    profiler = None
    if profile:
        profiler = cProfile.Profile()
        profiler.enable()

    try:
        jvm_start = parse_start_datetime(startdatetime) if startdatetime else None
        settings = AnalyzerSettings(throughput_threshold=threshold)

        with Progress(
            SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console
        ) as progress:
            task = progress.add_task(f"[cyan]Analyzing {log_file.name}...", total=None)
            result = analyze_file(
                log_file,
                jvm_options=jvm_options,
                jvm_start=jvm_start,
                preprocess=preprocess or preprocessed_output is not None,
                reorder=reorder,
                settings=settings,
                raise_on_time_warp=False,
            )
            progress.update(task, completed=100)

        if verbose:
            console.print(
                f"[info]Recognized {len(result.run.events)} events, "
                f"{result.run.unidentified_count} unidentified line(s)[/info]"
            )

        if preprocessed_output and result.canonical_lines is not None:
            write_lines(preprocessed_output, result.canonical_lines)
            console.print(f"[success]Preprocessed log written to {preprocessed_output}[/success]")

        if not result.run.events and not result.run.unidentified_count:
            console.print("[critical]ERROR: No GC events found in log file[/critical]")
            sys.exit(1)

        render_report(result)

        if output:
            export_text_report(result, output)
            console.print(f"\n[success]Report exported to {output}[/success]")

        if profiler:
            profiler.disable()

            if profile_output:
                profiler.dump_stats(str(profile_output))
                console.print(f"\n[info]Profiling data saved to {profile_output}[/info]")

            console.print("\n[bold cyan]Performance Profile (Top 20 Functions)[/bold cyan]\n")
            stats_stream = StringIO()
            stats = pstats.Stats(profiler, stream=stats_stream)
            stats.strip_dirs()
            stats.sort_stats("cumulative")
            stats.print_stats(20)
            console.print(escape(stats_stream.getvalue()))

        level = highest_level(result.findings)
        if level == "error":
            sys.exit(2)
        elif level == "warn":
            sys.exit(1)

    except (ValueError, GcCatError) as e:
        console.print(f"[critical]ERROR: {escape(str(e))}[/critical]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[critical]ERROR: {escape(str(e))}[/critical]")
        if verbose:
            console.print_exception()
        sys.exit(1)


@app.command()
def version() -> None:
    """Display version."""
    console.print(f"gccat {__version__}")


if __name__ == "__main__":
    app()
