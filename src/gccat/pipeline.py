"""End-to-end glue: preprocess -> ingest -> summarize -> analyze."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from gccat.analysis import AnalysisFinding, analyze
from gccat.config import AnalyzerSettings
from gccat.jvm import JvmContext
from gccat.preprocess import Preprocessor
from gccat.registry import PatternRegistry
from gccat.stats import Statistics
from gccat.store import Run, RunStore

logger = logging.getLogger(__name__)


class AnalysisResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    run: Run
    findings: list[AnalysisFinding]
    # The preprocessed log, when preprocessing ran
    canonical_lines: list[str] | None = None
    unresolved_datestamps: int = 0

    @property
    def statistics(self) -> Statistics:
        return self.run.statistics


def analyze_lines(
    lines: Iterable[str],
    *,
    jvm_options: str | None = None,
    jvm_start: datetime | None = None,
    preprocess: bool = False,
    reorder: bool = False,
    settings: AnalyzerSettings | None = None,
    raise_on_time_warp: bool = True,
    registry: PatternRegistry | None = None,
) -> AnalysisResult:
    """Analyze an in-memory log.

    A JVM start time implies preprocessing, since it is only used to place
    datestamp-only lines on the uptime axis.

    Raises:
        TimeWarpError: overlapping blocking events (only with ``raise_on_time_warp``)
    """
    canonical_lines: list[str] | None = None
    unresolved_datestamps = 0
    if preprocess or jvm_start is not None:
        preprocessor = Preprocessor(jvm_start=jvm_start)
        canonical_lines = preprocessor.preprocess(lines)
        unresolved_datestamps = preprocessor.unresolved_datestamps
        lines = canonical_lines

    store = RunStore(registry=registry, settings=settings)
    run = store.ingest(
        lines,
        reorder=reorder,
        jvm=JvmContext(options=jvm_options, start=jvm_start),
        raise_on_time_warp=raise_on_time_warp,
    )
    findings = analyze(run)
    return AnalysisResult(
        run=run,
        findings=findings,
        canonical_lines=canonical_lines,
        unresolved_datestamps=unresolved_datestamps,
    )


def analyze_file(path: Path | str, **options: object) -> AnalysisResult:
    """Analyze the log at ``path``; keyword options as for :func:`analyze_lines`."""
    path = Path(path)
    logger.info("Reading %s", path)
    with path.open(encoding="utf-8", errors="replace") as f:
        return analyze_lines(f, **options)  # type: ignore[arg-type]


def write_lines(path: Path, lines: Iterable[str]) -> None:
    """Write ``lines`` one per line, e.g. a preprocessed log for later reuse."""
    path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
