"""Run store: ingestion, unidentified-line tracking and chronology checks."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from gccat.config import AnalyzerSettings
from gccat.errors import TimeWarpError
from gccat.jvm import JvmContext
from gccat.model import Capability, EventKind, LogEvent
from gccat.registry import PatternRegistry, default_registry
from gccat.stats import Statistics, summarize

logger = logging.getLogger(__name__)

ChronologyCategory: TypeAlias = Literal["blocking", "stopped_time"]


class TimeWarp(BaseModel):
    """A chronology fault: ``event`` starts before ``prior`` allows."""

    model_config = ConfigDict(frozen=True)

    category: ChronologyCategory
    prior: LogEvent
    event: LogEvent

    @property
    def overlap_ms(self) -> int:
        reference = self.prior.end_ms if self.category == "blocking" else self.prior.timestamp_ms
        return reference - self.event.timestamp_ms


class Run(BaseModel):
    """Everything ingested from one log. Closed once built."""

    model_config = ConfigDict(frozen=True)

    events: tuple[LogEvent, ...] = ()
    unidentified: tuple[str, ...] = ()
    # True number of unidentified lines; ``unidentified`` is capped at the reject limit
    unidentified_count: int = 0
    jvm: JvmContext = Field(default_factory=JvmContext)
    settings: AnalyzerSettings = Field(default_factory=AnalyzerSettings)
    time_warps: tuple[TimeWarp, ...] = ()
    reordered: bool = False

    _statistics: Statistics | None = PrivateAttr(default=None)

    @property
    def throughput_threshold(self) -> int:
        return self.settings.throughput_threshold

    @property
    def statistics(self) -> Statistics:
        """Summary statistics, computed on first access and cached."""
        if self._statistics is None:
            self._statistics = summarize(self)
        return self._statistics

    @property
    def blocking_events(self) -> list[LogEvent]:
        return [event for event in self.events if event.has(Capability.BLOCKING)]

    @property
    def stopped_time_events(self) -> list[LogEvent]:
        return [event for event in self.events if event.has(Capability.STOPPED_TIME)]

    @property
    def kinds(self) -> set[EventKind]:
        return {event.kind for event in self.events}

    @property
    def timed_events(self) -> list[LogEvent]:
        """Blocking and stopped-time events; concurrent records do not bound the run."""
        return [
            event
            for event in self.events
            if event.has(Capability.BLOCKING) or event.has(Capability.STOPPED_TIME)
        ]

    @property
    def first_event(self) -> LogEvent | None:
        return min(self.timed_events, key=lambda event: event.timestamp_ms, default=None)

    @property
    def last_event(self) -> LogEvent | None:
        # Latest start; ties go to the later log line
        return max(reversed(self.timed_events), key=lambda event: event.timestamp_ms, default=None)


# ============================================================
# CHRONOLOGY
# ============================================================


def check_chronology(events: Iterable[LogEvent], *, raise_on_time_warp: bool = True) -> list[TimeWarp]:
    """Find chronology faults, per category.

    Blocking events may not overlap: each must start at or after the end of
    the previous blocking event. Stopped-time events are logged when the
    safepoint completes, so only their start order is checked. Concurrent
    events are exempt.
    """
    warps: list[TimeWarp] = []
    prior_blocking: LogEvent | None = None
    prior_stopped: LogEvent | None = None

    for event in events:
        warp: TimeWarp | None = None
        if event.has(Capability.BLOCKING):
            if prior_blocking is not None and event.timestamp_ms < prior_blocking.end_ms:
                warp = TimeWarp(category="blocking", prior=prior_blocking, event=event)
            prior_blocking = event
        elif event.has(Capability.STOPPED_TIME):
            if prior_stopped is not None and event.timestamp_ms < prior_stopped.timestamp_ms:
                warp = TimeWarp(category="stopped_time", prior=prior_stopped, event=event)
            prior_stopped = event

        if warp is not None:
            if raise_on_time_warp:
                raise TimeWarpError(warp.prior, warp.event)
            logger.warning("Time warp (%s): %s", warp.category, event.log_entry)
            warps.append(warp)

    return warps


# ============================================================
# INGESTION
# ============================================================


class RunStore:
    """Turns a canonical log into a Run."""

    def __init__(
        self,
        registry: PatternRegistry | None = None,
        settings: AnalyzerSettings | None = None,
    ) -> None:
        self.registry = registry or default_registry()
        self.settings = settings or AnalyzerSettings()

    def ingest(
        self,
        lines: Iterable[str],
        *,
        reorder: bool = False,
        jvm: JvmContext | None = None,
        raise_on_time_warp: bool = True,
    ) -> Run:
        """Classify every line, then order and check the resulting events.

        Raises:
            TimeWarpError: blocking events overlap (only with ``raise_on_time_warp``)
        """
        context = jvm.model_copy() if jvm is not None else JvmContext()
        events: list[LogEvent] = []
        unidentified: list[str] = []
        unidentified_count = 0

        for raw in lines:
            line = raw.rstrip("\r\n")
            if not line.strip():
                continue

            event = self.registry.classify(line)
            if event is None:
                unidentified_count += 1
                if len(unidentified) < self.settings.reject_limit:
                    unidentified.append(line)
                else:
                    logger.debug("Reject limit reached, not retaining: %s", line)
                continue

            if event.has(Capability.HEADER):
                self._apply_header(context, event)
                continue
            if not event.info.reportable:
                continue
            events.append(event)

        if reorder:
            # list.sort is stable: equal timestamps keep log order
            events.sort(key=lambda event: event.timestamp_ms)

        time_warps = check_chronology(events, raise_on_time_warp=raise_on_time_warp)

        logger.info(
            "Ingested %d events, %d unidentified line(s), %d time warp(s)",
            len(events),
            unidentified_count,
            len(time_warps),
        )
        return Run(
            events=tuple(events),
            unidentified=tuple(unidentified),
            unidentified_count=unidentified_count,
            jvm=context,
            settings=self.settings,
            time_warps=tuple(time_warps),
            reordered=reorder,
        )

    @staticmethod
    def _apply_header(context: JvmContext, event: LogEvent) -> None:
        if event.kind in (EventKind.HEADER_VERSION, EventKind.UNIFIED_HEADER_VERSION):
            context.version = context.version or event.detail
        elif event.kind in (EventKind.HEADER_MEMORY, EventKind.UNIFIED_HEADER_MEMORY):
            context.memory = context.memory or event.detail
        elif event.kind == EventKind.HEADER_COMMAND_LINE_FLAGS:
            # Options given by the caller take precedence over the logged ones
            if not context.options:
                context.options = event.detail
        elif event.kind == EventKind.UNIFIED_HEADER_USING:
            context.collector = event.detail
