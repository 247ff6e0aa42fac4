"""Aggregator: one pass over a Run's events into summary statistics."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from decimal import ROUND_HALF_EVEN, Decimal
from itertools import pairwise
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from gccat.model import Capability, EventKind, LogEvent, MemoryUsage, Trigger
from gccat.units import percent

if TYPE_CHECKING:
    from gccat.store import Run

logger = logging.getLogger(__name__)

BOTTLENECK_SEPARATOR = "..."


class HighWaterMark(BaseModel):
    """Largest occupancy and allocated space seen for one memory area (KB)."""

    model_config = ConfigDict(frozen=True)

    occupancy_kb: int = 0
    space_kb: int = 0
    after_gc_kb: int = 0


class Statistics(BaseModel):
    """Summary of a closed Run."""

    model_config = ConfigDict(frozen=True)

    # Counts
    event_count: int = 0  # blocking GC events
    stopped_time_event_count: int = 0
    kinds: list[EventKind] = Field(default_factory=list)  # first-seen order
    kind_counts: dict[EventKind, int] = Field(default_factory=dict)
    trigger_counts: dict[Trigger, int] = Field(default_factory=dict)
    collector_families: list[str] = Field(default_factory=list)
    unidentified_count: int = 0

    # Pauses (microseconds)
    max_pause_us: int = 0
    total_pause_us: int = 0
    max_stopped_us: int = 0
    total_stopped_us: int = 0
    # GC pause time as percent of stopped time; None without both kinds of event
    gc_stopped_ratio: int | None = None

    run_start_ms: int = 0
    run_duration_us: int = 0
    gc_throughput: int | None = None
    stopped_time_throughput: int | None = None

    # Memory high-water marks
    heap: HighWaterMark | None = None
    heap_non_blocking: HighWaterMark | None = None
    perm: HighWaterMark | None = None
    metaspace: HighWaterMark | None = None
    max_young_space_kb: int = 0
    max_old_space_kb: int = 0
    new_ratio: int | None = None

    # Parallelism
    parallel_event_count: int = 0
    inverted_parallelism_count: int = 0
    worst_inverted_parallelism_event: LogEvent | None = None
    sys_gt_user_count: int = 0
    worst_sys_gt_user_event: LogEvent | None = None

    # Bottlenecks
    bottleneck_count: int = 0
    bottlenecks: list[str] = Field(default_factory=list)

    first_event: LogEvent | None = None
    last_event: LogEvent | None = None

    @property
    def gc_throughput_label(self) -> str | None:
        return _throughput_label(self.gc_throughput, self.total_pause_us)

    @property
    def stopped_time_throughput_label(self) -> str | None:
        return _throughput_label(self.stopped_time_throughput, self.total_stopped_us)


def _throughput_label(value: int | None, pause_us: int) -> str | None:
    if value is None:
        return None
    # Rounding can hide real pause time
    if value == 100 and pause_us > 0:
        return "~100%"
    return f"{value}%"


def throughput(pause_us: int, duration_us: int) -> int:
    """Percent of ``duration_us`` not spent paused, clamped to [0, 100]."""
    if duration_us <= 0:
        return 100
    return max(0, min(100, percent(max(duration_us - pause_us, 0), duration_us)))


def _end_us(event: LogEvent) -> int:
    return event.timestamp_ms * 1000 + event.duration_us


def _high_water(usages: Iterable[MemoryUsage]) -> HighWaterMark | None:
    occupancy = space = after_gc = 0
    seen = False
    for usage in usages:
        seen = True
        occupancy = max(occupancy, usage.before_kb)
        space = max(space, usage.capacity_kb)
        after_gc = max(after_gc, usage.after_kb)
    if not seen:
        return None
    return HighWaterMark(occupancy_kb=occupancy, space_kb=space, after_gc_kb=after_gc)


def find_bottlenecks(
    events: list[LogEvent], threshold: int, limit: int
) -> tuple[int, list[str]]:
    """Intervals between consecutive GC events whose throughput is below ``threshold``.

    The interval runs from the end of one pause to the end of the next.
    Every qualifying interval is counted; at most ``limit`` log lines are
    kept, with a separator between runs of intervals that do not chain.
    """
    count = 0
    lines: list[str] = []
    last_recorded: LogEvent | None = None

    def keep(line: str) -> None:
        if len(lines) < limit:
            lines.append(line)

    for prior, current in pairwise(events):
        interval_us = _end_us(current) - _end_us(prior)
        if interval_us <= 0:
            continue
        if throughput(current.duration_us, interval_us) >= threshold:
            continue
        count += 1
        if last_recorded is not prior:
            if last_recorded is not None:
                keep(BOTTLENECK_SEPARATOR)
            keep(prior.log_entry)
        keep(current.log_entry)
        last_recorded = current

    return count, lines


def summarize(run: Run) -> Statistics:
    """Aggregate ``run`` into Statistics. Prefer ``Run.statistics``, which caches this."""
    settings = run.settings
    gc_events = run.blocking_events
    stopped_events = run.stopped_time_events
    kind_counts: dict[EventKind, int] = {}
    trigger_counts: dict[Trigger, int] = {}
    collector_families: list[str] = []

    for event in run.events:
        kind_counts[event.kind] = kind_counts.get(event.kind, 0) + 1
        if event.trigger is not None:
            trigger_counts[event.trigger] = trigger_counts.get(event.trigger, 0) + 1
        if (family := event.info.collector) is not None and family not in collector_families:
            collector_families.append(family)

    total_pause_us = sum(event.duration_us for event in gc_events)
    total_stopped_us = sum(event.duration_us for event in stopped_events)

    # ============================================================
    # RUN DURATION & THROUGHPUT
    # ============================================================

    run_start_ms = 0
    run_duration_us = 0
    if run.events:
        first_ms = min(event.timestamp_ms for event in run.events)
        # A log that starts shortly after JVM start is measured from zero
        if first_ms >= settings.first_timestamp_threshold_secs * 1000:
            run_start_ms = first_ms
        run_duration_us = max(_end_us(event) for event in run.events) - run_start_ms * 1000

    gc_throughput = throughput(total_pause_us, run_duration_us) if gc_events else None
    stopped_time_throughput = (
        throughput(total_stopped_us, run_duration_us) if stopped_events else None
    )
    gc_stopped_ratio = (
        percent(total_pause_us, total_stopped_us) if gc_events and total_stopped_us > 0 else None
    )

    # ============================================================
    # MEMORY
    # ============================================================

    heap = _high_water(event.heap for event in gc_events if event.heap)
    heap_non_blocking = _high_water(
        event.heap for event in run.events if event.heap and not event.has(Capability.BLOCKING)
    )
    # Only blocking events log perm or metaspace
    perm = _high_water(event.perm for event in gc_events if event.perm and event.perm_name == "Perm")
    metaspace = _high_water(
        event.perm for event in gc_events if event.perm and event.perm_name == "Metaspace"
    )
    max_young_space_kb = max((event.young.capacity_kb for event in run.events if event.young), default=0)
    max_old_space_kb = max((event.old.capacity_kb for event in run.events if event.old), default=0)
    new_ratio = None
    if max_young_space_kb > 0 and max_old_space_kb > 0:
        new_ratio = int(
            (Decimal(max_old_space_kb) / Decimal(max_young_space_kb)).quantize(
                Decimal(1), rounding=ROUND_HALF_EVEN
            )
        )

    # ============================================================
    # PARALLELISM
    # ============================================================

    parallel_events = [event for event in gc_events if event.has(Capability.PARALLEL)]
    inverted = [event for event in parallel_events if event.times is not None and event.times.is_inverted]
    worst_inverted = min(inverted, key=lambda event: event.times.parallelism) if inverted else None

    sys_gt_user = [
        event
        for event in gc_events
        if event.times is not None and event.times.sys_cs > event.times.user_cs
    ]
    worst_sys_gt_user = (
        max(sys_gt_user, key=lambda event: event.times.sys_cs - event.times.user_cs)
        if sys_gt_user
        else None
    )

    bottleneck_count, bottlenecks = find_bottlenecks(
        gc_events, settings.throughput_threshold, settings.bottleneck_line_limit
    )

    statistics = Statistics(
        event_count=len(gc_events),
        stopped_time_event_count=len(stopped_events),
        kinds=list(kind_counts),
        kind_counts=kind_counts,
        trigger_counts=trigger_counts,
        collector_families=collector_families,
        unidentified_count=run.unidentified_count,
        max_pause_us=max((event.duration_us for event in gc_events), default=0),
        total_pause_us=total_pause_us,
        max_stopped_us=max((event.duration_us for event in stopped_events), default=0),
        total_stopped_us=total_stopped_us,
        gc_stopped_ratio=gc_stopped_ratio,
        run_start_ms=run_start_ms,
        run_duration_us=run_duration_us,
        gc_throughput=gc_throughput,
        stopped_time_throughput=stopped_time_throughput,
        heap=heap,
        heap_non_blocking=heap_non_blocking,
        perm=perm,
        metaspace=metaspace,
        max_young_space_kb=max_young_space_kb,
        max_old_space_kb=max_old_space_kb,
        new_ratio=new_ratio,
        parallel_event_count=len(parallel_events),
        inverted_parallelism_count=len(inverted),
        worst_inverted_parallelism_event=worst_inverted,
        sys_gt_user_count=len(sys_gt_user),
        worst_sys_gt_user_event=worst_sys_gt_user,
        bottleneck_count=bottleneck_count,
        bottlenecks=bottlenecks,
        first_event=run.first_event,
        last_event=run.last_event,
    )
    logger.info(
        "Summarized %d GC events, %d stopped-time events, throughput %s",
        statistics.event_count,
        statistics.stopped_time_event_count,
        statistics.gc_throughput_label,
    )
    return statistics
