"""Unified logging (JDK9+, -Xlog:gc*) grammars.

Unified pause summaries are logged when the pause completes, so the start
timestamp is the logged uptime minus the pause duration.
"""

from __future__ import annotations

import re
from typing import Any

from gccat.grammars.base import Grammar, last_trigger, logged_at_end, memory, unit_memory
from gccat.model import EventKind
from gccat.patterns import (
    DECIMAL,
    SIZE,
    UNIFIED_END,
    UNIFIED_PREFIX,
    size_block,
    trigger_block,
    unit_size_block,
)
from gccat.units import millis_to_micros, nanos_to_micros, secs_to_micros

COLLECTORS = {
    "Serial": "Serial",
    "Parallel": "Parallel",
    "Concurrent Mark Sweep": "CMS",
    "G1": "G1",
    "Shenandoah": "Shenandoah",
    "The Z Garbage Collector": "Z",
}

G1_YOUNG_TYPES = r"Normal|Concurrent Start|Prepare Mixed|Concurrent End"

# ============================================================
# HEADER
# ============================================================


class UnifiedHeaderVersionGrammar(Grammar):
    """[0.006s][info][gc,init] Version: 17.0.1+12-LTS (release)"""

    kind = EventKind.UNIFIED_HEADER_VERSION
    guards = ("Version: ",)
    PATTERN: re.Pattern[str] = re.compile(UNIFIED_PREFIX + r"Version: (?P<version>.+?)[ ]*$")

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        return {"timestamp_ms": 0, "detail": match.group("version")}


class UnifiedHeaderUsingGrammar(Grammar):
    """[0.010s][info][gc] Using G1"""

    kind = EventKind.UNIFIED_HEADER_USING
    guards = ("Using ",)
    PATTERN: re.Pattern[str] = re.compile(
        UNIFIED_PREFIX
        + "Using (?P<collector>"
        + "|".join(re.escape(name) for name in COLLECTORS)
        + r")[ ]*$"
    )

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        return {"timestamp_ms": 0, "detail": COLLECTORS[match.group("collector")]}


class UnifiedHeaderMemoryGrammar(Grammar):
    """[0.015s][info][gc,init] Memory: 31907M"""

    kind = EventKind.UNIFIED_HEADER_MEMORY
    guards = ("Memory: ",)
    PATTERN: re.Pattern[str] = re.compile(UNIFIED_PREFIX + rf"Memory: (?P<memory>{SIZE})[ ]*$")

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        return {"timestamp_ms": 0, "detail": f"Memory: {match.group('memory')}"}


# ============================================================
# PAUSES
# ============================================================


def _pause_pattern(head: str) -> re.Pattern[str]:
    """GC(0) Pause <head> [Metaspace: b->a(c)] 24M->4M(256M) 3.521ms [User=.. Sys=.. Real=..]"""
    return re.compile(
        UNIFIED_PREFIX
        + rf"GC\((?P<gc_id>\d+)\) Pause {head}"
        + rf"(?: Metaspace: {size_block('perm')})?"
        + rf" {unit_size_block('combined')} (?P<duration>{DECIMAL})ms{UNIFIED_END}"
    )


class _UnifiedPauseGrammar(Grammar):
    guards = (" Pause ",)

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        perm = memory(match, "perm")
        return {
            **logged_at_end(match, millis_to_micros(match.group("duration"))),
            "combined": unit_memory(match, "combined"),
            "perm": perm,
            "perm_name": "Metaspace" if perm is not None else None,
            "trigger": last_trigger(match, "trigger"),
            "gc_id": int(match.group("gc_id")),
        }


class UnifiedG1MixedPauseGrammar(_UnifiedPauseGrammar):
    """GC(9) Pause Young (Mixed) (G1 Evacuation Pause) 16M->8M(128M) 2.233ms"""

    kind = EventKind.UNIFIED_G1_MIXED_PAUSE
    PATTERN = _pause_pattern(rf"(?:Young \(Mixed\)|Mixed)(?: {trigger_block()})?")


class UnifiedG1YoungPauseGrammar(_UnifiedPauseGrammar):
    """GC(0) Pause Young (Normal) (G1 Evacuation Pause) 24M->4M(256M) 3.521ms"""

    kind = EventKind.UNIFIED_G1_YOUNG_PAUSE
    PATTERN = _pause_pattern(rf"Young \((?:{G1_YOUNG_TYPES})\)(?: {trigger_block()})?")


class UnifiedYoungGrammar(_UnifiedPauseGrammar):
    """GC(0) Pause Young (Allocation Failure) 0M->0M(2M) 1.309ms (Serial, Parallel)"""

    kind = EventKind.UNIFIED_YOUNG
    PATTERN = _pause_pattern(rf"Young(?: {trigger_block()})?")


class UnifiedFullGrammar(_UnifiedPauseGrammar):
    kind = EventKind.UNIFIED_FULL
    PATTERN = _pause_pattern(rf"Full(?: {trigger_block()})?")


class UnifiedRemarkGrammar(_UnifiedPauseGrammar):
    kind = EventKind.UNIFIED_REMARK
    PATTERN = _pause_pattern("Remark")


class UnifiedCleanupGrammar(_UnifiedPauseGrammar):
    kind = EventKind.UNIFIED_CLEANUP
    PATTERN = _pause_pattern("Cleanup")


# ============================================================
# CONCURRENT & SAFEPOINT
# ============================================================


class UnifiedConcurrentGrammar(Grammar):
    """GC(2) Concurrent Cycle 22.123ms

    Shenandoah also logs the heap around each concurrent phase:
    GC(0) Concurrent cleanup 32M->30M(64M) 0.012ms
    """

    kind = EventKind.UNIFIED_CONCURRENT
    guards = (" Concurrent ",)
    PATTERN: re.Pattern[str] = re.compile(
        UNIFIED_PREFIX
        + rf"GC\((?P<gc_id>\d+)\) Concurrent (?P<phase>[A-Za-z][\w ().,-]*?)"
        + rf"(?: {unit_size_block('combined')})?(?: (?P<duration>{DECIMAL})ms)?[ ]*$"
    )

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        duration_us = millis_to_micros(match.group("duration") or "0")
        return {
            **logged_at_end(match, duration_us),
            "combined": unit_memory(match, "combined"),
            "gc_id": int(match.group("gc_id")),
        }


class UnifiedSafepointGrammar(Grammar):
    """Stopped time, JDK9-16 and JDK17+ wording.

    [0.031s][info][safepoint] Total time for which application threads were stopped: 0.0000643 seconds, Stopping threads took: 0.0000148 seconds
    [0.061s][info][safepoint] Safepoint "GenCollectForAllocation", Time since last: 24548411 ns, Reaching safepoint: 2059 ns, At safepoint: 3829264 ns, Total: 3831323 ns
    """

    kind = EventKind.UNIFIED_SAFEPOINT
    PATTERN: re.Pattern[str] = re.compile(
        UNIFIED_PREFIX
        + rf"(?:Total time for which application threads were stopped: (?P<stopped>{DECIMAL}) seconds, "
        + rf"Stopping threads took: (?P<stopping>{DECIMAL}) seconds"
        + r"|Safepoint \"(?P<operation>\w+)\", Time since last: \d+ ns, Reaching safepoint: \d+ ns, "
        + r"(?:Cleanup: \d+ ns, )?At safepoint: \d+ ns, Total: (?P<total_ns>\d+) ns)[ ]*$"
    )

    def match(self, line: str) -> re.Match[str] | None:
        # Substring guard: either wording
        if "Total time for which" not in line and "Safepoint \"" not in line:
            return None
        return self.PATTERN.search(line)

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        if (stopped := match.group("stopped")) is not None:
            duration_us = secs_to_micros(stopped)
        else:
            duration_us = nanos_to_micros(match.group("total_ns"))
        return logged_at_end(match, duration_us)
