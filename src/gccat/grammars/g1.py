"""Legacy (JDK 7-8) G1 grammars.

With -XX:+PrintGCDetails G1 spreads one pause over many lines; the
preprocessor folds the [Eden: ...] and [Times: ...] continuation lines
back onto the pause line and drops the per-phase detail.
"""

from __future__ import annotations

import re
from typing import Any

from gccat.grammars.base import Grammar, last_trigger, logged_at_start, memory, perm_name, unit_memory
from gccat.model import EventKind
from gccat.patterns import (
    DATESTAMP,
    EVENT_END,
    EVENT_PREFIX,
    SIZE,
    UPTIME,
    duration,
    size_block,
    trigger_block,
    unit_size_block,
)
from gccat.units import secs_to_micros, secs_to_millis

# [Eden: 25.0M(25.0M)->0.0B(21.0M) Survivors: 0.0B->4096.0K Heap: 25.0M(256.0M)->4979.9K(256.0M)]
HEAP_DETAIL_BLOCK = (
    rf" \[Eden: {SIZE}\({SIZE}\)->{SIZE}\({SIZE}\) Survivors: {SIZE}->{SIZE} "
    rf"Heap: (?P<heap_before>{SIZE})\({SIZE}\)->(?P<heap_after>{SIZE})\((?P<heap_capacity>{SIZE})\)\]"
)


def _pause_pattern(pause_type: str) -> re.Pattern[str]:
    return re.compile(
        EVENT_PREFIX
        + rf"\[GC pause (?:{trigger_block()} )?{pause_type}"
        + r"(?: \((?P<to_space>to-space (?:exhausted|overflow))\))?"
        + rf"(?: {unit_size_block('simple')})?, {duration()}\]"
        + rf"(?:{HEAP_DETAIL_BLOCK})?{EVENT_END}"
    )


class _G1PauseGrammar(Grammar):
    guards = ("[GC pause ",)

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        return {
            **logged_at_start(match),
            "duration_us": secs_to_micros(match.group("duration")),
            # G1 regions move between generations; only the heap total is reliable
            "combined": unit_memory(match, "heap") or unit_memory(match, "simple"),
            "trigger": last_trigger(match, "trigger", "to_space"),
        }


class G1YoungInitialMarkGrammar(_G1PauseGrammar):
    """2.300: [GC pause (G1 Humongous Allocation) (young) (initial-mark), 0.0057500 secs]"""

    kind = EventKind.G1_YOUNG_INITIAL_MARK
    PATTERN = _pause_pattern(r"\(young\) \(initial-mark\)")


class G1MixedPauseGrammar(_G1PauseGrammar):
    kind = EventKind.G1_MIXED_PAUSE
    PATTERN = _pause_pattern(r"\(mixed\)")


class G1YoungPauseGrammar(_G1PauseGrammar):
    """2.192: [GC pause (G1 Evacuation Pause) (young), 0.0209631 secs] [Eden: ...]"""

    kind = EventKind.G1_YOUNG_PAUSE
    PATTERN = _pause_pattern(r"\(young\)")


class G1FullGcGrammar(Grammar):
    """Serial full collection; only recognizable as G1 through its heap detail.

    1.305: [Full GC (System.gc())  21M->3142K(8192K), 0.0432240 secs] [Eden: ...
    Heap: 21.4M(25.0M)->3142.9K(8192.0K)], [Metaspace: 3021K->3021K(1056768K)]
    """

    kind = EventKind.G1_FULL_GC
    guards = ("[Full GC ", "[Eden: ")
    PATTERN: re.Pattern[str] = re.compile(
        EVENT_PREFIX
        + rf"\[Full GC (?:{trigger_block()} )? ?{unit_size_block('simple')}, {duration()}\]"
        + rf"{HEAP_DETAIL_BLOCK}(?:, \[(?P<perm_name>Perm|Metaspace): {size_block('perm')}\])?{EVENT_END}"
    )

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        return {
            **logged_at_start(match),
            "duration_us": secs_to_micros(match.group("duration")),
            "combined": unit_memory(match, "heap"),
            "perm": memory(match, "perm"),
            "perm_name": perm_name(match),
            "trigger": last_trigger(match, "trigger"),
        }


class G1RemarkGrammar(Grammar):
    """2971.469: [GC remark 2971.470: [GC ref-proc, 0.0000090 secs], 0.0040640 secs]"""

    kind = EventKind.G1_REMARK
    guards = ("[GC remark",)
    PATTERN: re.Pattern[str] = re.compile(
        EVENT_PREFIX + rf"\[GC remark(?:,| .*\],) {duration()}\]{EVENT_END}"
    )

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        return {
            **logged_at_start(match),
            "duration_us": secs_to_micros(match.group("duration")),
        }


class G1CleanupGrammar(Grammar):
    """2972.698: [GC cleanup 13G->12G(30G), 0.0358748 secs]"""

    kind = EventKind.G1_CLEANUP
    guards = ("[GC cleanup ",)
    PATTERN: re.Pattern[str] = re.compile(
        EVENT_PREFIX + rf"\[GC cleanup {unit_size_block('combined')}, {duration()}\]{EVENT_END}"
    )

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        return {
            **logged_at_start(match),
            "duration_us": secs_to_micros(match.group("duration")),
            "combined": unit_memory(match, "combined"),
        }


class G1ConcurrentGrammar(Grammar):
    """2.185: [GC concurrent-root-region-scan-start] 2.186: [GC concurrent-root-region-scan-end, 0.0008570 secs]"""

    kind = EventKind.G1_CONCURRENT
    guards = ("[GC concurrent-",)
    PATTERN: re.Pattern[str] = re.compile(
        EVENT_PREFIX
        + rf"(?:\[GC concurrent-(?P<start_phase>[a-z-]+?)-start\] (?:{DATESTAMP}: )?(?P<end_uptime>{UPTIME}): )?"
        + r"\[GC concurrent-(?P<phase>[a-z-]+?)"
        + rf"(?:-start\]|-end, {duration('wall')}\]|-abort\]|-reset-for-overflow\]){EVENT_END}"
    )

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        fields = logged_at_start(match)
        if (end_uptime := match.group("end_uptime")) is not None:
            fields["duration_us"] = (secs_to_millis(end_uptime) - fields["timestamp_ms"]) * 1000
        elif (wall := match.group("wall")) is not None:
            fields["duration_us"] = secs_to_micros(wall)
        return fields
