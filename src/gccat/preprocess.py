"""Preprocessor: raw GC log text in, canonical one-event-per-line text out.

Pure text transform. It never validates events; a bad merge simply fails
classification downstream and shows up as an unidentified line.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import datetime, timedelta

from gccat.errors import MissingJvmStartError
from gccat.jvm import parse_datestamp
from gccat.patterns import DATESTAMP, DECIMAL, SIZE, UPTIME
from gccat.units import millis_to_secs_text

logger = logging.getLogger(__name__)

# Unified init banners and details that carry no event data
UNIFIED_THROWAWAY_PREFIXES = (
    "Address Space",
    "Alignments:",
    "Available space on backing filesystem",
    "CDS ",
    "CPUs:",
    "Card Table entry size",
    "Compressed Oops:",
    "Compressed class space",
    "Concurrent Refinement Workers:",
    "Concurrent Workers:",
    "Heap Backing",
    "Heap Initial Capacity:",
    "Heap Max Capacity:",
    "Heap Min Capacity:",
    "Heap Region Size:",
    "Heap address:",
    "Heap region size:",
    "Humongous object threshold",
    "Initial Refinement Zone",
    "Initializing ",
    "Large Page Support:",
    "Mark Stack",
    "Min heap",
    "Initial heap",
    "Max heap",
    "NUMA Support:",
    "Narrow klass",
    "Parallel Workers:",
    "Periodic GC:",
    "Pre-touch:",
    "Runtime Workers",
)


class Preprocessor:
    """Rewrites a raw GC log into canonical form.

    * datestamp-only lines gain an uptime derived from the JVM start time;
      without one they pass through unchanged and are counted in
      ``unresolved_datestamps``
    * legacy continuation lines ([Eden: ...], [Times: ...]) are folded onto
      their event line; indented G1 phase details are dropped
    * a CMS concurrent record interleaved into a ParNew/CMS line is split
      out and the interrupted line is joined with its continuation
    * concurrent "-start" markers are merged with their matching end record
    * unified decorators are reduced to [datestamp][uptime s]; per-GC
      Metaspace and User/Sys/Real lines are folded into the pause summary
      and detail lines are dropped
    """

    LEGACY_DATESTAMP_ONLY: re.Pattern[str] = re.compile(
        rf"^(?P<datestamp>{DATESTAMP}): (?!{UPTIME}: )"
    )

    UNIFIED_DECORATOR: re.Pattern[str] = re.compile(
        rf"^(?:\[(?P<datestamp>{DATESTAMP})\])?(?:\[(?P<uptime>{UPTIME})s\])?"
        r"(?:\[(?P<uptimemillis>\d+)ms\])?(?:\[[\w ,.-]*\])* (?P<message>.*)$"
    )

    INTERLEAVED_CONCURRENT: re.Pattern[str] = re.compile(
        r"^(?P<head>.+\[(?:CMS|ParNew|DefNew)(?: \(promotion failed\))?)"
        rf"(?P<concurrent>(?:{DATESTAMP}: )?(?:{UPTIME}: )?\[CMS-concurrent-.+)$"
    )

    LINE_PREFIX = rf"^(?:{DATESTAMP}: )?(?:{UPTIME}: )?"
    CMS_START: re.Pattern[str] = re.compile(
        LINE_PREFIX + r"\[CMS-concurrent-(?P<phase>[a-z-]+)-start\][ ]*$"
    )
    CMS_END: re.Pattern[str] = re.compile(LINE_PREFIX + r"\[CMS-concurrent-(?P<phase>[a-z-]+): ")
    G1_START: re.Pattern[str] = re.compile(
        LINE_PREFIX + r"\[GC concurrent-(?P<phase>[a-z-]+)-start\][ ]*$"
    )
    G1_END: re.Pattern[str] = re.compile(LINE_PREFIX + r"\[GC concurrent-(?P<phase>[a-z-]+)-end, ")

    UNIFIED_GC_ID: re.Pattern[str] = re.compile(r"^GC\((?P<gc_id>\d+)\) (?P<body>.*)$")
    UNIFIED_SUMMARY_SIZES: re.Pattern[str] = re.compile(
        rf" {SIZE}->{SIZE}\({SIZE}\) {DECIMAL}ms$"
    )
    UNIFIED_DURATION: re.Pattern[str] = re.compile(rf" {DECIMAL}ms$")
    METASPACE_JDK9: re.Pattern[str] = re.compile(
        r"^Metaspace: (?P<before>\d+)K->(?P<after>\d+)K\((?P<capacity>\d+)K\)"
    )
    METASPACE_JDK17: re.Pattern[str] = re.compile(
        r"^Metaspace: (?P<before>\d+)K\(\d+K\)->(?P<after>\d+)K\((?P<capacity>\d+)K\)"
    )

    def __init__(
        self, jvm_start: datetime | None = None, resolve_datestamps: bool | None = None
    ) -> None:
        if resolve_datestamps is None:
            resolve_datestamps = jvm_start is not None
        if resolve_datestamps and jvm_start is None:
            raise MissingJvmStartError()
        self.jvm_start = jvm_start
        self.resolve_datestamps = resolve_datestamps
        self._reset()

    def _reset(self) -> None:
        self.unresolved_datestamps = 0
        self._out: list[str] = []
        self._pending_head: str | None = None
        self._open_starts: dict[tuple[str, str], str] = {}
        self._pending_summary: tuple[int, str] | None = None
        self._metaspace: dict[int, str] = {}

    def preprocess(self, lines: Iterable[str]) -> list[str]:
        """Return the canonical log for ``lines``."""
        self._reset()
        raw_count = 0
        for raw in lines:
            raw_count += 1
            line = raw.rstrip("\r\n")
            if not line.strip():
                continue
            if (match := self.UNIFIED_DECORATOR.match(line)) and (
                match.group("datestamp") or match.group("uptime") or match.group("uptimemillis")
            ):
                self._unified(line, match)
            else:
                self._legacy(line)

        if self._pending_head is not None:
            self._emit(self._pending_head)
            self._pending_head = None
        self._flush_summary()
        # Starts whose end never arrived
        for start in self._open_starts.values():
            self._out.append(start)
        self._open_starts.clear()

        if self.unresolved_datestamps:
            logger.warning(
                "%d datestamp-only line(s) could not be placed on the uptime axis%s",
                self.unresolved_datestamps,
                "" if self.resolve_datestamps else " (no JVM start time given)",
            )
        logger.info("Preprocessed %d raw lines into %d canonical lines", raw_count, len(self._out))
        return self._out

    def _emit(self, line: str) -> None:
        self._flush_summary()
        self._out.append(line)

    # ============================================================
    # DATESTAMPS
    # ============================================================

    def _uptime_for(self, datestamp: str) -> str | None:
        if not self.resolve_datestamps or self.jvm_start is None:
            return None
        try:
            stamp = parse_datestamp(datestamp)
        except ValueError:
            return None
        delta = stamp - self.jvm_start
        if delta < timedelta(0):
            return None
        return millis_to_secs_text(delta // timedelta(milliseconds=1))

    def _resolve_legacy(self, line: str) -> str:
        if not (match := self.LEGACY_DATESTAMP_ONLY.match(line)):
            return line
        if (uptime := self._uptime_for(match.group("datestamp"))) is None:
            self.unresolved_datestamps += 1
            return line
        return f"{match.group('datestamp')}: {uptime}: {line[match.end():]}"

    # ============================================================
    # LEGACY LOGGING
    # ============================================================

    def _legacy(self, line: str) -> None:
        stripped = line.strip()

        if self._pending_head is not None:
            head, self._pending_head = self._pending_head, None
            if line.startswith(": ") or stripped.startswith(
                ("(concurrent mode failure)", "(promotion failed)")
            ):
                self._emit(head + line)
                return
            self._emit(head)

        # Continuation of the previous event
        if stripped.startswith(("[Eden:", "[Times:")) and line[0].isspace():
            if self._out:
                self._out[-1] = f"{self._out[-1]} {stripped}"
            return

        # G1 per-phase details
        if line[0].isspace() and stripped.startswith("["):
            return

        line = self._resolve_legacy(line)

        if match := self.INTERLEAVED_CONCURRENT.match(line):
            self._pending_head = match.group("head")
            self._concurrent(self._resolve_legacy(match.group("concurrent")))
            return

        self._concurrent(line)

    def _concurrent(self, line: str) -> None:
        """Hold start markers until their end record arrives, then emit both as one line."""
        for family, start_pattern, end_pattern in (
            ("CMS", self.CMS_START, self.CMS_END),
            ("G1", self.G1_START, self.G1_END),
        ):
            if match := start_pattern.match(line):
                key = (family, match.group("phase"))
                if (unmatched := self._open_starts.pop(key, None)) is not None:
                    self._emit(unmatched)
                self._open_starts[key] = line
                return
            if match := end_pattern.match(line):
                key = (family, match.group("phase"))
                if (start := self._open_starts.pop(key, None)) is not None:
                    self._emit(f"{start} {line}")
                else:
                    self._emit(line)
                return
        self._emit(line)

    # ============================================================
    # UNIFIED LOGGING
    # ============================================================

    def _unified(self, line: str, match: re.Match[str]) -> None:
        datestamp = match.group("datestamp")
        uptime = match.group("uptime")
        if uptime is None:
            if (millis := match.group("uptimemillis")) is not None:
                uptime = millis_to_secs_text(int(millis))
            elif (uptime := self._uptime_for(datestamp)) is None:
                self.unresolved_datestamps += 1
                self._emit(line)
                return

        decorator = f"[{datestamp}][{uptime}s]" if datestamp else f"[{uptime}s]"
        message = match.group("message").strip()

        if gc_match := self.UNIFIED_GC_ID.match(message):
            self._unified_gc(decorator, int(gc_match.group("gc_id")), gc_match.group("body"), message)
            return

        if message.startswith(UNIFIED_THROWAWAY_PREFIXES):
            return
        self._emit(f"{decorator} {message}")

    def _unified_gc(self, decorator: str, gc_id: int, body: str, message: str) -> None:
        if body.startswith("Metaspace: "):
            if meta := self.METASPACE_JDK9.match(body) or self.METASPACE_JDK17.match(body):
                self._metaspace[gc_id] = (
                    f"{meta.group('before')}K->{meta.group('after')}K({meta.group('capacity')}K)"
                )
            return

        if body.startswith("User="):
            if self._pending_summary is not None and self._pending_summary[0] == gc_id:
                self._pending_summary = (gc_id, f"{self._pending_summary[1]} {body}")
                self._flush_summary()
            return

        if body.startswith("Pause ") and (sizes := self.UNIFIED_SUMMARY_SIZES.search(message)):
            if (metaspace := self._metaspace.pop(gc_id, None)) is not None:
                message = f"{message[:sizes.start()]} Metaspace: {metaspace}{message[sizes.start():]}"
            self._flush_summary()
            self._pending_summary = (gc_id, f"{decorator} {message}")
            return

        if body.startswith("Concurrent ") and self.UNIFIED_DURATION.search(body):
            self._emit(f"{decorator} {message}")
        # Anything else under GC(n) is phase/region detail or a concurrent start marker

    def _flush_summary(self) -> None:
        if self._pending_summary is not None:
            self._out.append(self._pending_summary[1])
            self._pending_summary = None


def preprocess(
    lines: Iterable[str], jvm_start: datetime | None = None
) -> list[str]:
    """Canonicalize ``lines``; datestamps are resolved when ``jvm_start`` is given."""
    return Preprocessor(jvm_start=jvm_start).preprocess(lines)
