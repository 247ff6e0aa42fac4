"""Legacy (JDK 5-8) grammars for the Serial, Parallel and CMS collectors,
plus collector-agnostic lines: -verbose:gc output, safepoint stopped time
and the log header.
"""

from __future__ import annotations

import re
from typing import Any

from gccat.grammars.base import (
    Grammar,
    last_trigger,
    logged_at_end,
    logged_at_start,
    memory,
    perm_name,
    unit_memory,
)
from gccat.model import EventKind
from gccat.patterns import (
    DATESTAMP,
    DECIMAL,
    EVENT_END,
    EVENT_PREFIX,
    ICMS_DC_BLOCK,
    INNER_PREFIX,
    UPTIME,
    duration,
    size_block,
    trigger_block,
    unit_size_block,
)
from gccat.units import secs_to_micros, secs_to_millis

YG_OCCUPANCY = r"\[YG occupancy: \d+ K \(\d+ K\)\]"

# ============================================================
# HEADER
# ============================================================


class HeaderVersionGrammar(Grammar):
    """Java HotSpot(TM) 64-Bit Server VM (25.102-b14) for linux-amd64 JRE (1.8.0_102-b14), ..."""

    kind = EventKind.HEADER_VERSION
    guards = (" VM (",)
    PATTERN: re.Pattern[str] = re.compile(
        r"^(?P<version>(?:Java HotSpot\(TM\)|OpenJDK) .*VM \(.+\) for .+?)[ ]*$"
    )

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        return {"timestamp_ms": 0, "detail": match.group("version")}


class HeaderMemoryGrammar(Grammar):
    """Memory: 4k page, physical 65806300k(58281908k free), swap 16777212k(16777212k free)"""

    kind = EventKind.HEADER_MEMORY
    guards = ("Memory: ",)
    PATTERN: re.Pattern[str] = re.compile(
        r"^(?P<memory>Memory: \d+k page, physical \d+k\(\d+k free\).*?)[ ]*$"
    )

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        return {"timestamp_ms": 0, "detail": match.group("memory")}


class HeaderCommandLineFlagsGrammar(Grammar):
    kind = EventKind.HEADER_COMMAND_LINE_FLAGS
    guards = ("CommandLine flags: ",)
    PATTERN: re.Pattern[str] = re.compile(r"^CommandLine flags: (?P<options>.+?)[ ]*$")

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        return {"timestamp_ms": 0, "detail": match.group("options")}


# ============================================================
# SERIAL
# ============================================================


class SerialNewGrammar(Grammar):
    """10.204: [GC 10.204: [DefNew: 36825K->4352K(39424K), 0.0224830 secs] 44983K->14441K(126848K), 0.0225800 secs]"""

    kind = EventKind.SERIAL_NEW
    guards = ("[DefNew: ",)
    PATTERN: re.Pattern[str] = re.compile(
        EVENT_PREFIX
        + rf"\[GC ?(?:{trigger_block()} ?)?{INNER_PREFIX}"
        + rf"\[DefNew: {size_block('young')}, {duration('young_duration')}\] "
        + rf"{size_block('combined')}, {duration()}\]{EVENT_END}"
    )

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        young = memory(match, "young")
        combined = memory(match, "combined")
        return {
            **logged_at_start(match),
            "duration_us": secs_to_micros(match.group("duration")),
            "young": young,
            "old": combined.minus(young),
            "combined": combined,
            "trigger": last_trigger(match, "trigger"),
        }


class SerialOldGrammar(Grammar):
    """Tenured collection, optionally preceded by a failed DefNew attempt.

    187.159: [Full GC 187.160: [Tenured: 97171K->102832K(815616K), 0.6977443 secs]
    152213K->102832K(907328K), [Perm : 49152K->49154K(49158K)], 0.6929258 secs]
    """

    kind = EventKind.SERIAL_OLD
    guards = ("[Tenured: ",)
    PATTERN: re.Pattern[str] = re.compile(
        EVENT_PREFIX
        + rf"\[(?:Full )?GC(?: {trigger_block()})? ?"
        + rf"(?:{INNER_PREFIX}\[DefNew(?: \((?P<promotion_trigger>promotion failed)\) )?: "
        + rf"{size_block('young')}, {duration('young_duration')}\])?"
        + rf"{INNER_PREFIX}\[Tenured: {size_block('old')}, {duration('old_duration')}\] "
        + rf"{size_block('combined')}, \[(?P<perm_name>Perm |Metaspace): {size_block('perm')}\], "
        + rf"{duration()}\]{EVENT_END}"
    )

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        old = memory(match, "old")
        combined = memory(match, "combined")
        return {
            **logged_at_start(match),
            "duration_us": secs_to_micros(match.group("duration")),
            # The DefNew block (if any) reports the aborted young attempt
            "young": combined.minus(old),
            "old": old,
            "combined": combined,
            "perm": memory(match, "perm"),
            "perm_name": perm_name(match),
            "trigger": last_trigger(match, "trigger", "promotion_trigger"),
        }


# ============================================================
# PARALLEL
# ============================================================


class ParallelScavengeGrammar(Grammar):
    """1.219: [GC (Allocation Failure) [PSYoungGen: 64000K->10688K(74240K)] 64000K->12153K(245760K), 0.0141891 secs]"""

    kind = EventKind.PARALLEL_SCAVENGE
    guards = ("[PSYoungGen: ",)
    PATTERN: re.Pattern[str] = re.compile(
        EVENT_PREFIX
        + rf"\[GC(?:--)? (?:{trigger_block()} )?(?:--)?\[PSYoungGen: {size_block('young')}\] "
        + rf"{size_block('combined')}, {duration()}\]{EVENT_END}"
    )

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        young = memory(match, "young")
        combined = memory(match, "combined")
        return {
            **logged_at_start(match),
            "duration_us": secs_to_micros(match.group("duration")),
            "young": young,
            "old": combined.minus(young),
            "combined": combined,
            "trigger": last_trigger(match, "trigger"),
        }


def _parallel_full_pattern(old_space: str) -> re.Pattern[str]:
    return re.compile(
        EVENT_PREFIX
        + rf"\[Full GC (?:{trigger_block()} )?\[PSYoungGen: {size_block('young')}\] "
        + rf"\[{old_space}: {size_block('old')}\] {size_block('combined')},? "
        + rf"\[(?P<perm_name>PSPermGen|Metaspace): {size_block('perm')}\], {duration()}\]{EVENT_END}"
    )


class _ParallelFullGrammar(Grammar):
    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        return {
            **logged_at_start(match),
            "duration_us": secs_to_micros(match.group("duration")),
            "young": memory(match, "young"),
            "old": memory(match, "old"),
            "combined": memory(match, "combined"),
            "perm": memory(match, "perm"),
            "perm_name": perm_name(match),
            "trigger": last_trigger(match, "trigger"),
        }


class ParallelCompactingOldGrammar(_ParallelFullGrammar):
    """2182.541: [Full GC [PSYoungGen: 1940K->0K(98560K)] [ParOldGen: 813929K->422305K(815616K)]
    815869K->422305K(914176K) [PSPermGen: 81960K->81783K(164352K)], 2.4749181 secs]
    """

    kind = EventKind.PARALLEL_COMPACTING_OLD
    guards = ("[ParOldGen: ",)
    PATTERN = _parallel_full_pattern("ParOldGen")


class ParallelSerialOldGrammar(_ParallelFullGrammar):
    kind = EventKind.PARALLEL_SERIAL_OLD
    guards = ("[PSOldGen: ",)
    PATTERN = _parallel_full_pattern("PSOldGen")


# ============================================================
# CMS
# ============================================================


class CmsSerialOldGrammar(Grammar):
    """Stop-the-world fallback of CMS: promotion failure or concurrent mode failure.

    44.684: [GC 44.684: [ParNew (promotion failed): 244553K->244553K(245760K), 0.1147060 secs]44.799:
    [CMS: 523184K->334212K(786432K), 2.6413340 secs] 767737K->334212K(1032192K),
    [CMS Perm : 7962K->7962K(21248K)], 2.7562660 secs]
    """

    kind = EventKind.CMS_SERIAL_OLD
    guards = ("[CMS",)
    PATTERN: re.Pattern[str] = re.compile(
        EVENT_PREFIX
        + rf"\[(?:Full )?GC(?: {trigger_block()})? ?"
        + rf"(?:{INNER_PREFIX}\[ParNew(?: \((?P<promotion_trigger>promotion failed)\))?: "
        + rf"{size_block('young')}, {duration('young_duration')}\])?"
        + rf"{INNER_PREFIX}\[CMS(?: \((?P<cms_trigger>concurrent mode failure)\))?: "
        + rf"{size_block('old')}, {duration('old_duration')}\] {size_block('combined')}{ICMS_DC_BLOCK}, "
        + rf"\[(?P<perm_name>CMS Perm |Metaspace): {size_block('perm')}\]{ICMS_DC_BLOCK}, "
        + rf"{duration()}\]{EVENT_END}"
    )

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        old = memory(match, "old")
        combined = memory(match, "combined")
        return {
            **logged_at_start(match),
            "duration_us": secs_to_micros(match.group("duration")),
            "young": combined.minus(old),
            "old": old,
            "combined": combined,
            "perm": memory(match, "perm"),
            "perm_name": perm_name(match),
            "trigger": last_trigger(match, "trigger", "promotion_trigger", "cms_trigger"),
        }


class ParNewGrammar(Grammar):
    """Young collection of the CMS collector.

    20.189: [GC 20.190: [ParNew: 86199K->8454K(91712K), 0.0375060 secs] 89399K->11655K(907328K), 0.0387074 secs]

    With -XX:+CMSScavengeBeforeRemark the young collection is wrapped in a
    "[GC (CMS Final Remark) [YG occupancy: ...]" prefix.
    """

    kind = EventKind.PAR_NEW
    guards = ("[ParNew",)
    PATTERN: re.Pattern[str] = re.compile(
        EVENT_PREFIX
        + rf"(?:\[GC(?: {trigger_block('remark_trigger')})? ?{YG_OCCUPANCY}{INNER_PREFIX})?"
        + rf"\[(?:Full ?)?GC ?(?:{trigger_block()} ?)?{INNER_PREFIX}"
        + rf"\[ParNew(?: \((?P<promotion_trigger>promotion failed)\))?: "
        + rf"{size_block('young')}, {duration('young_duration')}\] "
        + rf"{size_block('combined')}{ICMS_DC_BLOCK}, {duration()}\]{EVENT_END}"
    )

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        young = memory(match, "young")
        combined = memory(match, "combined")
        return {
            **logged_at_start(match),
            # Outer duration covers the whole pause, not just the ParNew phase
            "duration_us": secs_to_micros(match.group("duration")),
            "young": young,
            "old": combined.minus(young),
            "combined": combined,
            "trigger": last_trigger(match, "remark_trigger", "trigger", "promotion_trigger"),
        }


class ParNewRemarkScavengeGrammar(Grammar):
    """-XX:+CMSScavengeBeforeRemark young collection without -XX:+PrintGCDetails.

    There is no [ParNew block; the inner block is the whole heap.

    30.385: [GC (CMS Final Remark) 30.385: [GC (CMS Final Remark) 890910K->620060K(7992832K), 0.1223879 secs]
    620060K(7992832K), 0.2328529 secs]
    """

    kind = EventKind.PAR_NEW
    guards = ("[GC (CMS Final Remark) ",)
    PATTERN: re.Pattern[str] = re.compile(
        EVENT_PREFIX
        + rf"\[GC \((?P<trigger>CMS Final Remark)\) {INNER_PREFIX}\[GC \(CMS Final Remark\)[ ]+"
        + rf"{size_block('combined')}, {duration('scavenge_duration')}\] \d+K\(\d+K\){ICMS_DC_BLOCK}, "
        + rf"{duration()}\]{EVENT_END}"
    )

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        return {
            **logged_at_start(match),
            "duration_us": secs_to_micros(match.group("duration")),
            "combined": memory(match, "combined"),
            "trigger": last_trigger(match, "trigger"),
        }


class CmsInitialMarkGrammar(Grammar):
    """8.722: [GC (CMS Initial Mark) [1 CMS-initial-mark: 0K(989632K)] 187663K(1986432K), 0.0157899 secs]"""

    kind = EventKind.CMS_INITIAL_MARK
    guards = ("CMS-initial-mark",)
    PATTERN: re.Pattern[str] = re.compile(
        EVENT_PREFIX
        + rf"\[GC (?:{trigger_block()} )?\[1 CMS-initial-mark: \d+K\(\d+K\)\] \d+K\(\d+K\), "
        + rf"{duration()}\]{EVENT_END}"
    )

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        return {
            **logged_at_start(match),
            "duration_us": secs_to_micros(match.group("duration")),
            "trigger": last_trigger(match, "trigger"),
        }


class CmsRemarkGrammar(Grammar):
    """253.102: [GC[YG occupancy: 16172 K (149120 K)]253.102: [Rescan (parallel) , 0.0020880 secs]...
    [1 CMS-remark: 4133273K(8218624K)] 4149445K(8367104K), 0.0036940 secs]
    """

    kind = EventKind.CMS_REMARK
    guards = ("CMS-remark",)
    PATTERN: re.Pattern[str] = re.compile(
        EVENT_PREFIX
        + rf"\[GC(?: {trigger_block()})? ?{YG_OCCUPANCY}.*?"
        + rf"\[1 CMS-remark: \d+K\(\d+K\)\] \d+K\(\d+K\), {duration()}\]{EVENT_END}"
    )

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        return {
            **logged_at_start(match),
            "duration_us": secs_to_micros(match.group("duration")),
            "trigger": last_trigger(match, "trigger"),
        }


class CmsConcurrentGrammar(Grammar):
    """A concurrent phase marker, or a start marker merged with its end record.

    251.781: [CMS-concurrent-mark-start] 252.415: [CMS-concurrent-mark: 0.612/0.634 secs]
    """

    kind = EventKind.CMS_CONCURRENT
    guards = ("[CMS-concurrent-",)
    PATTERN: re.Pattern[str] = re.compile(
        EVENT_PREFIX
        + rf"(?:\[CMS-concurrent-(?P<start_phase>[a-z-]+?)-start\] (?:{DATESTAMP}: )?(?P<end_uptime>{UPTIME}): )?"
        + rf"\[CMS-concurrent-(?P<phase>[a-z-]+?)"
        + rf"(?:-start\]|: (?P<cpu>{DECIMAL})/(?P<wall>{DECIMAL}) secs\]){EVENT_END}"
    )

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        fields = logged_at_start(match)
        if (end_uptime := match.group("end_uptime")) is not None:
            fields["duration_us"] = (secs_to_millis(end_uptime) - fields["timestamp_ms"]) * 1000
        elif (wall := match.group("wall")) is not None:
            fields["duration_us"] = secs_to_micros(wall)
        return fields


# ============================================================
# COLLECTOR-AGNOSTIC
# ============================================================


def _verbose_pattern(tag: str) -> re.Pattern[str]:
    return re.compile(
        EVENT_PREFIX
        + rf"\[{tag} (?:{trigger_block()} )? ?{unit_size_block('combined')}, {duration()}\]{EVENT_END}"
    )


class _VerboseGrammar(Grammar):
    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        return {
            **logged_at_start(match),
            "duration_us": secs_to_micros(match.group("duration")),
            "combined": unit_memory(match, "combined"),
            "trigger": last_trigger(match, "trigger"),
        }


class VerboseGcOldGrammar(_VerboseGrammar):
    """2.847: [Full GC 13M->12M(32M), 0.0452730 secs]"""

    kind = EventKind.VERBOSE_GC_OLD
    guards = ("[Full GC ",)
    PATTERN = _verbose_pattern("Full GC")


class VerboseGcYoungGrammar(_VerboseGrammar):
    """2205570.508: [GC 1726387K->773247K(3097984K), 0.2318035 secs]"""

    kind = EventKind.VERBOSE_GC_YOUNG
    guards = ("[GC ",)
    PATTERN = _verbose_pattern("GC")


class ApplicationStoppedTimeGrammar(Grammar):
    """-XX:+PrintGCApplicationStoppedTime, logged when the safepoint ends.

    2.000: Total time for which application threads were stopped: 0.0001210 seconds
    """

    kind = EventKind.APPLICATION_STOPPED_TIME
    guards = ("Total time for which application threads were stopped",)
    PATTERN: re.Pattern[str] = re.compile(
        EVENT_PREFIX
        + rf"Total time for which application threads were stopped: (?P<stopped>{DECIMAL}) seconds"
        + rf"(?:, Stopping threads took: (?P<stopping>{DECIMAL}) seconds)?[ ]*$"
    )

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        return logged_at_end(match, secs_to_micros(match.group("stopped")))


class ApplicationConcurrentTimeGrammar(Grammar):
    """-XX:+PrintGCApplicationConcurrentTime output; recognized and discarded."""

    kind = EventKind.APPLICATION_CONCURRENT_TIME
    guards = ("Application time: ",)
    PATTERN: re.Pattern[str] = re.compile(
        EVENT_PREFIX + rf"Application time: {DECIMAL} seconds[ ]*$"
    )

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        return {"timestamp_ms": secs_to_millis(match.group("uptime"))}
