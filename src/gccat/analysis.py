"""Analysis rule engine: a fixed catalog of diagnostics over a closed Run."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Literal, TypeAlias

from pydantic import BaseModel, ConfigDict

from gccat.jvm import JvmOptions
from gccat.model import (
    EVACUATION_FAILURE_TRIGGERS,
    EXPLICIT_GC_TRIGGERS,
    Capability,
    EventKind,
    LogEvent,
    Trigger,
)
from gccat.stats import Statistics
from gccat.store import Run

logger = logging.getLogger(__name__)

Level: TypeAlias = Literal["error", "warn", "info"]
LEVELS: tuple[Level, ...] = ("error", "warn", "info")

# A check returns False/None (no finding), True, or the event the finding is about
RuleResult: TypeAlias = bool | LogEvent | None


class AnalysisFinding(BaseModel):
    """One diagnostic. The level is the first segment of the key."""

    model_config = ConfigDict(frozen=True)

    key: str
    message: str
    event: LogEvent | None = None

    @property
    def level(self) -> Level:
        level = self.key.split(".", 1)[0]
        if level not in LEVELS:
            raise ValueError(f"Unknown analysis level: {level}")
        return level  # type: ignore[return-value]


class RuleContext(BaseModel):
    """What a rule may look at."""

    model_config = ConfigDict(frozen=True)

    run: Run
    statistics: Statistics
    options: JvmOptions

    @property
    def kinds(self) -> set[EventKind]:
        return set(self.statistics.kinds)

    def has_trigger(self, *triggers: Trigger) -> bool:
        return any(trigger in self.statistics.trigger_counts for trigger in triggers)

    def first_with_trigger(self, triggers: Iterable[Trigger], capability: Capability | None = None) -> LogEvent | None:
        wanted = set(triggers)
        for event in self.run.events:
            if event.trigger in wanted and (capability is None or event.has(capability)):
                return event
        return None

    def uses_collector(self, family: str) -> bool:
        return (
            family in self.statistics.collector_families
            or self.options.collector == family
            or self.run.jvm.collector == family
        )

    @property
    def legacy_logging(self) -> bool:
        """Options are known and select the pre-JDK9 logging flags."""
        return bool(self.options.text) and not self.options.uses_unified_logging


class Rule(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    message: str
    check: Callable[[RuleContext], RuleResult]

    @property
    def level(self) -> Level:
        return AnalysisFinding(key=self.key, message=self.message).level


# ============================================================
# CHECKS
# ============================================================


def _time_warp(ctx: RuleContext) -> RuleResult:
    return ctx.run.time_warps[0].event if ctx.run.time_warps else None


def _cms_serial_old(ctx: RuleContext) -> RuleResult:
    explained = {
        Trigger.CONCURRENT_MODE_FAILURE,
        Trigger.PROMOTION_FAILED,
        Trigger.HEAP_DUMP_INITIATED_GC,
        Trigger.HEAP_INSPECTION_INITIATED_GC,
        *EXPLICIT_GC_TRIGGERS,
    }
    for event in ctx.run.events:
        if event.kind == EventKind.CMS_SERIAL_OLD and event.trigger not in explained:
            return event
    return None


def _serial_gc(ctx: RuleContext) -> RuleResult:
    return (
        bool(ctx.kinds & {EventKind.SERIAL_NEW, EventKind.SERIAL_OLD})
        or ctx.options.is_enabled("UseSerialGC")
        or ctx.run.jvm.collector == "Serial"
    )


def _cms_class_unloading_disabled(ctx: RuleContext) -> RuleResult:
    return ctx.uses_collector("CMS") and ctx.options.is_disabled("CMSClassUnloadingEnabled")


def _new_ratio_inverted(ctx: RuleContext) -> RuleResult:
    stats = ctx.statistics
    return stats.max_old_space_kb > 0 and stats.max_young_space_kb > stats.max_old_space_kb


def _gc_stopped_ratio(ctx: RuleContext) -> RuleResult:
    ratio = ctx.statistics.gc_stopped_ratio
    return ratio is not None and ratio < ctx.run.settings.gc_stopped_ratio_threshold


def _print_gc_details_missing(ctx: RuleContext) -> RuleResult:
    if ctx.kinds & {EventKind.VERBOSE_GC_YOUNG, EventKind.VERBOSE_GC_OLD}:
        return True
    return ctx.legacy_logging and not ctx.options.is_enabled("PrintGCDetails")


def _application_stopped_time_missing(ctx: RuleContext) -> RuleResult:
    return (
        ctx.legacy_logging
        and not ctx.options.is_enabled("PrintGCApplicationStoppedTime")
        and ctx.statistics.stopped_time_event_count == 0
    )


def _heap_min_not_equal_max(ctx: RuleContext) -> RuleResult:
    initial = ctx.options.initial_heap_size_bytes
    maximum = ctx.options.max_heap_size_bytes
    return initial is not None and maximum is not None and initial != maximum


# ============================================================
# CATALOG
# ============================================================

RULES: tuple[Rule, ...] = (
    # error
    Rule(
        key="error.time.warp",
        message="Time warp: a GC event starts before the previous one ends. The log may be "
        "several runs concatenated, or out of order (try --reorder).",
        check=_time_warp,
    ),
    Rule(
        key="error.cms.concurrent.mode.failure",
        message="CMS concurrent mode failure: the old generation filled before the concurrent "
        "collection finished, forcing a serial full collection. Start the cycle earlier "
        "(-XX:CMSInitiatingOccupancyFraction) or enlarge the old generation.",
        check=lambda ctx: ctx.has_trigger(Trigger.CONCURRENT_MODE_FAILURE),
    ),
    Rule(
        key="error.cms.promotion.failed",
        message="CMS promotion failed: the old generation could not absorb objects promoted "
        "from the young generation, usually because of fragmentation.",
        check=lambda ctx: ctx.has_trigger(Trigger.PROMOTION_FAILED),
    ),
    Rule(
        key="error.g1.evacuation.failure",
        message="G1 evacuation failure (to-space exhausted/overflow): there was no free region "
        "to copy live objects into. Increase the heap or -XX:G1ReservePercent.",
        check=lambda ctx: ctx.first_with_trigger(EVACUATION_FAILURE_TRIGGERS),
    ),
    Rule(
        key="error.cms.serial.old",
        message="CMS serial old collection with no explaining trigger: the CMS collector fell "
        "back to a single-threaded full collection.",
        check=_cms_serial_old,
    ),
    # warn
    Rule(
        key="warn.parallelism.inverted",
        message="Inverted parallelism: a parallel collection took more wall time than CPU time, "
        "so threads were waiting instead of collecting (too many GC threads, CPU starvation or "
        "swapping).",
        check=lambda ctx: ctx.statistics.worst_inverted_parallelism_event,
    ),
    Rule(
        key="warn.sys.gt.user",
        message="Sys time exceeds user time: the collection was dominated by kernel work "
        "(paging, I/O or memory contention).",
        check=lambda ctx: ctx.statistics.worst_sys_gt_user_event,
    ),
    Rule(
        key="warn.explicit.gc.serial",
        message="Explicit GC (System.gc()) runs a serial full collection. Remove the calls or "
        "add -XX:+DisableExplicitGC.",
        check=lambda ctx: ctx.first_with_trigger(EXPLICIT_GC_TRIGGERS, Capability.SERIAL),
    ),
    Rule(
        key="warn.explicit.gc.parallel",
        message="Explicit GC (System.gc()) runs parallel full collections. Remove the calls or "
        "add -XX:+DisableExplicitGC.",
        check=lambda ctx: ctx.first_with_trigger(EXPLICIT_GC_TRIGGERS, Capability.PARALLEL),
    ),
    Rule(
        key="warn.explicit.gc.disabled",
        message="Explicit GC is disabled (-XX:+DisableExplicitGC). RMI distributed GC and "
        "direct buffer reclamation rely on System.gc().",
        check=lambda ctx: ctx.options.is_enabled("DisableExplicitGC"),
    ),
    Rule(
        key="warn.serial.gc",
        message="The serial collector is in use. It is single-threaded and only suited to "
        "small heaps on a single CPU.",
        check=_serial_gc,
    ),
    Rule(
        key="warn.parallel.serial.old",
        message="The parallel collector is using a serial old collection (PSOldGen). Enable "
        "parallel old collection with -XX:+UseParallelOldGC.",
        check=lambda ctx: EventKind.PARALLEL_SERIAL_OLD in ctx.kinds,
    ),
    Rule(
        key="warn.cms.incremental.mode",
        message="CMS incremental mode (-XX:+CMSIncrementalMode) is deprecated and intended for "
        "machines with one or two CPUs.",
        check=lambda ctx: ctx.options.is_enabled("CMSIncrementalMode"),
    ),
    Rule(
        key="warn.cms.class.unloading.disabled",
        message="CMS class unloading is disabled (-XX:-CMSClassUnloadingEnabled). Classes are "
        "only unloaded by full collections.",
        check=_cms_class_unloading_disabled,
    ),
    Rule(
        key="warn.heap.dump.initiated",
        message="Heap dump or heap inspection initiated collections were found (jmap, "
        "-XX:+HeapDumpOnOutOfMemoryError or jcmd).",
        check=lambda ctx: ctx.first_with_trigger(
            (Trigger.HEAP_DUMP_INITIATED_GC, Trigger.HEAP_INSPECTION_INITIATED_GC)
        ),
    ),
    Rule(
        key="warn.metaspace.threshold",
        message="Metaspace threshold collections were found. Set -XX:MetaspaceSize high enough "
        "to avoid full collections during class loading.",
        check=lambda ctx: ctx.has_trigger(Trigger.METADATA_GC_THRESHOLD),
    ),
    Rule(
        key="warn.g1.humongous.allocation",
        message="G1 humongous allocations triggered collections. Objects of half a region or "
        "more are allocated directly in the old generation; consider a larger "
        "-XX:G1HeapRegionSize.",
        check=lambda ctx: ctx.has_trigger(Trigger.G1_HUMONGOUS_ALLOCATION),
    ),
    Rule(
        key="warn.new.ratio.inverted",
        message="The young generation is larger than the old generation.",
        check=_new_ratio_inverted,
    ),
    Rule(
        key="warn.gc.stopped.ratio",
        message="Most stopped time is not due to GC. Look for other safepoint operations "
        "(biased lock revocation, deoptimization, thread dumps).",
        check=_gc_stopped_ratio,
    ),
    Rule(
        key="warn.print.gc.details.missing",
        message="GC details are not logged. Add -XX:+PrintGCDetails.",
        check=_print_gc_details_missing,
    ),
    Rule(
        key="warn.application.stopped.time.missing",
        message="Application stopped time is not logged. Add -XX:+PrintGCApplicationStoppedTime "
        "to see all safepoint pauses, not only GC.",
        check=_application_stopped_time_missing,
    ),
    Rule(
        key="warn.heap.min.not.equal.max",
        message="Initial heap size differs from the maximum. Resizing the heap requires full "
        "collections; set -Xms equal to -Xmx.",
        check=_heap_min_not_equal_max,
    ),
    Rule(
        key="warn.biased.locking.disabled",
        message="Biased locking is disabled (-XX:-UseBiasedLocking).",
        check=lambda ctx: ctx.options.is_disabled("UseBiasedLocking"),
    ),
    Rule(
        key="warn.adaptive.size.policy.disabled",
        message="Adaptive size policy is disabled (-XX:-UseAdaptiveSizePolicy). Generation sizes "
        "will not adjust to the workload.",
        check=lambda ctx: ctx.options.is_disabled("UseAdaptiveSizePolicy"),
    ),
    # info
    Rule(
        key="info.perm.gen",
        message="The permanent generation is in use (JDK 7 or earlier).",
        check=lambda ctx: ctx.statistics.perm is not None,
    ),
    Rule(
        key="info.gc.locker",
        message="GCLocker initiated collections were found: a collection was delayed while JNI "
        "critical regions were active.",
        check=lambda ctx: ctx.has_trigger(Trigger.GCLOCKER_INITIATED_GC),
    ),
    Rule(
        key="info.first.timestamp.threshold.exceeded",
        message="The first event is well after JVM start, so the log is incomplete and "
        "statistics cover only part of the run.",
        check=lambda ctx: ctx.statistics.run_start_ms > 0,
    ),
    Rule(
        key="info.unaccounted.options.disabled",
        message="Disabled options not otherwise analyzed:",
        check=lambda ctx: bool(ctx.options.unaccounted_disabled_options),
    ),
)

# Findings whose message takes a runtime suffix
UNACCOUNTED_OPTIONS_KEY = "info.unaccounted.options.disabled"


def _render(rule: Rule, result: RuleResult, ctx: RuleContext) -> AnalysisFinding:
    event = result if isinstance(result, LogEvent) else None
    message = rule.message
    if rule.key == UNACCOUNTED_OPTIONS_KEY:
        message = f"{message} {', '.join(ctx.options.unaccounted_disabled_options)}."
    return AnalysisFinding(key=rule.key, message=message, event=event)


def analyze(
    run: Run,
    statistics: Statistics | None = None,
    *,
    rules: Iterable[Rule] = RULES,
) -> list[AnalysisFinding]:
    """Evaluate every rule; findings come back error first, then warn, then info.

    Within a level, catalog order is kept. A key contributes at most one finding.
    """
    ctx = RuleContext(
        run=run,
        statistics=statistics if statistics is not None else run.statistics,
        options=run.jvm.jvm_options(),
    )
    findings: dict[str, AnalysisFinding] = {}
    for rule in rules:
        if rule.key in findings:
            continue
        result = rule.check(ctx)
        if result is None or result is False:
            continue
        findings[rule.key] = _render(rule, result, ctx)

    ordered = sorted(findings.values(), key=lambda finding: LEVELS.index(finding.level))
    logger.info(
        "Analysis: %s",
        ", ".join(f"{level}={sum(1 for f in ordered if f.level == level)}" for level in LEVELS),
    )
    return ordered


def highest_level(findings: Iterable[AnalysisFinding]) -> Level | None:
    """Most severe level present, or None for no findings."""
    levels = {finding.level for finding in findings}
    for level in LEVELS:
        if level in levels:
            return level
    return None
