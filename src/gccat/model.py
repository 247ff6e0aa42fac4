"""Event model: capabilities, triggers, event kinds and the LogEvent record."""

from __future__ import annotations

import enum
from typing import Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, model_validator

from gccat.units import micros_to_millis

# ============================================================
# TYPE ALIASES
# ============================================================

KilobytesValue: TypeAlias = int
CollectorFamily: TypeAlias = Literal["Serial", "Parallel", "ParNew", "CMS", "G1", "Shenandoah", "Z"]
PermName: TypeAlias = Literal["Perm", "Metaspace"]

# ============================================================
# CAPABILITIES & VOCABULARIES
# ============================================================


class Capability(enum.Flag):
    """What an event kind is and what data its grammar carries."""

    BLOCKING = enum.auto()
    CONCURRENT = enum.auto()
    STOPPED_TIME = enum.auto()
    PARALLEL = enum.auto()
    SERIAL = enum.auto()
    YOUNG = enum.auto()
    OLD = enum.auto()
    COMBINED = enum.auto()
    PERM = enum.auto()
    TRIGGER = enum.auto()
    TIMES = enum.auto()
    HEADER = enum.auto()


class Trigger(str, enum.Enum):
    """GC causes, valued by their literal log text."""

    ALLOCATION_FAILURE = "Allocation Failure"
    SYSTEM_GC = "System.gc()"
    SYSTEM = "System"
    METADATA_GC_THRESHOLD = "Metadata GC Threshold"
    METADATA_GC_CLEAR_SOFT_REFERENCES = "Metadata GC Clear Soft References"
    ERGONOMICS = "Ergonomics"
    HEAP_DUMP_INITIATED_GC = "Heap Dump Initiated GC"
    HEAP_INSPECTION_INITIATED_GC = "Heap Inspection Initiated GC"
    GCLOCKER_INITIATED_GC = "GCLocker Initiated GC"
    LAST_DITCH_COLLECTION = "Last ditch collection"
    JVMTI_FORCE_GC = "JvmtiEnv ForceGarbageCollection"
    CLASS_HISTOGRAM = "Class Histogram"
    DIAGNOSTIC_COMMAND = "Diagnostic Command"
    UPDATE_ALLOCATION_CONTEXT_STATS = "Update Allocation Context Stats"
    CMS_INITIAL_MARK = "CMS Initial Mark"
    CMS_FINAL_REMARK = "CMS Final Remark"
    PROMOTION_FAILED = "promotion failed"
    CONCURRENT_MODE_FAILURE = "concurrent mode failure"
    G1_EVACUATION_PAUSE = "G1 Evacuation Pause"
    G1_HUMONGOUS_ALLOCATION = "G1 Humongous Allocation"
    G1_PREVENTIVE_COLLECTION = "G1 Preventive Collection"
    G1_COMPACTION_PAUSE = "G1 Compaction Pause"
    TO_SPACE_EXHAUSTED = "to-space exhausted"
    TO_SPACE_OVERFLOW = "to-space overflow"


EXPLICIT_GC_TRIGGERS = frozenset({Trigger.SYSTEM_GC, Trigger.SYSTEM})
EVACUATION_FAILURE_TRIGGERS = frozenset({Trigger.TO_SPACE_EXHAUSTED, Trigger.TO_SPACE_OVERFLOW})


class EventKind(str, enum.Enum):
    # Headers and informational lines
    HEADER_VERSION = "HEADER_VERSION"
    HEADER_MEMORY = "HEADER_MEMORY"
    HEADER_COMMAND_LINE_FLAGS = "HEADER_COMMAND_LINE_FLAGS"
    APPLICATION_CONCURRENT_TIME = "APPLICATION_CONCURRENT_TIME"
    UNIFIED_HEADER_VERSION = "UNIFIED_HEADER_VERSION"
    UNIFIED_HEADER_USING = "UNIFIED_HEADER_USING"
    UNIFIED_HEADER_MEMORY = "UNIFIED_HEADER_MEMORY"

    # Serial
    SERIAL_NEW = "SERIAL_NEW"
    SERIAL_OLD = "SERIAL_OLD"

    # Parallel
    PARALLEL_SCAVENGE = "PARALLEL_SCAVENGE"
    PARALLEL_SERIAL_OLD = "PARALLEL_SERIAL_OLD"
    PARALLEL_COMPACTING_OLD = "PARALLEL_COMPACTING_OLD"

    # CMS
    PAR_NEW = "PAR_NEW"
    CMS_SERIAL_OLD = "CMS_SERIAL_OLD"
    CMS_INITIAL_MARK = "CMS_INITIAL_MARK"
    CMS_REMARK = "CMS_REMARK"
    CMS_CONCURRENT = "CMS_CONCURRENT"

    # G1 (legacy logging)
    G1_YOUNG_PAUSE = "G1_YOUNG_PAUSE"
    G1_MIXED_PAUSE = "G1_MIXED_PAUSE"
    G1_YOUNG_INITIAL_MARK = "G1_YOUNG_INITIAL_MARK"
    G1_FULL_GC = "G1_FULL_GC"
    G1_REMARK = "G1_REMARK"
    G1_CLEANUP = "G1_CLEANUP"
    G1_CONCURRENT = "G1_CONCURRENT"

    # Collector-agnostic legacy
    VERBOSE_GC_YOUNG = "VERBOSE_GC_YOUNG"
    VERBOSE_GC_OLD = "VERBOSE_GC_OLD"
    APPLICATION_STOPPED_TIME = "APPLICATION_STOPPED_TIME"

    # Unified logging (JDK9+)
    UNIFIED_G1_YOUNG_PAUSE = "UNIFIED_G1_YOUNG_PAUSE"
    UNIFIED_G1_MIXED_PAUSE = "UNIFIED_G1_MIXED_PAUSE"
    UNIFIED_YOUNG = "UNIFIED_YOUNG"
    UNIFIED_FULL = "UNIFIED_FULL"
    UNIFIED_REMARK = "UNIFIED_REMARK"
    UNIFIED_CLEANUP = "UNIFIED_CLEANUP"
    UNIFIED_CONCURRENT = "UNIFIED_CONCURRENT"
    UNIFIED_SAFEPOINT = "UNIFIED_SAFEPOINT"


class KindInfo(BaseModel):
    """Static metadata for one event kind."""

    model_config = ConfigDict(frozen=True)

    display_name: str
    capabilities: Capability
    collector: CollectorFamily | None = None
    # False for headers and purely informational lines
    reportable: bool = True


_B = Capability.BLOCKING
_GEN = Capability.YOUNG | Capability.OLD
_TT = Capability.TRIGGER | Capability.TIMES
_HEADER = Capability.HEADER

EVENT_KINDS: dict[EventKind, KindInfo] = {
    EventKind.HEADER_VERSION: KindInfo(display_name="Version header", capabilities=_HEADER, reportable=False),
    EventKind.HEADER_MEMORY: KindInfo(display_name="Memory header", capabilities=_HEADER, reportable=False),
    EventKind.HEADER_COMMAND_LINE_FLAGS: KindInfo(
        display_name="CommandLine flags header", capabilities=_HEADER, reportable=False
    ),
    EventKind.APPLICATION_CONCURRENT_TIME: KindInfo(
        display_name="Application time", capabilities=Capability(0), reportable=False
    ),
    EventKind.UNIFIED_HEADER_VERSION: KindInfo(
        display_name="Version header", capabilities=_HEADER, reportable=False
    ),
    EventKind.UNIFIED_HEADER_USING: KindInfo(
        display_name="Collector header", capabilities=_HEADER, reportable=False
    ),
    EventKind.UNIFIED_HEADER_MEMORY: KindInfo(
        display_name="Memory header", capabilities=_HEADER, reportable=False
    ),
    EventKind.SERIAL_NEW: KindInfo(
        display_name="SERIAL_NEW",
        capabilities=_B | Capability.SERIAL | _GEN | _TT,
        collector="Serial",
    ),
    EventKind.SERIAL_OLD: KindInfo(
        display_name="SERIAL_OLD",
        capabilities=_B | Capability.SERIAL | _GEN | Capability.PERM | _TT,
        collector="Serial",
    ),
    EventKind.PARALLEL_SCAVENGE: KindInfo(
        display_name="PARALLEL_SCAVENGE",
        capabilities=_B | Capability.PARALLEL | _GEN | _TT,
        collector="Parallel",
    ),
    EventKind.PARALLEL_SERIAL_OLD: KindInfo(
        display_name="PARALLEL_SERIAL_OLD",
        capabilities=_B | Capability.SERIAL | _GEN | Capability.PERM | _TT,
        collector="Parallel",
    ),
    EventKind.PARALLEL_COMPACTING_OLD: KindInfo(
        display_name="PARALLEL_COMPACTING_OLD",
        capabilities=_B | Capability.PARALLEL | _GEN | Capability.PERM | _TT,
        collector="Parallel",
    ),
    EventKind.PAR_NEW: KindInfo(
        display_name="PAR_NEW",
        capabilities=_B | Capability.PARALLEL | _GEN | _TT,
        collector="ParNew",
    ),
    EventKind.CMS_SERIAL_OLD: KindInfo(
        display_name="CMS_SERIAL_OLD",
        capabilities=_B | Capability.SERIAL | _GEN | Capability.PERM | _TT,
        collector="CMS",
    ),
    EventKind.CMS_INITIAL_MARK: KindInfo(
        display_name="CMS_INITIAL_MARK",
        capabilities=_B | Capability.PARALLEL | _TT,
        collector="CMS",
    ),
    EventKind.CMS_REMARK: KindInfo(
        display_name="CMS_REMARK",
        capabilities=_B | Capability.PARALLEL | _TT,
        collector="CMS",
    ),
    EventKind.CMS_CONCURRENT: KindInfo(
        display_name="CMS_CONCURRENT",
        capabilities=Capability.CONCURRENT | Capability.TIMES,
        collector="CMS",
    ),
    EventKind.G1_YOUNG_PAUSE: KindInfo(
        display_name="G1_YOUNG_PAUSE",
        capabilities=_B | Capability.PARALLEL | Capability.COMBINED | _TT,
        collector="G1",
    ),
    EventKind.G1_MIXED_PAUSE: KindInfo(
        display_name="G1_MIXED_PAUSE",
        capabilities=_B | Capability.PARALLEL | Capability.COMBINED | _TT,
        collector="G1",
    ),
    EventKind.G1_YOUNG_INITIAL_MARK: KindInfo(
        display_name="G1_YOUNG_INITIAL_MARK",
        capabilities=_B | Capability.PARALLEL | Capability.COMBINED | _TT,
        collector="G1",
    ),
    EventKind.G1_FULL_GC: KindInfo(
        display_name="G1_FULL_GC_SERIAL",
        capabilities=_B | Capability.SERIAL | Capability.COMBINED | Capability.PERM | _TT,
        collector="G1",
    ),
    EventKind.G1_REMARK: KindInfo(
        display_name="G1_REMARK",
        capabilities=_B | Capability.PARALLEL | Capability.TIMES,
        collector="G1",
    ),
    EventKind.G1_CLEANUP: KindInfo(
        display_name="G1_CLEANUP",
        capabilities=_B | Capability.PARALLEL | Capability.COMBINED | Capability.TIMES,
        collector="G1",
    ),
    EventKind.G1_CONCURRENT: KindInfo(
        display_name="G1_CONCURRENT",
        capabilities=Capability.CONCURRENT,
        collector="G1",
    ),
    EventKind.VERBOSE_GC_YOUNG: KindInfo(
        display_name="VERBOSE_GC_YOUNG",
        capabilities=_B | Capability.COMBINED | _TT,
    ),
    EventKind.VERBOSE_GC_OLD: KindInfo(
        display_name="VERBOSE_GC_OLD",
        capabilities=_B | Capability.COMBINED | _TT,
    ),
    EventKind.APPLICATION_STOPPED_TIME: KindInfo(
        display_name="APPLICATION_STOPPED_TIME",
        capabilities=Capability.STOPPED_TIME,
    ),
    EventKind.UNIFIED_G1_YOUNG_PAUSE: KindInfo(
        display_name="UNIFIED_G1_YOUNG_PAUSE",
        capabilities=_B | Capability.PARALLEL | Capability.COMBINED | Capability.PERM | _TT,
        collector="G1",
    ),
    EventKind.UNIFIED_G1_MIXED_PAUSE: KindInfo(
        display_name="UNIFIED_G1_MIXED_PAUSE",
        capabilities=_B | Capability.PARALLEL | Capability.COMBINED | Capability.PERM | _TT,
        collector="G1",
    ),
    EventKind.UNIFIED_YOUNG: KindInfo(
        display_name="UNIFIED_YOUNG",
        capabilities=_B | Capability.COMBINED | Capability.PERM | _TT,
    ),
    EventKind.UNIFIED_FULL: KindInfo(
        display_name="UNIFIED_FULL",
        capabilities=_B | Capability.COMBINED | Capability.PERM | _TT,
    ),
    EventKind.UNIFIED_REMARK: KindInfo(
        display_name="UNIFIED_REMARK",
        capabilities=_B | Capability.PARALLEL | Capability.COMBINED | Capability.TIMES,
    ),
    EventKind.UNIFIED_CLEANUP: KindInfo(
        display_name="UNIFIED_CLEANUP",
        capabilities=_B | Capability.PARALLEL | Capability.COMBINED | Capability.TIMES,
    ),
    EventKind.UNIFIED_CONCURRENT: KindInfo(
        display_name="UNIFIED_CONCURRENT",
        capabilities=Capability.CONCURRENT,
    ),
    EventKind.UNIFIED_SAFEPOINT: KindInfo(
        display_name="UNIFIED_SAFEPOINT",
        capabilities=Capability.STOPPED_TIME,
    ),
}

# ============================================================
# PAYLOAD MODELS
# ============================================================


class MemoryUsage(BaseModel):
    """Occupancy before/after a collection and the space allocated after it (KB)."""

    model_config = ConfigDict(frozen=True)

    before_kb: KilobytesValue = Field(ge=0)
    after_kb: KilobytesValue = Field(ge=0)
    capacity_kb: KilobytesValue = Field(ge=0)

    @model_validator(mode="after")
    def _occupancy_within_capacity(self) -> MemoryUsage:
        if self.after_kb > self.capacity_kb:
            raise ValueError(
                f"occupancy {self.after_kb}K exceeds capacity {self.capacity_kb}K"
            )
        return self

    def minus(self, other: MemoryUsage) -> MemoryUsage:
        """Derive the missing generation from a combined total."""
        return MemoryUsage(
            before_kb=self.before_kb - other.before_kb,
            after_kb=self.after_kb - other.after_kb,
            capacity_kb=self.capacity_kb - other.capacity_kb,
        )

    def plus(self, other: MemoryUsage) -> MemoryUsage:
        return MemoryUsage(
            before_kb=self.before_kb + other.before_kb,
            after_kb=self.after_kb + other.after_kb,
            capacity_kb=self.capacity_kb + other.capacity_kb,
        )


class CpuTimes(BaseModel):
    """[Times: user=.. sys=.., real=..] in centiseconds."""

    model_config = ConfigDict(frozen=True)

    user_cs: int = Field(ge=0)
    sys_cs: int = Field(ge=0)
    real_cs: int = Field(ge=0)

    @property
    def parallelism(self) -> float:
        """(user + sys) / real. Zero wall time counts as perfectly parallel."""
        if self.real_cs == 0:
            return 1.0 if self.user_cs + self.sys_cs == 0 else float("inf")
        return (self.user_cs + self.sys_cs) / self.real_cs

    @property
    def is_inverted(self) -> bool:
        return self.real_cs > 0 and self.parallelism < 1


class LogEvent(BaseModel):
    """One recognized log line. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    log_entry: str
    kind: EventKind
    # Milliseconds since JVM start
    timestamp_ms: int = Field(ge=0)
    duration_us: int = Field(default=0, ge=0)

    young: MemoryUsage | None = None
    old: MemoryUsage | None = None
    combined: MemoryUsage | None = None
    perm: MemoryUsage | None = None
    perm_name: PermName | None = None

    trigger: Trigger | None = None
    times: CpuTimes | None = None
    gc_id: int | None = None
    datestamp: str | None = None
    # Header payload (version banner, memory text, option string, collector name)
    detail: str | None = None

    @property
    def info(self) -> KindInfo:
        return EVENT_KINDS[self.kind]

    @property
    def capabilities(self) -> Capability:
        return EVENT_KINDS[self.kind].capabilities

    def has(self, capability: Capability) -> bool:
        return bool(self.capabilities & capability)

    @property
    def end_ms(self) -> int:
        return self.timestamp_ms + micros_to_millis(self.duration_us)

    @property
    def heap(self) -> MemoryUsage | None:
        """Combined heap, from the combined block or young + old."""
        if self.combined is not None:
            return self.combined
        if self.young is not None and self.old is not None:
            return self.young.plus(self.old)
        return None
