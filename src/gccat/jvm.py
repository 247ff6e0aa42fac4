"""JVM context: version banner, options, memory and start time."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from gccat.errors import InvalidStartDateTimeError

START_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S,%f"

# Disabled options some analysis rule already explains
ACCOUNTED_DISABLED_OPTIONS = frozenset(
    {
        "UseAdaptiveSizePolicy",
        "UseBiasedLocking",
        "CMSClassUnloadingEnabled",
        "PrintGCDetails",
        "PrintGCApplicationStoppedTime",
    }
)


def parse_start_datetime(text: str) -> datetime:
    """Parse 'yyyy-MM-dd HH:mm:ss,SSS'."""
    try:
        return datetime.strptime(text.strip(), START_DATETIME_FORMAT)
    except ValueError as e:
        raise InvalidStartDateTimeError(text) from e


def parse_datestamp(text: str) -> datetime:
    """Parse a -XX:+PrintGCDateStamps stamp; the zone offset is dropped (wall clock)."""
    stamp = text.replace(",", ".")
    return datetime.strptime(stamp, "%Y-%m-%dT%H:%M:%S.%f%z").replace(tzinfo=None)


# ============================================================
# OPTIONS
# ============================================================


class JvmOptions(BaseModel):
    """Heap sizing and flags parsed from the JVM option string."""

    model_config = ConfigDict(frozen=True)

    text: str = ""

    # Heap sizing
    initial_heap_size_bytes: int | None = None  # -Xms or -XX:InitialHeapSize
    max_heap_size_bytes: int | None = None  # -Xmx or -XX:MaxHeapSize
    new_size_bytes: int | None = None  # -Xmn or -XX:NewSize
    max_new_size_bytes: int | None = None  # -XX:MaxNewSize
    perm_size_bytes: int | None = None  # -XX:PermSize
    max_perm_size_bytes: int | None = None  # -XX:MaxPermSize
    metaspace_size_bytes: int | None = None  # -XX:MetaspaceSize
    max_metaspace_size_bytes: int | None = None  # -XX:MaxMetaspaceSize

    new_ratio: int | None = None  # -XX:NewRatio

    # -XX:+Name / -XX:-Name
    enabled: frozenset[str] = Field(default_factory=frozenset)
    disabled: frozenset[str] = Field(default_factory=frozenset)

    def is_enabled(self, flag: str) -> bool:
        return flag in self.enabled

    def is_disabled(self, flag: str) -> bool:
        return flag in self.disabled

    @property
    def uses_unified_logging(self) -> bool:
        return "-Xlog" in self.text

    @property
    def collector(self) -> str | None:
        """Collector selected on the command line, if any."""
        for flag, family in (
            ("UseSerialGC", "Serial"),
            ("UseParallelOldGC", "Parallel"),
            ("UseParallelGC", "Parallel"),
            ("UseConcMarkSweepGC", "CMS"),
            ("UseG1GC", "G1"),
            ("UseShenandoahGC", "Shenandoah"),
            ("UseZGC", "Z"),
        ):
            if self.is_enabled(flag):
                return family
        return None

    @property
    def disabled_options(self) -> list[str]:
        return [f"-XX:-{name}" for name in sorted(self.disabled)]

    @property
    def unaccounted_disabled_options(self) -> list[str]:
        """Disabled options no analysis rule explains, in option-string order."""
        options: list[str] = []
        for flag in FLAG_PATTERN.findall(self.text):
            name = flag[1:]
            if name in self.disabled and name not in ACCOUNTED_DISABLED_OPTIONS:
                if (option := f"-XX:-{name}") not in options:
                    options.append(option)
        return options


FLAG_PATTERN: re.Pattern[str] = re.compile(r"-XX:([+-]\w+)")

# Heap-related flag patterns (byte values, optional unit)
BYTE_PATTERNS: dict[str, re.Pattern[str]] = {
    "initial_heap_size_bytes": re.compile(r"-XX:InitialHeapSize=(\d+)([kmgKMG])?"),
    "max_heap_size_bytes": re.compile(r"-XX:MaxHeapSize=(\d+)([kmgKMG])?"),
    "new_size_bytes": re.compile(r"-XX:NewSize=(\d+)([kmgKMG])?"),
    "max_new_size_bytes": re.compile(r"-XX:MaxNewSize=(\d+)([kmgKMG])?"),
    "perm_size_bytes": re.compile(r"-XX:PermSize=(\d+)([kmgKMG])?"),
    "max_perm_size_bytes": re.compile(r"-XX:MaxPermSize=(\d+)([kmgKMG])?"),
    "metaspace_size_bytes": re.compile(r"-XX:MetaspaceSize=(\d+)([kmgKMG])?"),
    "max_metaspace_size_bytes": re.compile(r"-XX:MaxMetaspaceSize=(\d+)([kmgKMG])?"),
}

INT_PATTERNS: dict[str, re.Pattern[str]] = {
    "new_ratio": re.compile(r"-XX:NewRatio=(\d+)"),
}

# -Xms, -Xmx, -Xmn override their -XX equivalents
X_PATTERNS: dict[str, re.Pattern[str]] = {
    "initial_heap_size_bytes": re.compile(r"-Xms(\d+)([kmgKMG])?"),
    "max_heap_size_bytes": re.compile(r"-Xmx(\d+)([kmgKMG])?"),
    "new_size_bytes": re.compile(r"-Xmn(\d+)([kmgKMG])?"),
}


def parse_jvm_size_to_bytes(value: str, unit: str | None) -> int:
    """Convert JVM size notation to bytes.

    Args:
        value: Numeric value as string
        unit: Unit suffix (k/m/g or None for bytes)

    Returns:
        Size in bytes
    """
    num = int(value)
    if unit is None:
        return num

    unit_lower = unit.lower()
    if unit_lower == "k":
        return num * 1024
    elif unit_lower == "m":
        return num * 1024 * 1024
    elif unit_lower == "g":
        return num * 1024 * 1024 * 1024
    return num


def parse_jvm_options(text: str | None) -> JvmOptions:
    """Extract heap sizing and +/- flags from a JVM option string."""
    if not text:
        return JvmOptions()

    config: dict[str, Any] = {"text": text}

    for field, pattern in BYTE_PATTERNS.items():
        if match := pattern.search(text):
            config[field] = parse_jvm_size_to_bytes(match.group(1), match.group(2))

    for field, pattern in INT_PATTERNS.items():
        if match := pattern.search(text):
            config[field] = int(match.group(1))

    for field, pattern in X_PATTERNS.items():
        if match := pattern.search(text):
            config[field] = parse_jvm_size_to_bytes(match.group(1), match.group(2))

    flags = FLAG_PATTERN.findall(text)
    # Last occurrence of a flag wins, as on the JVM command line
    state: dict[str, bool] = {}
    for flag in flags:
        state[flag[1:]] = flag[0] == "+"
    config["enabled"] = frozenset(name for name, on in state.items() if on)
    config["disabled"] = frozenset(name for name, on in state.items() if not on)

    return JvmOptions(**config)


# ============================================================
# CONTEXT
# ============================================================


class JvmContext(BaseModel):
    """What the log and the caller tell us about the JVM that produced it."""

    version: str | None = None
    options: str | None = None
    memory: str | None = None
    start: datetime | None = None
    # Collector announced by a unified "Using ..." header
    collector: str | None = None

    def jvm_options(self) -> JvmOptions:
        return parse_jvm_options(self.options)
