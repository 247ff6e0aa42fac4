"""Grammar abstraction and shared field extraction."""

from __future__ import annotations

import re
from typing import Any, ClassVar

from gccat.model import CpuTimes, EventKind, LogEvent, MemoryUsage, Trigger
from gccat.units import micros_to_millis, parse_size_to_kb, secs_to_centis, secs_to_millis


class Grammar:
    """One line shape for one event kind.

    Subclasses set ``kind``, ``PATTERN`` and optional literal ``guards``,
    and implement ``_extract`` returning LogEvent fields. A guard is a
    substring every matching line must contain; it lets the registry skip
    the regex for most lines.
    """

    kind: ClassVar[EventKind]
    guards: ClassVar[tuple[str, ...]] = ()
    PATTERN: ClassVar[re.Pattern[str]]

    def match(self, line: str) -> re.Match[str] | None:
        # Substring guard: only run regex if every literal is present
        if not all(guard in line for guard in self.guards):
            return None
        return self.PATTERN.search(line)

    def parse(self, line: str, match: re.Match[str]) -> LogEvent:
        """Build the event. Raises ValueError on malformed numeric groups."""
        return LogEvent(log_entry=line, kind=self.kind, **self._extract(match))

    def _extract(self, match: re.Match[str]) -> dict[str, Any]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind.value})"


# ============================================================
# EXTRACTION HELPERS
# ============================================================


def memory(match: re.Match[str], name: str) -> MemoryUsage | None:
    """Read NAME_before/NAME_after/NAME_capacity kilobyte groups."""
    groups = match.groupdict()
    if groups.get(f"{name}_before") is None:
        return None
    return MemoryUsage(
        before_kb=int(groups[f"{name}_before"]),
        after_kb=int(groups[f"{name}_after"]),
        capacity_kb=int(groups[f"{name}_capacity"]),
    )


def unit_memory(match: re.Match[str], name: str) -> MemoryUsage | None:
    """Same as memory() for size tokens carrying their own unit (24M, 4979.9K)."""
    groups = match.groupdict()
    if groups.get(f"{name}_before") is None:
        return None
    return MemoryUsage(
        before_kb=parse_size_to_kb(groups[f"{name}_before"]),
        after_kb=parse_size_to_kb(groups[f"{name}_after"]),
        capacity_kb=parse_size_to_kb(groups[f"{name}_capacity"]),
    )


def cpu_times(match: re.Match[str]) -> CpuTimes | None:
    groups = match.groupdict()
    if groups.get("user") is None:
        return None
    return CpuTimes(
        user_cs=secs_to_centis(groups["user"]),
        sys_cs=secs_to_centis(groups["sys"]),
        real_cs=secs_to_centis(groups["real"]),
    )


def last_trigger(match: re.Match[str], *names: str) -> Trigger | None:
    """The last non-null trigger group wins; inner triggers refine outer ones."""
    groups = match.groupdict()
    trigger: Trigger | None = None
    for name in names:
        if (text := groups.get(name)) is not None:
            trigger = Trigger(text)
    return trigger


def perm_name(match: re.Match[str]) -> str | None:
    """'Perm ', 'CMS Perm ', 'PSPermGen' -> 'Perm'; 'Metaspace' stays."""
    if (text := match.groupdict().get("perm_name")) is None:
        return None
    return "Metaspace" if "Metaspace" in text else "Perm"


def logged_at_start(match: re.Match[str]) -> dict[str, Any]:
    """Timestamp and decorations of a legacy line, logged when the event starts."""
    return {
        "timestamp_ms": secs_to_millis(match.group("uptime")),
        "datestamp": match.groupdict().get("datestamp"),
        "times": cpu_times(match),
    }


def logged_at_end(match: re.Match[str], duration_us: int) -> dict[str, Any]:
    """Timestamp of a line logged when the event completes: back out the duration."""
    end_ms = secs_to_millis(match.group("uptime"))
    return {
        "timestamp_ms": max(0, end_ms - micros_to_millis(duration_us)),
        "duration_us": duration_us,
        "datestamp": match.groupdict().get("datestamp"),
        "times": cpu_times(match),
    }
