"""Regex building blocks shared by the grammar table.

Fragments are plain strings so grammars can be composed with f-strings;
helpers that take a name emit named groups with that prefix.
"""

from __future__ import annotations

import re

from gccat.model import Trigger

# ============================================================
# PRIMITIVES
# ============================================================

# 2010-02-26T08:31:51.990-0600
DATESTAMP = r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}[.,]\d{3}(?:[-+]\d{4}|Z)"
# Seconds since JVM start: 20.189
UPTIME = r"\d+[.,]\d{3}"
DECIMAL = r"\d+[.,]\d+"
# Size with unit, as printed by G1 and unified logging: 25.0M, 0.0B, 4096.0K, 13G
SIZE = r"\d+(?:[.,]\d+)?[BKMG]"

# Longest first so 'System' never shadows 'System.gc()'
TRIGGER = "|".join(re.escape(trigger.value) for trigger in sorted(Trigger, key=lambda t: -len(t.value)))

# ============================================================
# LEGACY (JDK 5-8) FRAGMENTS
# ============================================================

# Leading "DATESTAMP: UPTIME: ". Uptime is required: a datestamp alone
# cannot be placed on the uptime axis without preprocessing.
EVENT_PREFIX = rf"^(?:(?P<datestamp>{DATESTAMP}): )?(?P<uptime>{UPTIME}): "

# Timestamps repeated inside nested blocks carry no information
INNER_PREFIX = rf"(?:{DATESTAMP}: )?(?:{UPTIME}: )?"

TIMES_BLOCK = (
    rf"(?: \[Times: user=(?P<user>{DECIMAL}) sys=(?P<sys>{DECIMAL}), "
    rf"real=(?P<real>{DECIMAL}) secs\])?"
)

EVENT_END = rf"{TIMES_BLOCK}[ ]*$"

# Incremental CMS duty cycle: "icms_dc=0 "
ICMS_DC_BLOCK = r"(?: icms_dc=\d{1,3} )?"

# ============================================================
# UNIFIED (JDK9+) FRAGMENTS
# ============================================================

# [2019-05-09T01:39:00.763+0000][5.355s] plus any level/tag/pid/tid brackets
UNIFIED_PREFIX = (
    rf"^(?:\[(?P<datestamp>{DATESTAMP})\])?\[(?P<uptime>{UPTIME})s\](?:\[[\w ,.-]*\])* "
)

UNIFIED_TIMES_BLOCK = (
    rf"(?: User=(?P<user>{DECIMAL})s Sys=(?P<sys>{DECIMAL})s Real=(?P<real>{DECIMAL})s)?"
)

UNIFIED_END = rf"{UNIFIED_TIMES_BLOCK}[ ]*$"


def trigger_block(name: str = "trigger") -> str:
    """'(Allocation Failure)' etc."""
    return rf"\((?P<{name}>{TRIGGER})\)"


def size_block(name: str) -> str:
    """'86199K->8454K(91712K)' with groups NAME_before, NAME_after, NAME_capacity."""
    return (
        rf"(?P<{name}_before>\d+)K->(?P<{name}_after>\d+)K\((?P<{name}_capacity>\d+)K\)"
    )


def unit_size_block(name: str) -> str:
    """'24M->4M(256M)', units vary per token."""
    return (
        rf"(?P<{name}_before>{SIZE})->(?P<{name}_after>{SIZE})\((?P<{name}_capacity>{SIZE})\)"
    )


def duration(name: str = "duration") -> str:
    """'0.0375060 secs'"""
    return rf"(?P<{name}>{DECIMAL}) secs"
