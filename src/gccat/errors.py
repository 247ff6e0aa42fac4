"""Exception hierarchy.

Single-line faults (unparseable or malformed lines) never raise; they are
counted as unidentified. Only run-level faults surface as exceptions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gccat.model import LogEvent


class GcCatError(Exception):
    """Base class for all gccat errors."""


class TimeWarpError(GcCatError):
    """Two blocking events overlap, or stopped-time events go backwards."""

    def __init__(self, prior: LogEvent, event: LogEvent) -> None:
        self.prior = prior
        self.event = event
        super().__init__(
            f"Time warp: event at {event.timestamp_ms}ms starts before the prior event "
            f"at {prior.timestamp_ms}ms ends\n  prior: {prior.log_entry}\n  event: {event.log_entry}"
        )


class MissingJvmStartError(GcCatError, ValueError):
    """Datestamp resolution was requested without a JVM start time."""

    def __init__(self) -> None:
        super().__init__(
            "Resolving datestamps to uptime requires the JVM start date/time "
            "(--startdatetime 'yyyy-MM-dd HH:mm:ss,SSS')"
        )


class InvalidStartDateTimeError(GcCatError, ValueError):
    """JVM start date/time is not in 'yyyy-MM-dd HH:mm:ss,SSS' form."""

    def __init__(self, text: str) -> None:
        self.text = text
        super().__init__(f"Invalid JVM start date/time '{text}', expected 'yyyy-MM-dd HH:mm:ss,SSS'")
