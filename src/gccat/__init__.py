"""gccat - JVM garbage collection log analyzer.

Turns legacy (JDK 5-8) and unified (JDK 9+) GC logging into a typed event
model, derives pause/throughput statistics and evaluates a catalog of
diagnostic rules against the run.
"""

from gccat.errors import GcCatError, MissingJvmStartError, TimeWarpError
from gccat.model import Capability, EventKind, LogEvent, Trigger

__version__ = "1.0.0"

__all__ = [
    "Capability",
    "EventKind",
    "GcCatError",
    "LogEvent",
    "MissingJvmStartError",
    "TimeWarpError",
    "Trigger",
    "__version__",
]
