"""Pattern registry: resolves a log line to exactly one event kind."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from decimal import InvalidOperation

from gccat.grammars import GRAMMARS, Grammar
from gccat.model import EventKind, LogEvent

logger = logging.getLogger(__name__)


class PatternRegistry:
    """First-match-wins classification over an explicitly ordered grammar list.

    Read-only after construction, so one instance can serve any number of
    concurrent analyses.
    """

    def __init__(self, grammars: Iterable[Grammar] = GRAMMARS) -> None:
        self.grammars: tuple[Grammar, ...] = tuple(grammars)

    @property
    def kinds(self) -> list[EventKind]:
        """Event kinds in the order they are tried."""
        seen: dict[EventKind, None] = {}
        for grammar in self.grammars:
            seen.setdefault(grammar.kind)
        return list(seen)

    def identify(self, line: str) -> EventKind | None:
        """Kind of the first grammar whose pattern matches, without extraction."""
        for grammar in self.grammars:
            if grammar.match(line) is not None:
                return grammar.kind
        return None

    def classify(self, line: str) -> LogEvent | None:
        """Parse ``line`` into a LogEvent, or None if it is unidentified.

        A line that matches a grammar but fails extraction (a malformed
        number, occupancy above capacity, a negative derived generation) is
        unidentified too; later grammars are not consulted.
        """
        for grammar in self.grammars:
            if (match := grammar.match(line)) is None:
                continue
            try:
                return grammar.parse(line, match)
            except (ValueError, InvalidOperation) as e:
                logger.debug("Malformed %s line treated as unidentified: %s (%s)", grammar.kind.value, line, e)
                return None
        return None


def default_registry() -> PatternRegistry:
    """Registry over the built-in grammar catalog."""
    return PatternRegistry(GRAMMARS)
