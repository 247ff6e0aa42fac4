"""The ordered grammar catalog.

Order is significant: the first grammar whose pattern matches a line owns
it. Combined young+old shapes precede young-only ones and specialized G1
pause types precede the generic young pause.
"""

from __future__ import annotations

from gccat.grammars.base import Grammar
from gccat.grammars.g1 import (
    G1CleanupGrammar,
    G1ConcurrentGrammar,
    G1FullGcGrammar,
    G1MixedPauseGrammar,
    G1RemarkGrammar,
    G1YoungInitialMarkGrammar,
    G1YoungPauseGrammar,
)
from gccat.grammars.legacy import (
    ApplicationConcurrentTimeGrammar,
    ApplicationStoppedTimeGrammar,
    CmsConcurrentGrammar,
    CmsInitialMarkGrammar,
    CmsRemarkGrammar,
    CmsSerialOldGrammar,
    HeaderCommandLineFlagsGrammar,
    HeaderMemoryGrammar,
    HeaderVersionGrammar,
    ParallelCompactingOldGrammar,
    ParallelScavengeGrammar,
    ParallelSerialOldGrammar,
    ParNewGrammar,
    ParNewRemarkScavengeGrammar,
    SerialNewGrammar,
    SerialOldGrammar,
    VerboseGcOldGrammar,
    VerboseGcYoungGrammar,
)
from gccat.grammars.unified import (
    UnifiedCleanupGrammar,
    UnifiedConcurrentGrammar,
    UnifiedFullGrammar,
    UnifiedG1MixedPauseGrammar,
    UnifiedG1YoungPauseGrammar,
    UnifiedHeaderMemoryGrammar,
    UnifiedHeaderUsingGrammar,
    UnifiedHeaderVersionGrammar,
    UnifiedRemarkGrammar,
    UnifiedSafepointGrammar,
    UnifiedYoungGrammar,
)

GRAMMARS: tuple[Grammar, ...] = (
    # Header
    HeaderVersionGrammar(),
    HeaderMemoryGrammar(),
    HeaderCommandLineFlagsGrammar(),
    UnifiedHeaderVersionGrammar(),
    UnifiedHeaderUsingGrammar(),
    UnifiedHeaderMemoryGrammar(),
    # Unified logging
    UnifiedSafepointGrammar(),
    UnifiedG1MixedPauseGrammar(),
    UnifiedG1YoungPauseGrammar(),
    UnifiedYoungGrammar(),
    UnifiedFullGrammar(),
    UnifiedRemarkGrammar(),
    UnifiedCleanupGrammar(),
    UnifiedConcurrentGrammar(),
    # Serial
    SerialOldGrammar(),
    SerialNewGrammar(),
    # Parallel
    ParallelCompactingOldGrammar(),
    ParallelSerialOldGrammar(),
    ParallelScavengeGrammar(),
    # CMS
    CmsSerialOldGrammar(),
    ParNewGrammar(),
    ParNewRemarkScavengeGrammar(),
    CmsInitialMarkGrammar(),
    CmsRemarkGrammar(),
    CmsConcurrentGrammar(),
    # G1
    G1YoungInitialMarkGrammar(),
    G1MixedPauseGrammar(),
    G1YoungPauseGrammar(),
    G1FullGcGrammar(),
    G1RemarkGrammar(),
    G1CleanupGrammar(),
    G1ConcurrentGrammar(),
    # Collector-agnostic
    VerboseGcOldGrammar(),
    VerboseGcYoungGrammar(),
    ApplicationStoppedTimeGrammar(),
    ApplicationConcurrentTimeGrammar(),
)

__all__ = ["GRAMMARS", "Grammar"]
