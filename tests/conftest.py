"""Shared fixtures: the default registry, settings and representative log lines."""

from __future__ import annotations

from pathlib import Path

import pytest

from gccat.config import AnalyzerSettings
from gccat.registry import PatternRegistry, default_registry
from gccat.store import RunStore

PAR_NEW = (
    "20.189: [GC 20.190: [ParNew: 86199K->8454K(91712K), 0.0375060 secs] "
    "89399K->11655K(907328K), 0.0387074 secs]"
)
SERIAL_NEW = (
    "10.204: [GC 10.204: [DefNew: 36825K->4352K(39424K), 0.0224830 secs] "
    "44983K->14441K(126848K), 0.0225800 secs]"
)
SERIAL_OLD = (
    "187.159: [Full GC 187.160: [Tenured: 97171K->102832K(815616K), 0.6977443 secs] "
    "152213K->102832K(907328K), [Perm : 49152K->49154K(49158K)], 0.6929258 secs]"
)
PARALLEL_SCAVENGE = (
    "1.219: [GC (Allocation Failure) [PSYoungGen: 64000K->10688K(74240K)] "
    "64000K->12153K(245760K), 0.0141891 secs]"
)
PARALLEL_COMPACTING_OLD = (
    "2182.541: [Full GC [PSYoungGen: 1940K->0K(98560K)] [ParOldGen: 813929K->422305K(815616K)] "
    "815869K->422305K(914176K) [PSPermGen: 81960K->81783K(164352K)], 2.4749181 secs]"
)
CMS_SERIAL_OLD = (
    "44.684: [GC 44.684: [ParNew (promotion failed): 244553K->244553K(245760K), 0.1147060 secs]"
    "44.799: [CMS: 523184K->334212K(786432K), 2.6413340 secs] 767737K->334212K(1032192K), "
    "[CMS Perm : 7962K->7962K(21248K)], 2.7562660 secs]"
)
CMS_INITIAL_MARK = (
    "8.722: [GC (CMS Initial Mark) [1 CMS-initial-mark: 0K(989632K)] 187663K(1986432K), 0.0157899 secs]"
)
CMS_CONCURRENT_MERGED = (
    "251.781: [CMS-concurrent-mark-start] 252.415: [CMS-concurrent-mark: 0.612/0.634 secs]"
)
G1_YOUNG_PAUSE = (
    "2.192: [GC pause (G1 Evacuation Pause) (young), 0.0209631 secs] "
    "[Eden: 128.0M(128.0M)->0.0B(112.0M) Survivors: 0.0B->16.0M Heap: 128.0M(2048.0M)->19.6M(2048.0M)] "
    "[Times: user=0.08 sys=0.01, real=0.02 secs]"
)
G1_TO_SPACE_EXHAUSTED = (
    "2.192: [GC pause (G1 Evacuation Pause) (young) (to-space exhausted), 0.0209631 secs]"
)
G1_CONCURRENT_MERGED = (
    "2.185: [GC concurrent-root-region-scan-start] 2.186: [GC concurrent-root-region-scan-end, 0.0008570 secs]"
)
LEGACY_STOPPED_TIME = "2.000: Total time for which application threads were stopped: 0.0001210 seconds"
UNIFIED_G1_YOUNG = (
    "[0.101s][info][gc] GC(0) Pause Young (Normal) (G1 Evacuation Pause) 24M->4M(256M) 3.521ms"
)
UNIFIED_SAFEPOINT = (
    "[0.031s][info][safepoint] Total time for which application threads were stopped: "
    "0.0000643 seconds, Stopping threads took: 0.0000148 seconds"
)


def scavenge(uptime: str, secs: str, times: str = "") -> str:
    """A PSYoungGen line at ``uptime`` pausing for ``secs``."""
    line = (
        f"{uptime}: [GC (Allocation Failure) [PSYoungGen: 64000K->10688K(74240K)] "
        f"64000K->12153K(245760K), {secs} secs]"
    )
    return f"{line} [Times: {times}]" if times else line


@pytest.fixture
def registry() -> PatternRegistry:
    return default_registry()


@pytest.fixture
def settings() -> AnalyzerSettings:
    return AnalyzerSettings()


@pytest.fixture
def store(registry: PatternRegistry, settings: AnalyzerSettings) -> RunStore:
    return RunStore(registry=registry, settings=settings)


@pytest.fixture
def par_new_log(tmp_path: Path) -> Path:
    path = tmp_path / "gc.log"
    path.write_text(f"{PAR_NEW}\n\n", encoding="utf-8")
    return path
