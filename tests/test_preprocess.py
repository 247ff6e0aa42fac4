from __future__ import annotations

from datetime import datetime

import pytest

from conftest import CMS_CONCURRENT_MERGED, G1_YOUNG_PAUSE, PAR_NEW
from gccat.errors import MissingJvmStartError
from gccat.model import EventKind
from gccat.preprocess import Preprocessor, preprocess
from gccat.registry import PatternRegistry

JVM_START = datetime(2010, 2, 26, 8, 31, 50)
DATESTAMPED_SCAVENGE = (
    "2010-02-26T08:31:51.990-0600: [GC (Allocation Failure) [PSYoungGen: 64000K->10688K(74240K)] "
    "64000K->12153K(245760K), 0.0141891 secs]"
)


def test_canonical_lines_pass_through() -> None:
    assert preprocess([PAR_NEW + "\n", "\n"]) == [PAR_NEW]


def test_resolution_requested_without_start_fails_early() -> None:
    with pytest.raises(MissingJvmStartError):
        Preprocessor(resolve_datestamps=True)


def test_datestamp_resolved_to_uptime(registry: PatternRegistry) -> None:
    preprocessor = Preprocessor(jvm_start=JVM_START)
    [line] = preprocessor.preprocess([DATESTAMPED_SCAVENGE])
    assert line.startswith("2010-02-26T08:31:51.990-0600: 1.990: [GC (Allocation Failure)")
    assert preprocessor.unresolved_datestamps == 0
    event = registry.classify(line)
    assert event is not None
    assert event.timestamp_ms == 1990


def test_datestamp_without_start_passes_through_and_is_counted() -> None:
    preprocessor = Preprocessor()
    assert preprocessor.preprocess([DATESTAMPED_SCAVENGE]) == [DATESTAMPED_SCAVENGE]
    assert preprocessor.unresolved_datestamps == 1


def test_datestamp_before_start_is_unresolved() -> None:
    preprocessor = Preprocessor(jvm_start=datetime(2011, 1, 1))
    assert preprocessor.preprocess([DATESTAMPED_SCAVENGE]) == [DATESTAMPED_SCAVENGE]
    assert preprocessor.unresolved_datestamps == 1


def test_g1_detail_lines_folded(registry: PatternRegistry) -> None:
    raw = [
        "2.192: [GC pause (G1 Evacuation Pause) (young), 0.0209631 secs]",
        "   [Parallel Time: 20.0 ms, GC Workers: 8]",
        "      [GC Worker Start (ms): Min: 2192.1, Avg: 2192.2, Max: 2192.3, Diff: 0.2]",
        "   [Code Root Fixup: 0.0 ms]",
        "   [Eden: 128.0M(128.0M)->0.0B(112.0M) Survivors: 0.0B->16.0M Heap: 128.0M(2048.0M)->19.6M(2048.0M)]",
        " [Times: user=0.08 sys=0.01, real=0.02 secs] ",
    ]
    assert preprocess(raw) == [G1_YOUNG_PAUSE]
    event = registry.classify(G1_YOUNG_PAUSE)
    assert event is not None and event.kind == EventKind.G1_YOUNG_PAUSE


def test_concurrent_start_and_end_merged() -> None:
    raw = [
        "251.781: [CMS-concurrent-mark-start]",
        "252.415: [CMS-concurrent-mark: 0.612/0.634 secs]",
    ]
    assert preprocess(raw) == [CMS_CONCURRENT_MERGED]


def test_unmatched_start_emitted_at_end() -> None:
    raw = ["251.781: [CMS-concurrent-mark-start]", PAR_NEW]
    assert preprocess(raw) == [PAR_NEW, "251.781: [CMS-concurrent-mark-start]"]


def test_cms_interleave_split(registry: PatternRegistry) -> None:
    raw = [
        "85217.903: [GC 85217.903: [ParNew85217.919: [CMS-concurrent-abortable-preclean: "
        "0.029/0.143 secs] [Times: user=0.17 sys=0.00, real=0.14 secs]",
        ": 6310K->702K(7424K), 0.0057090 secs] 42036K->36596K(131072K), 0.0057880 secs]",
    ]
    concurrent, par_new = preprocess(raw)
    assert concurrent == (
        "85217.919: [CMS-concurrent-abortable-preclean: 0.029/0.143 secs] "
        "[Times: user=0.17 sys=0.00, real=0.14 secs]"
    )
    assert par_new == (
        "85217.903: [GC 85217.903: [ParNew: 6310K->702K(7424K), 0.0057090 secs] "
        "42036K->36596K(131072K), 0.0057880 secs]"
    )
    assert registry.identify(concurrent) == EventKind.CMS_CONCURRENT
    event = registry.classify(par_new)
    assert event is not None
    assert event.kind == EventKind.PAR_NEW
    assert (event.old.before_kb, event.old.after_kb) == (35726, 35894)


def test_unified_pause_folded(registry: PatternRegistry) -> None:
    raw = [
        "[0.006s][info][gc,init] Version: 17.0.1+12-LTS (release)",
        "[0.010s][info][gc] Using G1",
        "[0.011s][info][gc,init] CPUs: 8 total, 8 available",
        "[0.100s][info][gc,start    ] GC(0) Pause Young (Normal) (G1 Evacuation Pause)",
        "[0.101s][info][gc,heap     ] GC(0) Eden regions: 6->0(7)",
        "[0.101s][info][gc,metaspace] GC(0) Metaspace: 3343K->3343K(1056768K)",
        "[0.101s][info][gc          ] GC(0) Pause Young (Normal) (G1 Evacuation Pause) 24M->4M(256M) 3.521ms",
        "[0.101s][info][gc,cpu      ] GC(0) User=0.01s Sys=0.00s Real=0.00s",
    ]
    version, using, pause = preprocess(raw)
    assert version == "[0.006s] Version: 17.0.1+12-LTS (release)"
    assert using == "[0.010s] Using G1"
    assert pause == (
        "[0.101s] GC(0) Pause Young (Normal) (G1 Evacuation Pause) Metaspace: 3343K->3343K(1056768K) "
        "24M->4M(256M) 3.521ms User=0.01s Sys=0.00s Real=0.00s"
    )
    event = registry.classify(pause)
    assert event is not None
    assert event.kind == EventKind.UNIFIED_G1_YOUNG_PAUSE
    assert event.perm_name == "Metaspace"
    assert event.perm.capacity_kb == 1056768
    assert event.times is not None


def test_unified_jdk17_metaspace() -> None:
    raw = [
        "[1.234s][info][gc,metaspace] GC(3) Metaspace: 1021K(1216K)->1021K(1216K) NonClass: 930K(1024K)->930K(1024K)",
        "[1.234s][info][gc] GC(3) Pause Full (System.gc()) 10M->2M(64M) 12.000ms",
    ]
    assert preprocess(raw) == [
        "[1.234s] GC(3) Pause Full (System.gc()) Metaspace: 1021K->1021K(1216K) 10M->2M(64M) 12.000ms"
    ]


def test_unified_uptimemillis_decorator() -> None:
    raw = ["[2019-05-09T01:39:00.763+0000][5355ms] GC(5) Concurrent Cycle 22.123ms"]
    assert preprocess(raw) == ["[2019-05-09T01:39:00.763+0000][5.355s] GC(5) Concurrent Cycle 22.123ms"]


def test_unified_datestamp_only_resolved() -> None:
    preprocessor = Preprocessor(jvm_start=datetime(2019, 5, 9, 1, 39))
    raw = ["[2019-05-09T01:39:00.763+0000][info][gc] Using G1"]
    assert preprocessor.preprocess(raw) == ["[2019-05-09T01:39:00.763+0000][0.763s] Using G1"]


def test_unified_concurrent_start_dropped() -> None:
    raw = [
        "[5.000s][info][gc] GC(5) Concurrent Cycle",
        "[5.001s][info][gc,marking] GC(5) Concurrent Mark (5.001s)",
        "[5.022s][info][gc] GC(5) Concurrent Cycle 22.123ms",
    ]
    assert preprocess(raw) == ["[5.022s] GC(5) Concurrent Cycle 22.123ms"]
