from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from conftest import CMS_CONCURRENT_MERGED, PAR_NEW
from gccat.errors import TimeWarpError
from gccat.pipeline import analyze_file, analyze_lines, write_lines

DATESTAMP_ONLY = (
    "2010-02-26T08:31:51.990-0600: [GC (Allocation Failure) [PSYoungGen: 64000K->10688K(74240K)] "
    "64000K->12153K(245760K), 0.0141891 secs]"
)


def test_analyze_lines_without_preprocessing() -> None:
    result = analyze_lines([PAR_NEW])
    assert len(result.run.events) == 1
    assert result.findings == []
    assert result.canonical_lines is None
    assert result.statistics is result.run.statistics


def test_preprocessing_merges_concurrent_markers() -> None:
    raw = ["251.781: [CMS-concurrent-mark-start]", "252.415: [CMS-concurrent-mark: 0.612/0.634 secs]"]
    result = analyze_lines(raw, preprocess=True)
    assert result.canonical_lines == [CMS_CONCURRENT_MERGED]
    [event] = result.run.events
    assert event.duration_us == 634000


def test_start_time_implies_preprocessing() -> None:
    result = analyze_lines([DATESTAMP_ONLY], jvm_start=datetime(2010, 2, 26, 8, 31, 50))
    assert result.canonical_lines is not None
    assert result.unresolved_datestamps == 0
    [event] = result.run.events
    assert event.timestamp_ms == 1990
    assert result.run.jvm.start == datetime(2010, 2, 26, 8, 31, 50)


def test_datestamp_only_lines_unidentified_without_start() -> None:
    result = analyze_lines([DATESTAMP_ONLY], preprocess=True)
    assert result.unresolved_datestamps == 1
    assert result.run.events == ()
    assert result.run.unidentified_count == 1


def test_jvm_options_reach_the_run() -> None:
    result = analyze_lines([PAR_NEW], jvm_options="-XX:-UseBiasedLocking -XX:+PrintGCDetails")
    assert result.run.jvm.options == "-XX:-UseBiasedLocking -XX:+PrintGCDetails"
    assert "warn.biased.locking.disabled" in [finding.key for finding in result.findings]


def test_time_warp_raises_unless_disabled() -> None:
    overlapping = PAR_NEW.replace("20.189", "20.200").replace("20.190", "20.201")
    with pytest.raises(TimeWarpError):
        analyze_lines([PAR_NEW, overlapping])
    result = analyze_lines([PAR_NEW, overlapping], raise_on_time_warp=False)
    assert result.findings[0].key == "error.time.warp"


def test_analyze_file(par_new_log: Path) -> None:
    result = analyze_file(par_new_log)
    assert [event.log_entry for event in result.run.events] == [PAR_NEW]


def test_write_lines(tmp_path: Path) -> None:
    path = tmp_path / "canonical.log"
    write_lines(path, ["a", "b"])
    assert path.read_text(encoding="utf-8") == "a\nb\n"


def test_unified_concurrent_cycle_counted_once() -> None:
    raw = [
        "[5.000s][info][gc] GC(5) Concurrent Cycle",
        "[5.022s][info][gc] GC(5) Concurrent Cycle 22.123ms",
    ]
    result = analyze_lines(raw, preprocess=True)
    [event] = result.run.events
    assert event.duration_us == 22123
    assert sum(result.statistics.kind_counts.values()) == 1
