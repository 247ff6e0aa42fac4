from __future__ import annotations

from conftest import CMS_SERIAL_OLD, PAR_NEW, scavenge
from gccat.config import AnalyzerSettings
from gccat.stats import BOTTLENECK_SEPARATOR, find_bottlenecks, throughput
from gccat.store import RunStore

A = scavenge("1.000", "0.1000000")
B = scavenge("2.000", "0.9000000")
C = scavenge("10.000", "0.1000000")
D = scavenge("10.500", "0.4000000")


def test_throughput() -> None:
    assert throughput(0, 0) == 100
    assert throughput(50, 100) == 50
    assert throughput(200, 100) == 0


def test_par_new_summary(store: RunStore) -> None:
    stats = store.ingest([PAR_NEW]).statistics
    assert stats.event_count == 1
    assert stats.max_pause_us == stats.total_pause_us == 38707
    assert stats.run_start_ms == 0
    assert stats.run_duration_us == 20227707
    assert stats.gc_throughput == 100
    # Real pause time rounded away
    assert stats.gc_throughput_label == "~100%"
    assert stats.stopped_time_throughput is None
    assert stats.new_ratio == 9
    assert stats.heap is not None
    assert (stats.heap.occupancy_kb, stats.heap.space_kb) == (89399, 907328)
    assert stats.perm is None
    assert stats.collector_families == ["ParNew"]


def test_statistics_cached_on_run(store: RunStore) -> None:
    run = store.ingest([PAR_NEW])
    assert run.statistics is run.statistics


def test_empty_run(store: RunStore) -> None:
    stats = store.ingest([]).statistics
    assert stats.event_count == 0
    assert stats.gc_throughput is None
    assert stats.gc_throughput_label is None
    assert stats.heap is None
    assert stats.new_ratio is None
    assert stats.bottlenecks == []


def test_late_first_event_starts_run_there(store: RunStore) -> None:
    stats = store.ingest([scavenge("100.000", "1.0000000"), scavenge("110.000", "1.0000000")]).statistics
    assert stats.run_start_ms == 100000
    assert stats.run_duration_us == 11000000
    assert stats.gc_throughput == 82
    assert stats.gc_throughput_label == "82%"


def test_stopped_time_and_ratio(store: RunStore) -> None:
    run = store.ingest(
        [
            scavenge("1.000", "0.0100000"),
            "1.011: Total time for which application threads were stopped: 0.0200000 seconds",
        ]
    )
    stats = run.statistics
    assert stats.event_count == 1
    assert stats.stopped_time_event_count == 1
    assert stats.total_stopped_us == 20000
    assert stats.gc_stopped_ratio == 50
    assert stats.stopped_time_throughput is not None


def test_perm_high_water(store: RunStore) -> None:
    stats = store.ingest([CMS_SERIAL_OLD]).statistics
    assert stats.perm is not None
    assert (stats.perm.occupancy_kb, stats.perm.space_kb) == (7962, 21248)
    assert stats.metaspace is None


def test_parallelism_counts(store: RunStore) -> None:
    mild = scavenge("1.000", "0.1000000", "user=0.02 sys=0.00, real=0.10 secs")
    worst = scavenge("2.000", "0.1000000", "user=0.01 sys=0.00, real=0.10 secs")
    sys_heavy = scavenge("3.000", "0.0200000", "user=0.01 sys=0.05, real=0.02 secs")
    stats = store.ingest([mild, worst, sys_heavy]).statistics
    assert stats.parallel_event_count == 3
    assert stats.inverted_parallelism_count == 2
    assert stats.worst_inverted_parallelism_event is not None
    assert stats.worst_inverted_parallelism_event.log_entry == worst
    assert stats.sys_gt_user_count == 1
    assert stats.worst_sys_gt_user_event is not None
    assert stats.worst_sys_gt_user_event.log_entry == sys_heavy


def test_kind_and_trigger_counts(store: RunStore) -> None:
    stats = store.ingest([A, B, PAR_NEW]).statistics
    assert [kind.name for kind in stats.kinds] == ["PARALLEL_SCAVENGE", "PAR_NEW"]
    assert sum(stats.kind_counts.values()) == 3
    assert sum(stats.trigger_counts.values()) == 2


def test_bottlenecks_separated_when_not_chained(store: RunStore) -> None:
    events = list(store.ingest([A, B, C, D]).events)
    count, lines = find_bottlenecks(events, threshold=90, limit=30)
    assert count == 2
    assert lines == [A, B, BOTTLENECK_SEPARATOR, C, D]


def test_bottleneck_lines_capped_but_all_counted(store: RunStore) -> None:
    events = list(store.ingest([A, B, C, D]).events)
    count, lines = find_bottlenecks(events, threshold=90, limit=3)
    assert count == 2
    assert lines == [A, B, BOTTLENECK_SEPARATOR]


def test_bottlenecks_follow_settings() -> None:
    store = RunStore(settings=AnalyzerSettings(throughput_threshold=40))
    stats = store.ingest([A, B, C, D]).statistics
    assert stats.bottleneck_count == 0
    assert stats.bottlenecks == []


def test_non_blocking_heap_tracked_separately(store: RunStore) -> None:
    stats = store.ingest(
        [
            "[0.448s][info][gc] GC(0) Concurrent cleanup 32M->30M(64M) 0.012ms",
            "[0.900s][info][gc] GC(1) Concurrent cleanup 40M->20M(64M) 0.010ms",
        ]
    ).statistics
    assert stats.heap is None
    assert stats.heap_non_blocking is not None
    assert (stats.heap_non_blocking.occupancy_kb, stats.heap_non_blocking.space_kb) == (40960, 65536)
    assert stats.heap_non_blocking.after_gc_kb == 30720


def test_blocking_heap_ignores_concurrent_phases(store: RunStore) -> None:
    stats = store.ingest(
        [PAR_NEW, "[30.000s][info][gc] GC(0) Concurrent cleanup 2000M->1900M(2048M) 0.012ms"]
    ).statistics
    assert stats.heap is not None
    assert stats.heap.occupancy_kb == 89399
    assert stats.heap_non_blocking is not None
    assert stats.heap_non_blocking.occupancy_kb == 2048000
