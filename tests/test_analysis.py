from __future__ import annotations

import pytest

from conftest import CMS_SERIAL_OLD, G1_TO_SPACE_EXHAUSTED, PAR_NEW, SERIAL_OLD, scavenge
from gccat.analysis import RULES, AnalysisFinding, Rule, analyze, highest_level
from gccat.jvm import JvmContext
from gccat.store import RunStore

EXPLICIT_SERIAL_OLD = SERIAL_OLD.replace("[Full GC 187.160", "[Full GC (System.gc()) 187.160")


def keys(findings: list[AnalysisFinding]) -> list[str]:
    return [finding.key for finding in findings]


def test_catalog_keys_are_unique_and_levelled() -> None:
    assert len({rule.key for rule in RULES}) == len(RULES)
    for rule in RULES:
        assert rule.level in ("error", "warn", "info")


def test_clean_run_has_no_findings(store: RunStore) -> None:
    run = store.ingest([PAR_NEW])
    assert analyze(run) == []
    assert highest_level([]) is None


def test_option_findings(store: RunStore) -> None:
    options = (
        "-Xms1g -Xmx2g -XX:+PrintGCDetails -XX:-UseBiasedLocking "
        "-XX:-TraceClassUnloading -XX:+DisableExplicitGC"
    )
    run = store.ingest([PAR_NEW], jvm=JvmContext(options=options))
    findings = analyze(run)
    assert keys(findings) == [
        "warn.explicit.gc.disabled",
        "warn.application.stopped.time.missing",
        "warn.heap.min.not.equal.max",
        "warn.biased.locking.disabled",
        "info.unaccounted.options.disabled",
    ]
    assert findings[-1].message == "Disabled options not otherwise analyzed: -XX:-TraceClassUnloading."
    assert highest_level(findings) == "warn"


def test_print_gc_details_missing(store: RunStore) -> None:
    run = store.ingest([PAR_NEW], jvm=JvmContext(options="-XX:+PrintGCApplicationStoppedTime"))
    assert keys(analyze(run)) == ["warn.print.gc.details.missing"]


def test_verbose_gc_lines_mean_details_missing(store: RunStore) -> None:
    run = store.ingest(["2205570.508: [GC 1726387K->773247K(3097984K), 0.2318035 secs]"])
    assert "warn.print.gc.details.missing" in keys(analyze(run))


def test_promotion_failure(store: RunStore) -> None:
    findings = analyze(store.ingest([CMS_SERIAL_OLD]))
    # A promotion failure explains the serial old collection
    assert keys(findings) == ["error.cms.promotion.failed", "info.perm.gen"]
    assert highest_level(findings) == "error"


def test_unexplained_cms_serial_old(store: RunStore) -> None:
    line = CMS_SERIAL_OLD.replace("[ParNew (promotion failed): ", "[ParNew: ")
    findings = analyze(store.ingest([line]))
    [serial_old] = [finding for finding in findings if finding.key == "error.cms.serial.old"]
    assert serial_old.event is not None
    assert serial_old.event.log_entry == line


def test_evacuation_failure_carries_event(store: RunStore) -> None:
    [finding] = analyze(store.ingest([G1_TO_SPACE_EXHAUSTED]))
    assert finding.key == "error.g1.evacuation.failure"
    assert finding.event is not None
    assert finding.event.timestamp_ms == 2192


def test_explicit_serial_gc(store: RunStore) -> None:
    found = keys(analyze(store.ingest([EXPLICIT_SERIAL_OLD])))
    assert found == [
        "warn.explicit.gc.serial",
        "warn.serial.gc",
        "info.perm.gen",
        "info.first.timestamp.threshold.exceeded",
    ]


def test_inverted_parallelism(store: RunStore) -> None:
    line = scavenge("1.000", "0.1000000", "user=0.01 sys=0.00, real=0.10 secs")
    [finding] = analyze(store.ingest([line]))
    assert finding.key == "warn.parallelism.inverted"
    assert finding.event is not None
    assert finding.event.times is not None
    assert finding.event.times.parallelism == pytest.approx(0.1)


def test_time_warp_finding(store: RunStore) -> None:
    overlapping = PAR_NEW.replace("20.189", "20.200").replace("20.190", "20.201")
    run = store.ingest([PAR_NEW, overlapping], raise_on_time_warp=False)
    findings = analyze(run)
    assert findings[0].key == "error.time.warp"
    assert findings[0].event is not None
    assert findings[0].event.timestamp_ms == 20200


def test_late_first_timestamp(store: RunStore) -> None:
    run = store.ingest([scavenge("100.000", "0.0100000")])
    assert keys(analyze(run)) == ["info.first.timestamp.threshold.exceeded"]


def test_custom_rules_dedupe_and_order(store: RunStore) -> None:
    run = store.ingest([PAR_NEW])
    rules = [
        Rule(key="info.custom", message="first", check=lambda ctx: True),
        Rule(key="info.custom", message="second", check=lambda ctx: True),
        Rule(key="error.custom", message="bad", check=lambda ctx: ctx.statistics.event_count == 1),
        Rule(key="warn.never", message="never", check=lambda ctx: None),
    ]
    findings = analyze(run, rules=rules)
    assert [(finding.key, finding.message) for finding in findings] == [
        ("error.custom", "bad"),
        ("info.custom", "first"),
    ]


def test_unknown_level_rejected() -> None:
    with pytest.raises(ValueError):
        AnalysisFinding(key="fatal.thing", message="x").level
