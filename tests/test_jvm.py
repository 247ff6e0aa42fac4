from __future__ import annotations

from datetime import datetime

import pytest

from gccat.errors import InvalidStartDateTimeError
from gccat.jvm import (
    JvmContext,
    parse_datestamp,
    parse_jvm_options,
    parse_jvm_size_to_bytes,
    parse_start_datetime,
)


def test_parse_jvm_size_to_bytes() -> None:
    assert parse_jvm_size_to_bytes("512", None) == 512
    assert parse_jvm_size_to_bytes("64", "k") == 64 * 1024
    assert parse_jvm_size_to_bytes("1", "G") == 1024**3


def test_empty_options() -> None:
    options = parse_jvm_options(None)
    assert options.enabled == frozenset()
    assert options.collector is None
    assert options.unaccounted_disabled_options == []


def test_heap_sizing() -> None:
    options = parse_jvm_options("-XX:InitialHeapSize=268435456 -Xms1g -Xmx2g -Xmn256m -XX:NewRatio=3")
    # -Xms wins over -XX:InitialHeapSize
    assert options.initial_heap_size_bytes == 1024**3
    assert options.max_heap_size_bytes == 2 * 1024**3
    assert options.new_size_bytes == 256 * 1024**2
    assert options.new_ratio == 3


def test_last_flag_occurrence_wins() -> None:
    options = parse_jvm_options("-XX:+UseBiasedLocking -XX:-UseBiasedLocking -XX:-PrintGCDetails -XX:+PrintGCDetails")
    assert options.is_disabled("UseBiasedLocking")
    assert not options.is_enabled("UseBiasedLocking")
    assert options.is_enabled("PrintGCDetails")
    assert options.disabled_options == ["-XX:-UseBiasedLocking"]


def test_unaccounted_disabled_options_keep_command_line_order() -> None:
    options = parse_jvm_options(
        "-XX:-UseBiasedLocking -XX:-TraceClassUnloading -XX:-UseCompressedOops -XX:-TraceClassUnloading"
    )
    assert options.unaccounted_disabled_options == ["-XX:-TraceClassUnloading", "-XX:-UseCompressedOops"]


@pytest.mark.parametrize(
    ("text", "collector"),
    [
        ("-XX:+UseSerialGC", "Serial"),
        ("-XX:+UseParallelGC -XX:+UseParallelOldGC", "Parallel"),
        ("-XX:+UseConcMarkSweepGC", "CMS"),
        ("-XX:+UseG1GC", "G1"),
        ("-XX:+UseZGC", "Z"),
        ("-XX:-UseG1GC", None),
    ],
)
def test_collector(text: str, collector: str | None) -> None:
    assert parse_jvm_options(text).collector == collector


def test_unified_logging_detected() -> None:
    assert parse_jvm_options("-Xlog:gc*:file=gc.log").uses_unified_logging
    assert not parse_jvm_options("-XX:+PrintGCDetails").uses_unified_logging


def test_parse_start_datetime() -> None:
    assert parse_start_datetime("2010-02-26 08:31:50,250") == datetime(2010, 2, 26, 8, 31, 50, 250000)


@pytest.mark.parametrize("text", ["2010-02-26T08:31:50", "yesterday", "2010-02-26 08:31:50"])
def test_parse_start_datetime_rejects_other_forms(text: str) -> None:
    with pytest.raises(InvalidStartDateTimeError):
        parse_start_datetime(text)


def test_invalid_start_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        parse_start_datetime("nope")


def test_parse_datestamp_drops_zone() -> None:
    assert parse_datestamp("2010-02-26T08:31:51.990-0600") == datetime(2010, 2, 26, 8, 31, 51, 990000)
    assert parse_datestamp("2019-05-09T01:39:00,763+0000") == datetime(2019, 5, 9, 1, 39, 0, 763000)


def test_context_parses_options() -> None:
    context = JvmContext(options="-XX:+UseG1GC")
    assert context.jvm_options().collector == "G1"
    assert JvmContext().jvm_options().text == ""
