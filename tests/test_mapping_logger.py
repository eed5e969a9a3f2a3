"""
Tests for the structured event sink, attempt counters and Prometheus export.
"""
import pytest

from packages.common.config import Settings
from packages.domain.mapping.mapping_logger import LogLevel, MappingLogger


def test_log_records_entry_and_calls_sink(settings):
    received = []
    mapping_logger = MappingLogger(settings, sink=received.append)

    entry = mapping_logger.log("warning", "sign_convention_mismatch", duration=1.5, account_code="5200")

    assert entry.level == LogLevel.WARNING
    assert entry.to_dict()["data"] == {"account_code": "5200"}
    assert entry.to_dict()["duration"] == 1.5
    assert received == [entry]
    assert mapping_logger.get_logs() == [entry]


def test_log_buffer_is_bounded():
    mapping_logger = MappingLogger(Settings(_env_file=None, log_buffer_size=2))

    for i in range(5):
        mapping_logger.log("info", "event", index=i)

    assert [e.data["index"] for e in mapping_logger.get_logs()] == [3, 4]


def test_invalid_level_raises(mapping_logger):
    with pytest.raises(ValueError):
        mapping_logger.log("verbose", "event")


def test_attempt_summary_and_performance_metrics(mapping_logger):
    mapping_logger.start_attempt("t1")
    mapping_logger.end_attempt("t1", success=True)
    mapping_logger.start_attempt("t2")
    mapping_logger.end_attempt("t2", success=False)

    summary = mapping_logger.get_attempt_summary()
    assert (summary.total, summary.successful, summary.failed) == (2, 1, 1)
    assert summary.average_duration >= 0.0

    metrics = mapping_logger.get_performance_metrics()
    assert metrics["success_rate"] == pytest.approx(50.0)
    assert metrics["total_attempts"] == 2


def test_end_attempt_without_start_returns_zero(mapping_logger):
    assert mapping_logger.end_attempt("unknown", success=True) == 0.0
    assert mapping_logger.get_attempt_summary().total == 0


def test_export_metrics(mapping_logger):
    mapping_logger.start_attempt("t1")
    mapping_logger.end_attempt("t1", success=True)

    exposition = mapping_logger.export_metrics()

    assert b'mapping_attempts_total{outcome="success"} 1.0' in exposition
    assert b"mapping_attempt_duration_seconds_count 1.0" in exposition


def test_export_metrics_disabled():
    mapping_logger = MappingLogger(Settings(_env_file=None, metrics_enabled=False))

    assert mapping_logger.export_metrics() == b""


def test_clear_resets_logs_and_counters(mapping_logger):
    mapping_logger.start_attempt("t1")
    mapping_logger.end_attempt("t1", success=True)
    mapping_logger.log("info", "event")

    mapping_logger.clear()

    assert mapping_logger.get_logs() == []
    assert mapping_logger.get_attempt_summary().total == 0


def test_failing_sink_does_not_propagate(settings):
    def broken_sink(entry):
        raise ConnectionError("collector unreachable")

    mapping_logger = MappingLogger(settings, sink=broken_sink)

    entry = mapping_logger.log("info", "rag_mapping_complete", confidence=0.42)

    assert entry.message == "rag_mapping_complete"
    assert mapping_logger.get_logs() == [entry]
