"""
Tests for structured logging and protocol counters.
"""
import json
import logging

from seqframe.protocol import (
    ErrorCode,
    Frame,
    FullPage,
    JSONLogger,
    ProtocolLogger,
    ProtocolMetrics,
    RecoveryPlan,
    RecoveryStrategy,
    error_frame,
    get_metrics,
    reset_metrics,
)


class TestJSONLogger:
    """Tests for JSON log records."""

    def test_emits_json_with_context(self, caplog):
        log = JSONLogger(name="seqframe.test", extra_context={"service": "seqframe"})

        with caplog.at_level(logging.INFO, logger="seqframe.test"):
            log.info("Frame committed", sequence=2)

        record = json.loads(caplog.records[-1].getMessage())
        assert record["message"] == "Frame committed"
        assert record["level"] == "info"
        assert record["sequence"] == 2
        assert record["service"] == "seqframe"
        assert "timestamp" in record

    def test_with_context_extends(self):
        log = JSONLogger(name="seqframe.test", extra_context={"a": 1})
        child = log.with_context(b=2)

        assert child.extra_context == {"a": 1, "b": 2}
        assert log.extra_context == {"a": 1}

    def test_non_json_values_are_stringified(self, caplog):
        log = JSONLogger(name="seqframe.test")
        with caplog.at_level(logging.WARNING, logger="seqframe.test"):
            log.warning("odd", value=object())

        record = json.loads(caplog.records[-1].getMessage())
        assert record["value"].startswith("<object")


class TestProtocolMetrics:
    """Tests for counters."""

    def test_rejections_counted_by_code(self):
        metrics = ProtocolMetrics()
        metrics.record_error("STALE_SEQUENCE", stored=False)
        metrics.record_error("STALE_SEQUENCE", stored=False)
        metrics.record_error("TIMEOUT", stored=True)

        stats = metrics.get_stats()
        assert stats["rejections"] == {"STALE_SEQUENCE": 2}
        assert stats["rejections_total"] == 2
        assert stats["errors_recorded"] == 1

    def test_reset(self):
        metrics = ProtocolMetrics()
        metrics.record_commit()
        metrics.record_recovery("resend")
        metrics.reset()

        stats = metrics.get_stats()
        assert stats["frames_committed"] == 0
        assert stats["recoveries"] == {}

    def test_global_metrics(self):
        get_metrics().record_commit()
        assert get_metrics().frames_committed == 1
        reset_metrics()
        assert get_metrics().frames_committed == 0


class TestProtocolLogger:
    """Tests for protocol event helpers."""

    def test_events_update_counters(self):
        metrics = ProtocolMetrics()
        plog = ProtocolLogger(metrics=metrics)
        frame = Frame(sequence=2, scope_key="counter", changes=FullPage(content="Value is now 5"))
        failure = error_frame(
            ErrorCode.EXECUTOR_FAILURE, "boom", sequence=2, scope_key="counter"
        )

        plog.frame_committed(frame, "increment_value")
        plog.query_observed(frame, "get_current_value")
        plog.action_rejected("STALE_SEQUENCE", "stale", "increment_value", 1)
        plog.executor_failed(failure, "increment_value", "boom")
        plog.desync_detected(2, "no thought", "increment_value")
        plog.recovery_selected(
            RecoveryPlan(strategy=RecoveryStrategy.RESEND, session_id="s1", gap=3)
        )
        plog.reanchored("increment_value", 1, 2, 1)

        stats = metrics.get_stats()
        assert stats["frames_committed"] == 1
        assert stats["queries_observed"] == 1
        assert stats["rejections"] == {"STALE_SEQUENCE": 1}
        assert stats["errors_recorded"] == 1
        assert stats["desyncs"] == 1
        assert stats["recoveries"] == {"resend": 1}
        assert stats["reanchors"] == 1

    def test_default_uses_global_metrics(self):
        plog = ProtocolLogger()
        plog.desync_detected(1, "no thought")
        assert get_metrics().desyncs == 1
