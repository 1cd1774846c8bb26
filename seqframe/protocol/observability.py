"""
Observability for the seqframe protocol.

Structured logging and counters for protocol events: commits,
rejections, executor failures, timeouts, desyncs and recovery decisions.

Design Philosophy:
- Structured logging by default (JSON-formatted)
- Plain counters, exportable to whatever metrics backend is in use
- Minimal overhead when nobody reads them
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .frames import Frame
    from .session import RecoveryPlan

logger = logging.getLogger(__name__)


# =============================================================================
# Log Levels
# =============================================================================


class LogLevel(Enum):
    """Standard log levels."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


# =============================================================================
# Structured Logger Protocol
# =============================================================================


class StructuredLogger(Protocol):
    """Anything that logs a message with key-value context."""

    def debug(self, message: str, **context: Any) -> None: ...

    def info(self, message: str, **context: Any) -> None: ...

    def warning(self, message: str, **context: Any) -> None: ...

    def error(self, message: str, **context: Any) -> None: ...


# =============================================================================
# JSON Logger Implementation
# =============================================================================


@dataclass
class JSONLogger:
    """
    Structured logger that outputs JSON-formatted logs.

    Example output:
        {"timestamp": "2026-01-02T10:30:00+00:00", "level": "info",
         "message": "Frame committed", "sequence": 2, "scope_key": "counter"}
    """

    name: str = "seqframe"
    extra_context: dict[str, Any] = field(default_factory=dict)
    _python_logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._python_logger = logging.getLogger(self.name)

    def _log(self, level: LogLevel, message: str, context: dict[str, Any]) -> None:
        record = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": level.value,
            "message": message,
            **self.extra_context,
            **context,
        }
        getattr(self._python_logger, level.value)(json.dumps(record, default=str))

    def debug(self, message: str, **context: Any) -> None:
        self._log(LogLevel.DEBUG, message, context)

    def info(self, message: str, **context: Any) -> None:
        self._log(LogLevel.INFO, message, context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(LogLevel.WARNING, message, context)

    def error(self, message: str, **context: Any) -> None:
        self._log(LogLevel.ERROR, message, context)

    def with_context(self, **extra: Any) -> JSONLogger:
        """Create a new logger with additional context."""
        return JSONLogger(name=self.name, extra_context={**self.extra_context, **extra})


# =============================================================================
# Metrics
# =============================================================================


@dataclass
class ProtocolMetrics:
    """
    Protocol counters.

    Rejections and failures are counted per error code, so the numbers
    line up with the codes agents see in error frames.
    """

    frames_committed: int = 0
    queries_observed: int = 0
    errors_recorded: int = 0
    rejections: dict[str, int] = field(default_factory=dict)
    desyncs: int = 0
    recoveries: dict[str, int] = field(default_factory=dict)
    reanchors: int = 0

    def record_commit(self) -> None:
        self.frames_committed += 1

    def record_query(self) -> None:
        self.queries_observed += 1

    def record_error(self, code: str, stored: bool) -> None:
        if stored:
            self.errors_recorded += 1
        else:
            self.rejections[code] = self.rejections.get(code, 0) + 1

    def record_desync(self) -> None:
        self.desyncs += 1

    def record_recovery(self, strategy: str) -> None:
        self.recoveries[strategy] = self.recoveries.get(strategy, 0) + 1

    def record_reanchor(self) -> None:
        self.reanchors += 1

    def get_stats(self) -> dict[str, Any]:
        """Get summary statistics."""
        return {
            "frames_committed": self.frames_committed,
            "queries_observed": self.queries_observed,
            "errors_recorded": self.errors_recorded,
            "rejections": dict(self.rejections),
            "rejections_total": sum(self.rejections.values()),
            "desyncs": self.desyncs,
            "recoveries": dict(self.recoveries),
            "reanchors": self.reanchors,
        }

    def reset(self) -> None:
        """Reset all metrics."""
        self.frames_committed = 0
        self.queries_observed = 0
        self.errors_recorded = 0
        self.rejections.clear()
        self.desyncs = 0
        self.recoveries.clear()
        self.reanchors = 0


# Global metrics instance
_global_metrics = ProtocolMetrics()


def get_metrics() -> ProtocolMetrics:
    """Get the global metrics instance."""
    return _global_metrics


def reset_metrics() -> None:
    """Reset global metrics (useful for testing)."""
    _global_metrics.reset()


# =============================================================================
# Protocol Logger
# =============================================================================


@dataclass
class ProtocolLogger:
    """
    Convenience methods for protocol events, logged and counted.

    Example:
        plog = ProtocolLogger()
        plog.frame_committed(frame, tool="increment_value")
        plog.recovery_selected(plan)
    """

    inner: StructuredLogger = field(default_factory=lambda: JSONLogger(name="seqframe.protocol"))
    metrics: ProtocolMetrics = field(default_factory=get_metrics)

    def frame_committed(self, frame: Frame, tool: str) -> None:
        self.metrics.record_commit()
        self.inner.info(
            "Frame committed",
            sequence=frame.sequence,
            scope_key=frame.scope_key,
            frame_type=frame.frame_type,
            tool=tool,
        )

    def query_observed(self, frame: Frame, tool: str) -> None:
        self.metrics.record_query()
        self.inner.debug(
            "Query observed",
            sequence=frame.sequence,
            scope_key=frame.scope_key,
            frame_type=frame.frame_type,
            tool=tool,
        )

    def action_rejected(self, code: str, message: str, tool: str | None, based_on: int) -> None:
        self.metrics.record_error(code, stored=False)
        self.inner.warning(
            "Action rejected",
            code=code,
            error=message,
            tool=tool,
            based_on_sequence=based_on,
        )

    def executor_failed(self, frame: Frame, tool: str, error: str) -> None:
        self.metrics.record_error(frame.error_code.value if frame.error_code else "", stored=True)
        self.inner.error(
            "Executor failed",
            sequence=frame.sequence,
            scope_key=frame.scope_key,
            code=frame.error_code.value if frame.error_code else None,
            tool=tool,
            error=error,
        )

    def mutation_timeout(self, frame: Frame, tool: str, timeout: float) -> None:
        self.metrics.record_error(frame.error_code.value if frame.error_code else "", stored=True)
        self.inner.error(
            "Mutation timed out",
            sequence=frame.sequence,
            scope_key=frame.scope_key,
            tool=tool,
            timeout_s=timeout,
        )

    def desync_detected(self, sequence: int, reason: str, tool: str | None = None) -> None:
        self.metrics.record_desync()
        self.inner.warning("Channel desync", sequence=sequence, reason=reason, tool=tool)

    def recovery_selected(self, plan: RecoveryPlan) -> None:
        self.metrics.record_recovery(plan.strategy.value)
        self.inner.info(
            "Recovery selected",
            session_id=plan.session_id,
            strategy=plan.strategy.value,
            gap=plan.gap,
            missed=list(plan.missed),
            applied=plan.applied,
        )

    def reanchored(self, tool: str, from_sequence: int, to_sequence: int, attempt: int) -> None:
        self.metrics.record_reanchor()
        self.inner.warning(
            "Action re-anchored",
            tool=tool,
            from_sequence=from_sequence,
            to_sequence=to_sequence,
            attempt=attempt,
        )


__all__ = [
    "JSONLogger",
    "LogLevel",
    "ProtocolLogger",
    "ProtocolMetrics",
    "StructuredLogger",
    "get_metrics",
    "reset_metrics",
]
