"""
Mapping Logger - Structured event sink and attempt counters

Every stage reports through a MappingLogger:
- Events are forwarded to structlog and kept in a bounded in-memory buffer
  so an external dashboard can pull them (get_logs)
- An optional sink callable receives each event as it is emitted; a
  sink that raises is reported to structlog and otherwise ignored
- Attempt counters (total/successful/failed/average duration) back the
  pull-based summary, and are mirrored into Prometheus metrics

Usage:
    mapping_logger = MappingLogger()
    mapping_logger.start_attempt("txn-001")
    mapping_logger.log("info", "rag_mapping_complete", confidence=0.42)
    duration_ms = mapping_logger.end_attempt("txn-001", success=True)
"""
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

import structlog
from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

from packages.common.config import Settings, get_settings

logger = structlog.get_logger()


class LogLevel(str, Enum):
    """Levels accepted by the external log collector"""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class LogEntry:
    """One structured event"""
    timestamp: str
    level: LogLevel
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    duration: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        entry = {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "message": self.message,
        }
        if self.data:
            entry["data"] = self.data
        if self.duration is not None:
            entry["duration"] = self.duration
        return entry


@dataclass
class AttemptSummary:
    """Counters for mapping attempts"""
    total: int = 0
    successful: int = 0
    failed: int = 0
    average_duration: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "average_duration": self.average_duration,
        }


EventSink = Callable[[LogEntry], None]


class MappingLogger:
    """
    Structured event sink shared by all mapping components.

    Not thread-safe; follows the same single-writer discipline as the
    mapping components that use it.
    """

    def __init__(self, settings: Optional[Settings] = None, sink: Optional[EventSink] = None):
        self.settings = settings or get_settings()
        self.sink = sink
        self._logs: Deque[LogEntry] = deque(maxlen=self.settings.log_buffer_size)
        self._attempts = AttemptSummary()
        self._start_times: Dict[str, float] = {}

        # Per-instance registry so several loggers can coexist in one process
        self.registry = CollectorRegistry()
        self._attempt_counter = Counter(
            "mapping_attempts",
            "Mapping attempts by outcome",
            ["outcome"],
            registry=self.registry,
        )
        self._duration_histogram = Histogram(
            "mapping_attempt_duration_seconds",
            "Duration of completed mapping attempts",
            registry=self.registry,
        )

    def log(self, level: str, message: str, duration: Optional[float] = None, **data: Any) -> LogEntry:
        """
        Record a structured event.

        Args:
            level: info, warning or error
            message: Event name (snake_case)
            duration: Elapsed milliseconds, if the event closes a timed step
            **data: Structured context

        Returns:
            The recorded LogEntry
        """
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=LogLevel(level),
            message=message,
            data=data,
            duration=duration,
        )
        self._logs.append(entry)

        log_kwargs = dict(data)
        if duration is not None:
            log_kwargs["duration_ms"] = round(duration, 2)

        if entry.level == LogLevel.ERROR:
            logger.error(message, **log_kwargs)
        elif entry.level == LogLevel.WARNING:
            logger.warning(message, **log_kwargs)
        else:
            logger.info(message, **log_kwargs)

        if self.sink is not None:
            try:
                self.sink(entry)
            except Exception as e:
                # A broken collector never interrupts mapping
                logger.error("mapping_log_sink_failed",
                             event_message=message,
                             error=str(e),
                             error_type=type(e).__name__)

        return entry

    def start_attempt(self, transaction_id: str) -> None:
        self._start_times[transaction_id] = time.perf_counter()
        self._attempts.total += 1

    def end_attempt(self, transaction_id: str, success: bool) -> float:
        """
        Close an attempt opened by start_attempt.

        Returns:
            Duration in milliseconds, or 0.0 if no attempt was open
        """
        start_time = self._start_times.pop(transaction_id, None)
        if start_time is None:
            return 0.0

        duration = (time.perf_counter() - start_time) * 1000

        if success:
            self._attempts.successful += 1
        else:
            self._attempts.failed += 1

        completed = self._attempts.successful + self._attempts.failed
        self._attempts.average_duration = (
            (self._attempts.average_duration * (completed - 1) + duration) / completed
        )

        self._attempt_counter.labels(outcome="success" if success else "failure").inc()
        self._duration_histogram.observe(duration / 1000)

        return duration

    def get_logs(self) -> List[LogEntry]:
        return list(self._logs)

    def get_attempt_summary(self) -> AttemptSummary:
        return AttemptSummary(**self._attempts.to_dict())

    def get_performance_metrics(self) -> Dict[str, Any]:
        attempts = self._attempts
        return {
            "average_duration": attempts.average_duration,
            "success_rate": (attempts.successful / attempts.total) * 100 if attempts.total > 0 else 0.0,
            "total_attempts": attempts.total,
            "successful_attempts": attempts.successful,
            "failed_attempts": attempts.failed,
        }

    def export_metrics(self) -> bytes:
        """Prometheus text exposition of the attempt metrics"""
        if not self.settings.metrics_enabled:
            return b""
        return generate_latest(self.registry)

    def clear(self) -> None:
        """Drop buffered events and reset summary counters"""
        self._logs.clear()
        self._attempts = AttemptSummary()
        self._start_times.clear()
        logger.info("mapping_logs_cleared")
