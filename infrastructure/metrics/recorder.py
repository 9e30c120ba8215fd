"""Validation counters and response-time statistics.

Counters are monotonic for the process lifetime. Each one has its own lock so
increments of unrelated counters never contend. Every local increment is
mirrored into the injected MetricsSink.
"""

from __future__ import annotations

import threading
from typing import Optional

from infrastructure.metrics.sink import MetricsSink, NoopMetricsSink
from schemas.models.validation import MetricsSnapshot, ValidationResultType

# Per-kind error counter for each non-success result type
_ERROR_METRIC = {
    ValidationResultType.NETWORK_ERROR: "errors.network",
    ValidationResultType.CONFIGURATION_ERROR: "errors.config",
    ValidationResultType.INVALID_TOKEN: "errors.token",
    ValidationResultType.INPUT_ERROR: "errors.input",
}


class _Counter:
    __slots__ = ("_value", "_lock")

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def increment(self) -> None:
        with self._lock:
            self._value += 1

    @property
    def value(self) -> int:
        return self._value


class _ResponseTimes:
    """Last/total/count kept under one lock so the mean is never torn."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last = 0.0
        self._total = 0.0
        self._count = 0

    def record(self, duration_ms: float) -> None:
        with self._lock:
            self._last = duration_ms
            self._total += duration_ms
            self._count += 1

    @property
    def last(self) -> float:
        return self._last

    @property
    def average(self) -> float:
        with self._lock:
            return self._total / self._count if self._count else 0.0


class ValidationMetrics:
    def __init__(self, sink: Optional[MetricsSink] = None) -> None:
        self._sink: MetricsSink = sink if sink is not None else NoopMetricsSink()
        self._counters: dict[str, _Counter] = {
            name: _Counter()
            for name in ("requests", "success", "errors", *_ERROR_METRIC.values())
        }
        self._response_times = _ResponseTimes()

    def _increment(self, name: str) -> None:
        self._counters[name].increment()
        self._sink.increment(name)

    def record_attempt(self) -> None:
        self._increment("requests")

    def record_outcome(self, result_type: ValidationResultType) -> None:
        if result_type is ValidationResultType.SUCCESS:
            self._increment("success")
            return
        self._increment("errors")
        self._increment(_ERROR_METRIC[result_type])

    def record_response_time(self, duration_ms: float) -> None:
        self._response_times.record(duration_ms)
        self._sink.observe_response_time(duration_ms)

    @property
    def validation_count(self) -> int:
        return self._counters["requests"].value

    @property
    def success_count(self) -> int:
        return self._counters["success"].value

    @property
    def error_count(self) -> int:
        return self._counters["errors"].value

    @property
    def network_error_count(self) -> int:
        return self._counters["errors.network"].value

    @property
    def config_error_count(self) -> int:
        return self._counters["errors.config"].value

    @property
    def validation_error_count(self) -> int:
        return self._counters["errors.token"].value

    @property
    def input_error_count(self) -> int:
        return self._counters["errors.input"].value

    @property
    def last_response_time(self) -> float:
        return self._response_times.last

    @property
    def average_response_time(self) -> float:
        return self._response_times.average

    @property
    def error_rate(self) -> float:
        """Failed validations as a percentage of attempts; 0 before any attempt."""
        total = self.validation_count
        return self.error_count * 100.0 / total if total else 0.0

    def snapshot(self) -> MetricsSnapshot:
        return MetricsSnapshot(
            validation_count=self.validation_count,
            success_count=self.success_count,
            error_count=self.error_count,
            network_error_count=self.network_error_count,
            config_error_count=self.config_error_count,
            validation_error_count=self.validation_error_count,
            input_error_count=self.input_error_count,
            last_response_time=self.last_response_time,
            average_response_time=self.average_response_time,
            error_rate=self.error_rate,
        )
