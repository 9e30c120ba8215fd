"""
Metrics sinks the validation recorder mirrors its counters into.

MetricsSink            - protocol; the recorder depends on this
NoopMetricsSink        - used when metrics are disabled
PrometheusMetricsSink  - prometheus_client counters + response-time histogram

Every Prometheus series carries the fixed label component="turnstile".
"""

from __future__ import annotations

from typing import Optional, Protocol

from prometheus_client import CollectorRegistry, Counter, Histogram, REGISTRY

COMPONENT_LABEL = "component"
COMPONENT = "turnstile"

# Stable metric names used by the recorder → (prometheus name, description)
COUNTERS: dict[str, tuple[str, str]] = {
    "requests": (
        "turnstile_validation_requests",
        "Total number of Turnstile validation requests",
    ),
    "success": (
        "turnstile_validation_success",
        "Number of successful Turnstile validations",
    ),
    "errors": (
        "turnstile_validation_errors",
        "Number of failed Turnstile validations",
    ),
    "errors.network": (
        "turnstile_validation_errors_network",
        "Number of Turnstile validation network errors",
    ),
    "errors.config": (
        "turnstile_validation_errors_config",
        "Number of Turnstile validation configuration errors",
    ),
    "errors.token": (
        "turnstile_validation_errors_token",
        "Number of Turnstile validation token errors",
    ),
    "errors.input": (
        "turnstile_validation_errors_input",
        "Number of Turnstile validation input errors",
    ),
}


class MetricsSink(Protocol):
    def increment(self, name: str) -> None: ...

    def observe_response_time(self, duration_ms: float) -> None: ...


class NoopMetricsSink:
    def increment(self, name: str) -> None:
        pass

    def observe_response_time(self, duration_ms: float) -> None:
        pass


class PrometheusMetricsSink:
    """Registers the Turnstile series on *registry* (the global one by default).

    Pass a fresh CollectorRegistry when more than one sink lives in a process,
    e.g. in tests; registering the same names twice on one registry fails.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry if registry is not None else REGISTRY
        self._counters = {
            name: Counter(
                prom_name, description, [COMPONENT_LABEL], registry=self.registry
            ).labels(**{COMPONENT_LABEL: COMPONENT})
            for name, (prom_name, description) in COUNTERS.items()
        }
        self._response_time = Histogram(
            "turnstile_validation_response_time_seconds",
            "Response time for Turnstile validation requests",
            [COMPONENT_LABEL],
            registry=self.registry,
            buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
        ).labels(**{COMPONENT_LABEL: COMPONENT})

    def increment(self, name: str) -> None:
        self._counters[name].inc()

    def observe_response_time(self, duration_ms: float) -> None:
        self._response_time.observe(duration_ms / 1000.0)
