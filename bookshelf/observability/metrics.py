from __future__ import annotations

import math
from bisect import bisect_left
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from threading import Lock

from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.core import CounterMetricFamily, HistogramMetricFamily, Metric
from prometheus_client.utils import floatToGoString

REQUEST_DURATION_NAME = "http_request_duration_seconds"
REQUEST_DURATION_HELP = "Duration of HTTP requests in seconds"
ERRORS_NAME = "http_errors_total"
ERRORS_HELP = "Total number of HTTP errors"

# Same bounds as the Go client's DefBuckets.
DEFAULT_BUCKETS: tuple[float, ...] = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, math.inf)


@dataclass(frozen=True)
class MetricEvent:
    """One completed request."""

    duration: float
    failed: bool = False

    def __post_init__(self) -> None:
        if math.isnan(self.duration) or self.duration < 0:
            raise ValueError("duration must be a non-negative number of seconds")


@dataclass(frozen=True)
class HistogramSnapshot:
    upper_bounds: tuple[float, ...]
    bucket_counts: tuple[int, ...]
    sum: float
    count: int

    def cumulative(self) -> list[tuple[float, int]]:
        running = 0
        out = []
        for bound, n in zip(self.upper_bounds, self.bucket_counts):
            running += n
            out.append((bound, running))
        return out


@dataclass(frozen=True)
class MetricsSnapshot:
    latency: HistogramSnapshot
    errors: int


def _normalize_bounds(buckets: Iterable[float]) -> tuple[float, ...]:
    bounds = [float(b) for b in buckets]
    if not bounds:
        raise ValueError("at least one bucket is required")
    if any(lo >= hi for lo, hi in zip(bounds, bounds[1:])):
        raise ValueError("buckets must be strictly increasing")
    if bounds[-1] != math.inf:
        bounds.append(math.inf)
    return tuple(bounds)


class LatencyHistogram:
    """Per-bucket counters plus running sum and count.

    Not synchronized on its own; ``RequestMetrics`` guards it.
    """

    def __init__(self, buckets: Iterable[float] = DEFAULT_BUCKETS) -> None:
        self.upper_bounds = _normalize_bounds(buckets)
        self._counts = [0] * len(self.upper_bounds)
        self._sum = 0.0
        self._count = 0

    def bucket_index(self, duration: float) -> int:
        # Smallest bound >= duration; the last bound is +Inf.
        return bisect_left(self.upper_bounds, duration)

    def observe(self, duration: float) -> None:
        self._counts[self.bucket_index(duration)] += 1
        self._sum += duration
        self._count += 1

    def snapshot(self) -> HistogramSnapshot:
        return HistogramSnapshot(
            upper_bounds=self.upper_bounds,
            bucket_counts=tuple(self._counts),
            sum=self._sum,
            count=self._count,
        )


class RequestMetrics:
    """Thread-safe HTTP latency histogram and error counter.

    One lock covers both aggregates, so every snapshot is a state that existed
    between two complete ``record`` calls.
    """

    def __init__(self, buckets: Iterable[float] = DEFAULT_BUCKETS) -> None:
        self._lock = Lock()
        self._buckets = tuple(buckets)
        self._latency = LatencyHistogram(self._buckets)
        self._errors = 0
        self.registry = CollectorRegistry()
        self.registry.register(_RequestMetricsCollector(self))

    @property
    def upper_bounds(self) -> tuple[float, ...]:
        return self._latency.upper_bounds

    def record(self, event: MetricEvent) -> None:
        with self._lock:
            self._latency.observe(event.duration)
            if event.failed:
                self._errors += 1

    def observe(self, duration: float, failed: bool = False) -> None:
        self.record(MetricEvent(duration=duration, failed=failed))

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return MetricsSnapshot(latency=self._latency.snapshot(), errors=self._errors)

    def render(self) -> bytes:
        """Prometheus text exposition of the current snapshot."""

        return generate_latest(self.registry)

    def reset(self) -> None:
        with self._lock:
            self._latency = LatencyHistogram(self._buckets)
            self._errors = 0


class _RequestMetricsCollector:
    def __init__(self, metrics: RequestMetrics) -> None:
        self._metrics = metrics

    def describe(self) -> Sequence[Metric]:
        return [
            HistogramMetricFamily(REQUEST_DURATION_NAME, REQUEST_DURATION_HELP),
            CounterMetricFamily(ERRORS_NAME, ERRORS_HELP),
        ]

    def collect(self) -> Iterator[Metric]:
        snap = self._metrics.snapshot()
        latency = snap.latency
        yield HistogramMetricFamily(
            REQUEST_DURATION_NAME,
            REQUEST_DURATION_HELP,
            buckets=[(floatToGoString(bound), total) for bound, total in latency.cumulative()],
            sum_value=latency.sum,
        )
        yield CounterMetricFamily(ERRORS_NAME, ERRORS_HELP, value=snap.errors)
