"""In-process metrics for the storefront.

Counters, gauges and histograms in the spirit of Prometheus, kept in a
module-level registry and exportable in the text exposition format via
:func:`generate_metrics_text`.  No external client library is involved.
"""

from collections import defaultdict
from threading import Lock
from typing import Dict, Iterable, List, Tuple

LabelKey = Tuple[str, ...]


class Metric:
    """Base class for all metrics."""

    kind = "untyped"

    def __init__(self, name: str, description: str, label_names: Iterable[str]):
        self.name = name
        self.description = description
        self.label_names = list(label_names)
        self._lock = Lock()
        _METRIC_REGISTRY.append(self)

    def _key(self, labels: Dict[str, str]) -> LabelKey:
        return tuple(str(labels.get(k, "")) for k in self.label_names)

    def _format_labels(self, label_values: LabelKey, **more: str) -> str:
        pairs = [f'{name}="{value}"' for name, value in zip(self.label_names, label_values)]
        pairs.extend(f'{name}="{value}"' for name, value in more.items())
        return "{" + ",".join(pairs) + "}" if pairs else ""

    def _header(self) -> List[str]:
        return [f"# HELP {self.name} {self.description}", f"# TYPE {self.name} {self.kind}"]

    def reset(self) -> None:
        raise NotImplementedError

    def to_prometheus(self) -> List[str]:
        raise NotImplementedError


class Counter(Metric):
    """Monotonic counter: ``CACHE_HITS_TOTAL.inc()`` or ``.inc(channel="email")``."""

    kind = "counter"

    def __init__(self, name: str, description: str, label_names: Iterable[str] = ()):
        super().__init__(name, description, label_names)
        self._values: Dict[LabelKey, float] = defaultdict(float)

    def inc(self, amount: float = 1.0, **labels: str) -> None:
        if amount < 0:
            raise ValueError("Counters can only increase")
        with self._lock:
            self._values[self._key(labels)] += amount

    def value(self, **labels: str) -> float:
        with self._lock:
            return self._values.get(self._key(labels), 0.0)

    def reset(self) -> None:
        with self._lock:
            self._values.clear()

    def to_prometheus(self) -> List[str]:
        lines = self._header()
        with self._lock:
            for label_values, value in self._values.items():
                lines.append(f"{self.name}{self._format_labels(label_values)} {value}")
        return lines


class Gauge(Metric):
    """Value that can go up and down."""

    kind = "gauge"

    def __init__(self, name: str, description: str, label_names: Iterable[str] = ()):
        super().__init__(name, description, label_names)
        self._values: Dict[LabelKey, float] = {}

    def set(self, value: float, **labels: str) -> None:
        with self._lock:
            self._values[self._key(labels)] = float(value)

    def inc(self, amount: float = 1.0, **labels: str) -> None:
        key = self._key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + amount

    def dec(self, amount: float = 1.0, **labels: str) -> None:
        self.inc(-amount, **labels)

    def value(self, **labels: str) -> float:
        with self._lock:
            return self._values.get(self._key(labels), 0.0)

    def reset(self) -> None:
        with self._lock:
            self._values.clear()

    def to_prometheus(self) -> List[str]:
        lines = self._header()
        with self._lock:
            for label_values, value in self._values.items():
                lines.append(f"{self.name}{self._format_labels(label_values)} {value}")
        return lines


class Histogram(Metric):
    """Histogram with fixed ascending bucket bounds plus an implicit ``+Inf``."""

    kind = "histogram"

    def __init__(self, name: str, description: str, label_names: Iterable[str], buckets: Iterable[float]):
        super().__init__(name, description, label_names)
        self.buckets = sorted(float(b) for b in buckets)
        # Per-bucket (non-cumulative) counts; cumulated at export time
        self._counts: Dict[LabelKey, List[int]] = defaultdict(lambda: [0] * len(self.buckets))
        self._sums: Dict[LabelKey, float] = defaultdict(float)
        self._totals: Dict[LabelKey, int] = defaultdict(int)

    def observe(self, value: float, **labels: str) -> None:
        key = self._key(labels)
        with self._lock:
            for idx, bound in enumerate(self.buckets):
                if value <= bound:
                    self._counts[key][idx] += 1
                    break
            self._totals[key] += 1
            self._sums[key] += float(value)

    def count(self, **labels: str) -> int:
        with self._lock:
            return self._totals.get(self._key(labels), 0)

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()
            self._sums.clear()
            self._totals.clear()

    def to_prometheus(self) -> List[str]:
        lines = self._header()
        with self._lock:
            for label_values, total in self._totals.items():
                cumulative = 0
                for idx, upper in enumerate(self.buckets):
                    cumulative += self._counts[label_values][idx]
                    lines.append(f"{self.name}_bucket{self._format_labels(label_values, le=str(upper))} {cumulative}")
                lines.append(f"{self.name}_bucket{self._format_labels(label_values, le='+Inf')} {total}")
                label_str = self._format_labels(label_values)
                lines.append(f"{self.name}_sum{label_str} {self._sums[label_values]}")
                lines.append(f"{self.name}_count{label_str} {total}")
        return lines


_METRIC_REGISTRY: List[Metric] = []


def generate_metrics_text() -> bytes:
    """Render every registered metric in the Prometheus text format."""
    lines: List[str] = []
    for metric in _METRIC_REGISTRY:
        lines.extend(metric.to_prometheus())
    return "\n".join(lines).encode("utf-8")


def reset_all() -> None:
    """Zero every registered metric (used between test cases)."""
    for metric in _METRIC_REGISTRY:
        metric.reset()


# -----------------------------------------------------------------------------
# Storefront metrics
# -----------------------------------------------------------------------------

API_REQUESTS_TOTAL = Counter(
    name="api_requests_total",
    description="Requests handled by the in-process API router",
    label_names=["endpoint", "method", "status"],
)

API_REQUEST_LATENCY_SECONDS = Histogram(
    name="api_request_latency_seconds",
    description="API router handler latency in seconds",
    label_names=["endpoint"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0],
)

CHECKOUT_DURATION_SECONDS = Histogram(
    name="checkout_duration_seconds",
    description="Duration of checkout operations in seconds",
    label_names=["payment_method"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
)

CHECKOUT_ERROR_TOTAL = Counter(
    name="checkout_error_total",
    description="Checkout failures, labelled by type",
    label_names=["type"],
)

PAYMENTS_TOTAL = Counter(
    name="payments_total",
    description="Payment attempts, labelled by method and outcome",
    label_names=["method", "outcome"],
)

CIRCUIT_BREAKER_OPEN = Gauge(
    name="payment_circuit_breaker_open",
    description="Payment circuit breaker state (1=open, 0=closed)",
)

CACHE_HITS_TOTAL = Counter(
    name="cache_hits_total",
    description="Performance cache lookups that returned a live entry",
)

CACHE_MISSES_TOTAL = Counter(
    name="cache_misses_total",
    description="Performance cache lookups that found nothing or a stale entry",
)

CACHE_EVICTIONS_TOTAL = Counter(
    name="cache_evictions_total",
    description="Entries evicted to make room for new inserts",
)

CACHE_SIZE_BYTES = Gauge(
    name="cache_size_bytes",
    description="Running byte total of the performance cache",
)

NOTIFICATIONS_TOTAL = Counter(
    name="notifications_total",
    description="Notifications handed to the delivery gateway",
    label_names=["channel", "status"],
)
