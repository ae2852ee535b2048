"""In-process metrics for the marketplace, exported in Prometheus text format.

Counters and histograms are kept in module-level objects and registered in a
global registry; :func:`generate_metrics_text` renders all of them.  Only the
standard library is used.
"""

from collections import defaultdict
from threading import Lock
from typing import Dict, Iterable, List, Tuple

LabelValues = Tuple[str, ...]


class Metric:
    """Base class: a named metric with a fixed set of label names."""

    kind = "untyped"

    def __init__(self, name: str, description: str, label_names: Iterable[str] = ()):
        self.name = name
        self.description = description
        self.label_names = list(label_names)
        self._lock = Lock()
        _METRIC_REGISTRY.append(self)

    def _key(self, labels: Dict[str, str]) -> LabelValues:
        return tuple(str(labels.get(k, "")) for k in self.label_names)

    def _labels(self, values: LabelValues, **extra: str) -> str:
        pairs = [f'{k}="{v}"' for k, v in zip(self.label_names, values)]
        pairs.extend(f'{k}="{v}"' for k, v in extra.items())
        return "{" + ",".join(pairs) + "}" if pairs else ""

    def _header(self) -> List[str]:
        return [f"# HELP {self.name} {self.description}", f"# TYPE {self.name} {self.kind}"]

    def to_prometheus(self) -> List[str]:
        raise NotImplementedError


class Counter(Metric):
    """Monotonic counter.  ``ORDERS.inc(amount=2)`` or ``ERRORS.inc(type="conflict")``."""

    kind = "counter"

    def __init__(self, name: str, description: str, label_names: Iterable[str] = ()):
        super().__init__(name, description, label_names)
        self._values: Dict[LabelValues, float] = defaultdict(float)

    def inc(self, amount: float = 1, **labels: str) -> None:
        if amount < 0:
            raise ValueError("Counters can only go up")
        with self._lock:
            self._values[self._key(labels)] += amount

    def value(self, **labels: str) -> float:
        with self._lock:
            return self._values.get(self._key(labels), 0.0)

    def to_prometheus(self) -> List[str]:
        lines = self._header()
        with self._lock:
            for values, count in self._values.items():
                lines.append(f"{self.name}{self._labels(values)} {count}")
        return lines


class Histogram(Metric):
    """Histogram with fixed ascending bucket upper bounds plus ``+Inf``."""

    kind = "histogram"

    def __init__(
        self, name: str, description: str, label_names: Iterable[str], buckets: Iterable[float]
    ):
        super().__init__(name, description, label_names)
        self.buckets = sorted(float(b) for b in buckets)
        # cumulative counts per bucket, so the text export needs no summing
        self._counts: Dict[LabelValues, List[int]] = defaultdict(lambda: [0] * len(self.buckets))
        self._sums: Dict[LabelValues, float] = defaultdict(float)
        self._totals: Dict[LabelValues, int] = defaultdict(int)

    def observe(self, value: float, **labels: str) -> None:
        key = self._key(labels)
        with self._lock:
            counts = self._counts[key]
            for idx, upper in enumerate(self.buckets):
                if value <= upper:
                    counts[idx] += 1
            self._totals[key] += 1
            self._sums[key] += float(value)

    def count(self, **labels: str) -> int:
        with self._lock:
            return self._totals.get(self._key(labels), 0)

    def to_prometheus(self) -> List[str]:
        lines = self._header()
        with self._lock:
            for values, total in self._totals.items():
                for upper, cumulative in zip(self.buckets, self._counts[values]):
                    lines.append(f"{self.name}_bucket{self._labels(values, le=str(upper))} {cumulative}")
                lines.append(f"{self.name}_bucket{self._labels(values, le='+Inf')} {total}")
                lines.append(f"{self.name}_sum{self._labels(values)} {self._sums[values]}")
                lines.append(f"{self.name}_count{self._labels(values)} {total}")
        return lines


_METRIC_REGISTRY: List[Metric] = []


def generate_metrics_text() -> bytes:
    """Render every registered metric in the Prometheus exposition format."""
    lines: List[str] = []
    for metric in _METRIC_REGISTRY:
        lines.extend(metric.to_prometheus())
    return "\n".join(lines).encode("utf-8")


# -----------------------------------------------------------------------------
# Marketplace metrics
# -----------------------------------------------------------------------------

# Duration of checkout transactions, labelled by outcome (success/error)
CHECKOUT_DURATION_SECONDS = Histogram(
    name="checkout_duration_seconds",
    description="Duration of checkout operations in seconds",
    label_names=["outcome"],
    buckets=[0.01, 0.05, 0.1, 0.2, 0.5, 1.0, 2.0, 5.0, 10.0],
)

# Failed checkouts, labelled by error category
CHECKOUT_ERROR_TOTAL = Counter(
    name="checkout_error_total",
    description="Total number of checkout errors, labelled by type",
    label_names=["type"],
)

ORDERS_CREATED_TOTAL = Counter(
    name="orders_created_total",
    description="Total number of orders created by checkouts",
)

# Seller status updates, labelled by result (updated or the error category)
ORDER_STATUS_UPDATES_TOTAL = Counter(
    name="order_status_updates_total",
    description="Order status update attempts, labelled by result",
    label_names=["result"],
)

ORDER_CANCELLATIONS_TOTAL = Counter(
    name="order_cancellations_total",
    description="Orders canceled by buyers",
)

STOCK_RESTORE_FAILURES_TOTAL = Counter(
    name="stock_restore_failures_total",
    description="Cancellations whose compensating stock restore failed",
)
