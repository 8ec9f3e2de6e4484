"""
Metrics collector module.

In-process counters, gauges and histograms with Prometheus text export.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from watchtower.core import get_logger

logger = get_logger(__name__)

LabelsKey = Tuple[Tuple[str, str], ...]

# Latency buckets in seconds
DEFAULT_BUCKETS: Tuple[float, ...] = (
    0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0,
)

DISABLED_EXPORT = "# Metrics collection is disabled\n"


class MetricType(Enum):
    """Prometheus metric types."""

    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"


def escape_label_value(value: str) -> str:
    """Escape a label value for the exposition format."""
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def format_labels(labels: Dict[str, str]) -> str:
    """Render labels sorted by name, e.g. {reason="unknown"}."""
    if not labels:
        return ""
    parts = [f'{k}="{escape_label_value(str(v))}"' for k, v in sorted(labels.items())]
    return "{" + ",".join(parts) + "}"


def format_value(value: float) -> str:
    """Whole numbers without a trailing .0."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


@dataclass
class MetricValue:
    """A single sample with labels."""

    name: str
    value: float
    labels: Dict[str, str] = field(default_factory=dict)
    metric_type: MetricType = MetricType.GAUGE

    def to_prometheus(self) -> str:
        return f"{self.name}{format_labels(self.labels)} {format_value(self.value)}"


@dataclass
class HistogramBucket:
    """Cumulative histogram bucket."""

    le: float  # Less than or equal
    count: int


@dataclass
class HistogramValue:
    """Histogram metric value."""

    name: str
    buckets: List[HistogramBucket]
    sum_value: float
    count: int
    labels: Dict[str, str] = field(default_factory=dict)

    def to_prometheus_lines(self) -> List[str]:
        """Convert to Prometheus text format lines."""
        lines = []
        for bucket in self.buckets:
            le = "+Inf" if bucket.le == float("inf") else format_value(bucket.le)
            labels = {**self.labels, "le": le}
            lines.append(f"{self.name}_bucket{format_labels(labels)} {bucket.count}")

        label_str = format_labels(self.labels)
        lines.append(f"{self.name}_sum{label_str} {format_value(self.sum_value)}")
        lines.append(f"{self.name}_count{label_str} {self.count}")

        return lines


class PrometheusFormatter:
    """Formats metrics in Prometheus exposition format."""

    @staticmethod
    def format_metrics(
        metrics: List[MetricValue],
        histograms: Optional[List[HistogramValue]] = None,
    ) -> str:
        """
        Format metrics as Prometheus text.

        Args:
            metrics: Counter and gauge samples
            histograms: Optional histogram values

        Returns:
            Exposition format string ending in a newline
        """
        lines = []

        by_name: Dict[str, List[MetricValue]] = defaultdict(list)
        for m in metrics:
            by_name[m.name].append(m)

        for name, values in sorted(by_name.items()):
            lines.append(f"# TYPE {name} {values[0].metric_type.value}")
            for v in values:
                lines.append(v.to_prometheus())

        hist_by_name: Dict[str, List[HistogramValue]] = defaultdict(list)
        for hist in histograms or []:
            hist_by_name[hist.name].append(hist)

        for name, values in sorted(hist_by_name.items()):
            lines.append(f"# TYPE {name} histogram")
            for hist in values:
                lines.extend(hist.to_prometheus_lines())

        if not lines:
            return ""
        return "\n".join(lines) + "\n"


class MetricsCollector:
    """
    Named counters, gauges and histograms.

    A disabled collector accepts every call and records nothing.

    Example:
        >>> metrics = MetricsCollector()
        >>> metrics.increment_counter("watchtower_alerts_sent_total")
        >>> metrics.set_gauge("watchtower_retry_queue_size", 3)
        >>> metrics.observe_histogram("watchtower_alert_send_seconds", 0.12)
        >>> text = metrics.export_prometheus()
    """

    def __init__(
        self,
        enabled: bool = True,
        histogram_buckets: Optional[Tuple[float, ...]] = None,
    ):
        """
        Initialize the collector.

        Args:
            enabled: Record and export metrics
            histogram_buckets: Bucket upper bounds in seconds
        """
        self._enabled = enabled
        self._buckets = tuple(sorted(histogram_buckets or DEFAULT_BUCKETS))

        self._counters: Dict[str, Dict[LabelsKey, float]] = defaultdict(lambda: defaultdict(float))
        self._gauges: Dict[str, Dict[LabelsKey, float]] = defaultdict(dict)
        # name -> labels -> (per-bucket counts incl. +Inf, sum, count)
        self._histograms: Dict[str, Dict[LabelsKey, Tuple[List[int], float, int]]] = defaultdict(dict)

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def buckets(self) -> Tuple[float, ...]:
        return self._buckets

    @staticmethod
    def _labels_key(labels: Optional[Dict[str, str]]) -> LabelsKey:
        return tuple(sorted((labels or {}).items()))

    def increment_counter(
        self,
        name: str,
        labels: Optional[Dict[str, str]] = None,
        value: float = 1.0,
    ) -> None:
        """
        Increment a counter.

        Args:
            name: Counter name
            labels: Metric labels
            value: Amount to add
        """
        if not self._enabled:
            return
        self._counters[name][self._labels_key(labels)] += value

    def set_gauge(
        self,
        name: str,
        value: float,
        labels: Optional[Dict[str, str]] = None,
    ) -> None:
        if not self._enabled:
            return
        self._gauges[name][self._labels_key(labels)] = value

    def observe_histogram(
        self,
        name: str,
        value: float,
        labels: Optional[Dict[str, str]] = None,
    ) -> None:
        """
        Record one observation.

        The value is counted in the first bucket whose bound it does not
        exceed, or in +Inf.
        """
        if not self._enabled:
            return

        key = self._labels_key(labels)
        series = self._histograms[name]
        counts, total, count = series.get(key, ([0] * (len(self._buckets) + 1), 0.0, 0))

        index = len(self._buckets)
        for i, bound in enumerate(self._buckets):
            if value <= bound:
                index = i
                break
        counts[index] += 1

        series[key] = (counts, total + value, count + 1)

    def get_counter(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        return self._counters.get(name, {}).get(self._labels_key(labels), 0.0)

    def get_gauge(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        return self._gauges.get(name, {}).get(self._labels_key(labels))

    def get_histogram_count(self, name: str, labels: Optional[Dict[str, str]] = None) -> int:
        entry = self._histograms.get(name, {}).get(self._labels_key(labels))
        return entry[2] if entry else 0

    def _collect_samples(self) -> List[MetricValue]:
        metrics = []

        for name, values in self._counters.items():
            for key, value in values.items():
                metrics.append(MetricValue(name, value, dict(key), MetricType.COUNTER))

        for name, values in self._gauges.items():
            for key, value in values.items():
                metrics.append(MetricValue(name, value, dict(key), MetricType.GAUGE))

        return metrics

    def _collect_histograms(self) -> List[HistogramValue]:
        histograms = []

        for name, values in self._histograms.items():
            for key, (counts, total, count) in values.items():
                buckets = []
                cumulative = 0
                for bound, bucket_count in zip(self._buckets, counts):
                    cumulative += bucket_count
                    buckets.append(HistogramBucket(le=bound, count=cumulative))
                buckets.append(HistogramBucket(le=float("inf"), count=count))

                histograms.append(
                    HistogramValue(
                        name=name,
                        buckets=buckets,
                        sum_value=total,
                        count=count,
                        labels=dict(key),
                    )
                )

        return histograms

    def export_prometheus(self) -> str:
        """
        Export all metrics in Prometheus text format.

        Returns:
            Exposition format string
        """
        if not self._enabled:
            return DISABLED_EXPORT

        return PrometheusFormatter.format_metrics(
            self._collect_samples(),
            self._collect_histograms(),
        )

    def reset(self) -> None:
        """Reset all metrics."""
        self._counters.clear()
        self._gauges.clear()
        self._histograms.clear()
