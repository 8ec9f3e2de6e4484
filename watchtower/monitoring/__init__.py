# Monitoring module - Metrics collection and Prometheus export
from .metrics import (
    DEFAULT_BUCKETS,
    MetricsCollector,
    MetricType,
    MetricValue,
    PrometheusFormatter,
)

__all__ = [
    "DEFAULT_BUCKETS",
    "MetricsCollector",
    "MetricType",
    "MetricValue",
    "PrometheusFormatter",
]
