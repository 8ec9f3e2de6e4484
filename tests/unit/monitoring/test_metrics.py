"""Tests for the metrics collector and Prometheus export."""

from watchtower.monitoring import MetricsCollector, MetricType, MetricValue, PrometheusFormatter
from watchtower.monitoring.metrics import DISABLED_EXPORT, escape_label_value, format_value


class TestFormatting:
    """Tests for exposition helpers."""

    def test_format_value(self):
        assert format_value(3.0) == "3"
        assert format_value(0.25) == "0.25"

    def test_escape_label_value(self):
        assert escape_label_value('a"b\\c\nd') == 'a\\"b\\\\c\\nd'

    def test_metric_value_with_sorted_labels(self):
        value = MetricValue("x_total", 2, {"b": "2", "a": "1"}, MetricType.COUNTER)
        assert value.to_prometheus() == 'x_total{a="1",b="2"} 2'

    def test_empty_export(self):
        assert PrometheusFormatter.format_metrics([]) == ""


class TestMetricsCollector:
    """Tests for MetricsCollector."""

    def test_counters(self):
        metrics = MetricsCollector()
        metrics.increment_counter("watchtower_alerts_sent_total")
        metrics.increment_counter("watchtower_alerts_sent_total")
        metrics.increment_counter("watchtower_alerts_dropped_total", {"reason": "in_flight"})

        assert metrics.get_counter("watchtower_alerts_sent_total") == 2
        assert metrics.get_counter("watchtower_alerts_dropped_total", {"reason": "in_flight"}) == 1
        assert metrics.get_counter("watchtower_alerts_dropped_total") == 0

    def test_gauges_overwrite(self):
        metrics = MetricsCollector()
        metrics.set_gauge("watchtower_retry_queue_size", 3)
        metrics.set_gauge("watchtower_retry_queue_size", 1)

        assert metrics.get_gauge("watchtower_retry_queue_size") == 1
        assert metrics.get_gauge("missing") is None

    def test_export_format(self):
        metrics = MetricsCollector()
        metrics.increment_counter("watchtower_alerts_sent_total")
        metrics.increment_counter("watchtower_alerts_dropped_total", {"reason": "unknown_process"})
        metrics.set_gauge("watchtower_retry_queue_size", 2)

        lines = metrics.export_prometheus().splitlines()

        assert "# TYPE watchtower_alerts_sent_total counter" in lines
        assert "watchtower_alerts_sent_total 1" in lines
        assert 'watchtower_alerts_dropped_total{reason="unknown_process"} 1' in lines
        assert "# TYPE watchtower_retry_queue_size gauge" in lines
        assert "watchtower_retry_queue_size 2" in lines

    def test_histogram_buckets_are_cumulative(self):
        metrics = MetricsCollector(histogram_buckets=(0.1, 1.0))
        for value in (0.0625, 0.5, 0.75, 3.0):
            metrics.observe_histogram("watchtower_alert_send_seconds", value)

        lines = metrics.export_prometheus().splitlines()

        assert "# TYPE watchtower_alert_send_seconds histogram" in lines
        assert 'watchtower_alert_send_seconds_bucket{le="0.1"} 1' in lines
        assert 'watchtower_alert_send_seconds_bucket{le="1"} 3' in lines
        assert 'watchtower_alert_send_seconds_bucket{le="+Inf"} 4' in lines
        assert "watchtower_alert_send_seconds_sum 4.3125" in lines
        assert "watchtower_alert_send_seconds_count 4" in lines
        assert metrics.get_histogram_count("watchtower_alert_send_seconds") == 4

    def test_export_ends_with_newline(self):
        metrics = MetricsCollector()
        metrics.increment_counter("x_total")
        assert metrics.export_prometheus().endswith("\n")

    def test_disabled_records_nothing(self):
        metrics = MetricsCollector(enabled=False)
        metrics.increment_counter("x_total")
        metrics.set_gauge("y", 1)
        metrics.observe_histogram("z", 0.1)

        assert metrics.get_counter("x_total") == 0
        assert metrics.export_prometheus() == DISABLED_EXPORT

    def test_reset(self):
        metrics = MetricsCollector()
        metrics.increment_counter("x_total")
        metrics.reset()
        assert metrics.export_prometheus() == ""
