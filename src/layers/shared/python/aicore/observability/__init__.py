"""Observability: metrics sinks for the invocation core."""

from aicore.observability.metrics import (
    CloudWatchMetricsSink,
    InMemoryMetricsSink,
    LoggingMetricsSink,
    MetricRecord,
    MetricsSink,
    RequestMetric,
    create_metrics_sink,
    get_metrics_sink,
    set_metrics_sink,
)

__all__ = [
    "CloudWatchMetricsSink",
    "InMemoryMetricsSink",
    "LoggingMetricsSink",
    "MetricRecord",
    "MetricsSink",
    "RequestMetric",
    "create_metrics_sink",
    "get_metrics_sink",
    "set_metrics_sink",
]
