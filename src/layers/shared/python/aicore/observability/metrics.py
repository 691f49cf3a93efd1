"""Metrics sinks for the AI invocation core.

Every circuit-breaker transition/block, retry, and invocation outcome is
reported as a labeled counter through a MetricsSink. Provider HTTP calls
additionally report a request metric (route, method, status, duration).

Sinks:
- InMemoryMetricsSink: keeps records in memory (tests, local runs)
- LoggingMetricsSink: emits records as structured log events
- CloudWatchMetricsSink: publishes to CloudWatch via boto3

Usage:
    metrics = get_metrics_sink()
    metrics.record_metric("ai.summarizer.outcome", 1, {"result": "success"})
"""

import os
import time
from dataclasses import dataclass, field
from typing import Any, Protocol

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

logger = structlog.get_logger()

Labels = dict[str, str | int | float | bool | None]


@dataclass
class MetricRecord:
    """A single counter observation."""

    name: str
    value: float
    labels: Labels = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


@dataclass
class RequestMetric:
    """Outcome of one outbound provider request."""

    route: str
    method: str
    status: int
    duration_ms: float
    service: str


class MetricsSink(Protocol):
    """Destination for counters and request metrics."""

    def record_metric(self, name: str, value: float, labels: Labels | None = None) -> None:
        ...

    def record_request_metric(self, metric: RequestMetric) -> None:
        ...


class InMemoryMetricsSink:
    """Metrics sink that keeps every record in memory."""

    def __init__(self) -> None:
        self.records: list[MetricRecord] = []
        self.requests: list[RequestMetric] = []

    def record_metric(self, name: str, value: float, labels: Labels | None = None) -> None:
        self.records.append(MetricRecord(name=name, value=value, labels=dict(labels or {})))

    def record_request_metric(self, metric: RequestMetric) -> None:
        self.requests.append(metric)

    def find(self, name: str) -> list[MetricRecord]:
        """Get all records with the given metric name."""
        return [record for record in self.records if record.name == name]

    def clear(self) -> None:
        self.records.clear()
        self.requests.clear()


class LoggingMetricsSink:
    """Metrics sink that writes each record as a structured log event."""

    def __init__(self) -> None:
        self.logger = logger.bind(service="metrics")

    def record_metric(self, name: str, value: float, labels: Labels | None = None) -> None:
        self.logger.info("metric", metric=name, value=value, labels=labels or {})

    def record_request_metric(self, metric: RequestMetric) -> None:
        self.logger.info(
            "request_metric",
            route=metric.route,
            method=metric.method,
            status=metric.status,
            duration_ms=round(metric.duration_ms, 2),
            upstream=metric.service,
        )


class CloudWatchMetricsSink:
    """Metrics sink that publishes to CloudWatch.

    Labels become metric dimensions. Publishing failures are logged and
    never propagate into the calling invocation.
    """

    def __init__(self, namespace: str | None = None, client: Any = None):
        """Initialize the CloudWatch sink.

        Args:
            namespace: CloudWatch namespace. Defaults to METRICS_NAMESPACE env.
            client: Optional pre-built CloudWatch client.
        """
        self.namespace = namespace or os.environ.get("METRICS_NAMESPACE", "AICore")
        self._cloudwatch = client
        self.logger = logger.bind(service="cloudwatch_metrics")

    @property
    def cloudwatch(self):
        """Get CloudWatch client (lazy initialization)."""
        if self._cloudwatch is None:
            self._cloudwatch = boto3.client("cloudwatch")
        return self._cloudwatch

    def record_metric(self, name: str, value: float, labels: Labels | None = None) -> None:
        self._put(
            {
                "MetricName": name,
                "Value": float(value),
                "Unit": "Count",
                "Dimensions": self._dimensions(labels or {}),
            }
        )

    def record_request_metric(self, metric: RequestMetric) -> None:
        self._put(
            {
                "MetricName": "ai.provider.request_duration",
                "Value": float(metric.duration_ms),
                "Unit": "Milliseconds",
                "Dimensions": self._dimensions(
                    {
                        "route": metric.route,
                        "method": metric.method,
                        "status": metric.status,
                        "service": metric.service,
                    }
                ),
            }
        )

    @staticmethod
    def _dimensions(labels: Labels) -> list[dict[str, str]]:
        # CloudWatch accepts at most 30 dimensions per datum
        return [
            {"Name": key, "Value": str(value)}
            for key, value in sorted(labels.items())
            if value is not None
        ][:30]

    def _put(self, datum: dict[str, Any]) -> None:
        try:
            self.cloudwatch.put_metric_data(Namespace=self.namespace, MetricData=[datum])
        except (ClientError, BotoCoreError) as e:
            self.logger.warning(
                "Failed to publish metric",
                metric=datum.get("MetricName"),
                error=str(e),
            )


# Singleton instance
_metrics_sink: MetricsSink | None = None


def create_metrics_sink(backend: str | None = None, namespace: str | None = None) -> MetricsSink:
    """Create a metrics sink by backend name.

    Args:
        backend: "memory", "log", or "cloudwatch". Defaults to METRICS_BACKEND env.
        namespace: CloudWatch namespace, used by the cloudwatch backend.

    Returns:
        MetricsSink instance.
    """
    backend = (backend or os.environ.get("METRICS_BACKEND", "log")).lower()
    if backend == "memory":
        return InMemoryMetricsSink()
    if backend == "cloudwatch":
        return CloudWatchMetricsSink(namespace=namespace)
    return LoggingMetricsSink()


def get_metrics_sink() -> MetricsSink:
    """Get the global MetricsSink instance.

    Returns:
        MetricsSink instance.
    """
    global _metrics_sink
    if _metrics_sink is None:
        _metrics_sink = create_metrics_sink()
    return _metrics_sink


def set_metrics_sink(sink: MetricsSink | None) -> None:
    """Replace the global MetricsSink (None restores lazy creation)."""
    global _metrics_sink
    _metrics_sink = sink
