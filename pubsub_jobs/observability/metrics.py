"""
Prometheus metrics collection.
"""

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    start_http_server,
)

from pubsub_jobs.constants import (
    METRIC_ACKS,
    METRIC_ACTIVE_JOBS,
    METRIC_DEADLINE_RENEWALS,
    METRIC_JOB_DURATION,
    METRIC_JOBS_COMPLETED,
    METRIC_MESSAGES_PUBLISHED,
    METRIC_MESSAGES_PULLED,
    METRIC_TRANSPORT_LATENCY,
    METRIC_TRANSPORT_REQUESTS,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the Pub/Sub job client.

    Collects metrics for:
    - Messages pulled and published
    - Deadline renewals by outcome
    - Active long-running jobs
    - Transport requests
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.messages_pulled = Counter(
            METRIC_MESSAGES_PULLED,
            "Total number of messages pulled",
            ["subscription"],
            registry=self._registry,
        )

        self.messages_published = Counter(
            METRIC_MESSAGES_PUBLISHED,
            "Total number of messages published",
            ["topic"],
            registry=self._registry,
        )

        self.acknowledgements = Counter(
            METRIC_ACKS,
            "Total number of acknowledged ack ids",
            ["subscription"],
            registry=self._registry,
        )

        self.deadline_renewals = Counter(
            METRIC_DEADLINE_RENEWALS,
            "Total number of long-running job deadline renewal ticks",
            ["subscription", "outcome"],
            registry=self._registry,
        )

        self.active_jobs = Gauge(
            METRIC_ACTIVE_JOBS,
            "Number of long-running jobs with an active renewal timer",
            registry=self._registry,
        )

        self.jobs_completed = Counter(
            METRIC_JOBS_COMPLETED,
            "Total number of long-running jobs processed by workers",
            ["subscription", "status"],
            registry=self._registry,
        )

        self.job_duration = Histogram(
            METRIC_JOB_DURATION,
            "Job execution duration in seconds",
            ["subscription", "status"],
            buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 600.0),
            registry=self._registry,
        )

        self.transport_requests = Counter(
            METRIC_TRANSPORT_REQUESTS,
            "Total number of Pub/Sub API requests",
            ["operation", "status"],
            registry=self._registry,
        )

        self.transport_latency = Histogram(
            METRIC_TRANSPORT_LATENCY,
            "Pub/Sub API request latency in seconds",
            ["operation"],
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
            registry=self._registry,
        )

    def record_pulled(self, subscription: str, count: int) -> None:
        """Record pulled messages."""
        self.messages_pulled.labels(subscription=subscription).inc(count)

    def record_published(self, topic: str, count: int) -> None:
        """Record published messages."""
        self.messages_published.labels(topic=topic).inc(count)

    def record_acknowledged(self, subscription: str, count: int = 1) -> None:
        """Record acknowledged ack ids."""
        self.acknowledgements.labels(subscription=subscription).inc(count)

    def record_renewal(self, subscription: str, outcome: str) -> None:
        """Record a renewal tick outcome."""
        self.deadline_renewals.labels(subscription=subscription, outcome=outcome).inc()

    def set_active_jobs(self, count: int) -> None:
        """Update the number of registered long-running jobs."""
        self.active_jobs.set(count)

    def record_job_completed(
        self,
        subscription: str,
        status: str,
        duration_seconds: float,
    ) -> None:
        """Record a finished job."""
        self.jobs_completed.labels(subscription=subscription, status=status).inc()
        self.job_duration.labels(subscription=subscription, status=status).observe(
            duration_seconds
        )

    def record_transport_request(
        self,
        operation: str,
        status: int | str,
        duration_seconds: float,
    ) -> None:
        """Record a Pub/Sub API request."""
        self.transport_requests.labels(operation=operation, status=str(status)).inc()
        self.transport_latency.labels(operation=operation).observe(duration_seconds)

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)


def setup_metrics(port: int | None = None) -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Args:
        port: If given, also serve metrics over HTTP on this port.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    if port is not None:
        start_http_server(port, registry=_metrics._registry)
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
