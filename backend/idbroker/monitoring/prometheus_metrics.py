"""
Prometheus metrics for the identity broker.

Service operation timings come from ``@BaseService.measure_operation``; the
ceremony and OAuth counters are incremented directly by those services.
"""

from typing import Optional, cast

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest

# Custom registry so repeated imports in tests never collide with the default one
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "idbroker_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "idbroker_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "idbroker_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

ceremonies_total = Counter(
    "idbroker_passkey_ceremonies_total",
    "Passkey ceremonies completed, by flow and outcome",
    ["flow", "outcome"],
    registry=REGISTRY,
)

oauth_grants_total = Counter(
    "idbroker_oauth_grants_total",
    "OAuth artifacts issued or rejected, by kind and outcome",
    ["kind", "outcome"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_ceremony(flow: str, outcome: str) -> None:
        """flow: registration | login | refresh; outcome: success or an error code."""
        ceremonies_total.labels(flow=flow, outcome=outcome).inc()

    @staticmethod
    def record_oauth_grant(kind: str, outcome: str) -> None:
        oauth_grants_total.labels(kind=kind, outcome=outcome).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)


prometheus_metrics = PrometheusMetrics()
