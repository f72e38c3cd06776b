"""
Prometheus metrics for the mentorship backend.

Service timings come from ``@BaseService.measure_operation``; the domain
counters below track the lifecycle engine, payouts, webhooks and leases.
"""

from typing import Optional

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest

REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "mentorship_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "mentorship_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "mentorship_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

lifecycle_items_total = Counter(
    "mentorship_lifecycle_items_total",
    "Items handled by the session lifecycle engine",
    ["pass_name", "outcome"],  # outcome: confirmed | cancelled | reminded | completed | error
    registry=REGISTRY,
)

lifecycle_pass_duration_seconds = Histogram(
    "mentorship_lifecycle_pass_duration_seconds",
    "Duration of a single lifecycle pass",
    ["pass_name"],
    registry=REGISTRY,
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

payouts_total = Counter(
    "mentorship_payouts_total",
    "Mentor payout transfer attempts",
    ["source", "outcome"],  # outcome: success | failed | skipped
    registry=REGISTRY,
)

webhook_events_total = Counter(
    "mentorship_webhook_events_total",
    "Checkout webhook events by purpose",
    ["purpose", "outcome"],  # outcome: processed | duplicate | failed | ignored
    registry=REGISTRY,
)

lease_events_total = Counter(
    "mentorship_lease_events_total",
    "Pass lease acquire/release outcomes",
    ["action", "outcome"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Label-aware recorders for the metrics above."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(duration)
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_lifecycle_item(pass_name: str, outcome: str) -> None:
        lifecycle_items_total.labels(pass_name=pass_name, outcome=outcome).inc()

    @staticmethod
    def observe_lifecycle_pass(pass_name: str, duration: float) -> None:
        lifecycle_pass_duration_seconds.labels(pass_name=pass_name).observe(max(duration, 0.0))

    @staticmethod
    def record_payout(source: str, outcome: str) -> None:
        payouts_total.labels(source=source, outcome=outcome).inc()

    @staticmethod
    def record_webhook_event(purpose: str, outcome: str) -> None:
        webhook_events_total.labels(purpose=purpose or "unknown", outcome=outcome).inc()

    @staticmethod
    def record_lease(action: str, outcome: str) -> None:
        lease_events_total.labels(action=action, outcome=outcome).inc()

    @staticmethod
    def get_metrics() -> bytes:
        return generate_latest(REGISTRY)

    @staticmethod
    def get_content_type() -> str:
        return CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
