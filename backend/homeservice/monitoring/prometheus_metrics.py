"""
Prometheus metrics module for HomeService.

Service timings are fed by the @measure_operation decorator; the rating
aggregator and provider lock report their own outcome counters.
"""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "homeservice_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "homeservice_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "homeservice_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

rating_recompute_total = Counter(
    "homeservice_rating_recompute_total",
    "Provider rating recompute attempts by outcome",
    ["outcome"],
    registry=REGISTRY,
)

provider_lock_total = Counter(
    "homeservice_provider_lock_total",
    "Provider rating lock operations by outcome",
    ["action", "outcome"],
    registry=REGISTRY,
)

booking_fields_dropped_total = Counter(
    "homeservice_booking_fields_dropped_total",
    "Booking update fields silently dropped by the role filter",
    ["role", "field"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Thin facade so callers never touch metric objects directly."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'BookingService')
            operation: Operation/method name (e.g., 'create_booking')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_rating_recompute(outcome: str) -> None:
        rating_recompute_total.labels(outcome=outcome).inc()

    @staticmethod
    def record_provider_lock(action: str, outcome: str) -> None:
        provider_lock_total.labels(action=action, outcome=outcome).inc()

    @staticmethod
    def record_booking_field_dropped(role: str, field: str) -> None:
        booking_fields_dropped_total.labels(role=role, field=field).inc()

    @staticmethod
    def export() -> tuple[bytes, str]:
        return generate_latest(REGISTRY), CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
