"""
Shared metrics configuration for the ticket rule engine.
"""

from typing import Dict, Any, Optional
import time
from contextlib import contextmanager

from prometheus_client import Counter, Histogram, Info, CollectorRegistry


class MetricsCollector:
    """Centralized metrics collector for rule engine components.

    Metrics are only exported when a registry is supplied; with the default
    ``registry=None`` every collector is private to its owner, so several
    engines can live in one process without duplicate-series errors.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        # Service info
        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # Error metrics
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        self._setup_rule_engine_metrics()

    def _setup_rule_engine_metrics(self):
        """Set up rule engine metrics."""
        self._metrics["rule_executions_total"] = Counter(
            "rule_executions_total",
            "Total rule evaluations by outcome",
            ["rule_type", "status"],
            registry=self.registry
        )

        self._metrics["rule_execution_duration_seconds"] = Histogram(
            "rule_execution_duration_seconds",
            "Duration of a single rule evaluation in seconds",
            ["rule_type"],
            registry=self.registry
        )

        self._metrics["rule_pass_duration_seconds"] = Histogram(
            "rule_pass_duration_seconds",
            "Duration of a full ticket rule pass in seconds",
            ["trigger_event"],
            registry=self.registry
        )

        self._metrics["rule_actions_executed_total"] = Counter(
            "rule_actions_executed_total",
            "Total rule actions executed",
            ["action_type"],
            registry=self.registry
        )

        self._metrics["executor_assignments_total"] = Counter(
            "executor_assignments_total",
            "Executor assignment attempts by outcome",
            ["outcome"],
            registry=self.registry
        )

        self._metrics["execution_log_write_failures_total"] = Counter(
            "execution_log_write_failures_total",
            "Execution log entries that could not be stored",
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def record_rule_execution(self, rule_type: str, status: str, duration: float):
        """Record the outcome and duration of one rule evaluation."""
        self._metrics["rule_executions_total"].labels(rule_type=rule_type, status=status).inc()
        self._metrics["rule_execution_duration_seconds"].labels(rule_type=rule_type).observe(duration)

    def record_action(self, action_type: str):
        """Record an executed action."""
        self._metrics["rule_actions_executed_total"].labels(action_type=action_type).inc()

    def record_assignment(self, outcome: str):
        """Record an executor assignment attempt."""
        self._metrics["executor_assignments_total"].labels(outcome=outcome).inc()

    def record_log_write_failure(self):
        """Record a swallowed execution log write failure."""
        self._metrics["execution_log_write_failures_total"].inc()

    @contextmanager
    def time_operation(self, operation_name: str, **labels):
        """Context manager to time an operation."""
        start_time = time.time()
        try:
            yield
        finally:
            duration = time.time() - start_time
            if operation_name in self._metrics:
                self._metrics[operation_name].labels(**labels).observe(duration)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
