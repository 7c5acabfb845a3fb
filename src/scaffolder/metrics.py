"""Prometheus metrics for provisioning runs.

Metrics are exposed at the `/metrics` endpoint in Prometheus format.

Metrics Defined:
- scaffolder_runs_total: Counter of finished runs by mode and result
- scaffolder_step_failures_total: Counter of failures by workflow step
- scaffolder_step_duration_seconds: Histogram of time spent in each step
- scaffolder_runs_in_progress: Gauge of runs currently executing

ProvisioningWorkflow updates these directly as it moves through its steps.
"""

from typing import Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


# Upper buckets cover clone and push of large templates
DEFAULT_DURATION_BUCKETS = (
    0.5,
    1.0,
    5.0,
    10.0,
    30.0,
    60.0,
    120.0,
    300.0,
    600.0,
)


class ScaffolderMetrics:
    """Container for the scaffolder's Prometheus metrics.

    Supports custom registries so tests can read values in isolation.

    Attributes:
        registry: The Prometheus registry for these metrics.
        runs_total: Finished runs. Labels: mode, result (success/failure).
        step_failures_total: Failed runs. Labels: step.
        step_duration_seconds: Step durations. Labels: step.
        runs_in_progress: Runs currently executing.

    Example:
        >>> metrics = ScaffolderMetrics(registry=CollectorRegistry())
        >>> metrics.record_run("pipeline", success=True)
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or REGISTRY

        self.runs_total = Counter(
            "scaffolder_runs_total",
            "Total number of provisioning runs that finished",
            labelnames=["mode", "result"],
            registry=self.registry,
        )

        self.step_failures_total = Counter(
            "scaffolder_step_failures_total",
            "Total number of provisioning runs that failed, by failing step",
            labelnames=["step"],
            registry=self.registry,
        )

        self.step_duration_seconds = Histogram(
            "scaffolder_step_duration_seconds",
            "Time spent in each provisioning step in seconds",
            labelnames=["step"],
            buckets=DEFAULT_DURATION_BUCKETS,
            registry=self.registry,
        )

        self.runs_in_progress = Gauge(
            "scaffolder_runs_in_progress",
            "Number of provisioning runs currently executing",
            registry=self.registry,
        )

    def record_run(self, mode: str, success: bool) -> None:
        result = "success" if success else "failure"
        self.runs_total.labels(mode=mode, result=result).inc()

    def record_failure(self, step: str) -> None:
        self.step_failures_total.labels(step=step).inc()

    def record_step_duration(self, step: str, duration_seconds: float) -> None:
        self.step_duration_seconds.labels(step=step).observe(duration_seconds)


# Global instance for the default registry
_default_metrics: Optional[ScaffolderMetrics] = None


def get_metrics(registry: Optional[CollectorRegistry] = None) -> ScaffolderMetrics:
    """Get or create the metrics instance.

    Args:
        registry: Optional Prometheus registry. If None, returns the
            global instance bound to the default registry.

    Returns:
        ScaffolderMetrics: The metrics instance.
    """
    global _default_metrics

    if registry is not None:
        return ScaffolderMetrics(registry=registry)

    if _default_metrics is None:
        _default_metrics = ScaffolderMetrics()

    return _default_metrics


def generate_metrics_output(registry: Optional[CollectorRegistry] = None) -> bytes:
    """Render the registry in Prometheus text format."""
    return generate_latest(registry or REGISTRY)
