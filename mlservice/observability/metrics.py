"""
mlservice - Prometheus Metrics

Prometheus-compatible metrics for service strategies: training liveness,
current measure values, train/predict outcomes and repository resets.

Metrics Exposed:
- mlservice_training_running: Gauge, 1 while a training job is in flight
- mlservice_measure_value: Gauge of the latest value of each measure
- mlservice_train_total: Counter of training calls by status
- mlservice_train_duration_seconds: Histogram of training call durations
- mlservice_predict_total: Counter of prediction calls by status
- mlservice_predict_rejected_total: Counter of prediction calls refused by
  the dispatch policy
- mlservice_repository_clear_total: Counter of full repository resets

Usage:
    from mlservice.observability.metrics import record_train, export_measures

    record_train(service="iris", status="success", duration_seconds=12.5)
    export_measures("iris", strategy.measures_snapshot())

    # Export metrics
    from prometheus_client import generate_latest
    metrics_data = generate_latest(metrics_registry)
"""

import math
from typing import Mapping

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    CollectorRegistry,
)

# Use custom registry to avoid conflicts
metrics_registry = CollectorRegistry()

_enabled = True

# =============================================================================
# TRAINING METRICS
# =============================================================================

training_running = Gauge(
    name="mlservice_training_running",
    documentation="Whether a training job is running (1=running, 0=idle)",
    labelnames=["service"],
    registry=metrics_registry,
)

train_total = Counter(
    name="mlservice_train_total",
    documentation="Total number of training calls",
    labelnames=["service", "status"],
    registry=metrics_registry,
)

train_duration_seconds = Histogram(
    name="mlservice_train_duration_seconds",
    documentation="Training call duration in seconds",
    labelnames=["service"],
    buckets=[1.0, 10.0, 60.0, 300.0, 900.0, 3600.0, 14400.0],
    registry=metrics_registry,
)

measure_value = Gauge(
    name="mlservice_measure_value",
    documentation="Latest value of a service measure",
    labelnames=["service", "measure"],
    registry=metrics_registry,
)

# =============================================================================
# PREDICTION METRICS
# =============================================================================

predict_total = Counter(
    name="mlservice_predict_total",
    documentation="Total number of prediction calls",
    labelnames=["service", "status"],
    registry=metrics_registry,
)

predict_rejected_total = Counter(
    name="mlservice_predict_rejected_total",
    documentation="Prediction calls rejected by the dispatch policy",
    labelnames=["service", "reason"],
    registry=metrics_registry,
)

# =============================================================================
# REPOSITORY METRICS
# =============================================================================

repository_clear_total = Counter(
    name="mlservice_repository_clear_total",
    documentation="Full model repository clears",
    labelnames=["service", "status"],
    registry=metrics_registry,
)

# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def set_metrics_enabled(enabled: bool) -> None:
    """Turn metric recording on or off process-wide."""
    global _enabled
    _enabled = enabled


def metrics_enabled() -> bool:
    return _enabled


def set_training_running(service: str, running: bool) -> None:
    """
    Set training liveness for a service.

    Args:
        service: Service name
        running: True while a training job is in flight
    """
    if not _enabled:
        return
    training_running.labels(service=service).set(1 if running else 0)


def record_train(service: str, status: str, duration_seconds: float) -> None:
    """
    Record a training call.

    Args:
        service: Service name
        status: Call status ("success", "failed", "error", "rejected")
        duration_seconds: Training duration in seconds
    """
    if not _enabled:
        return
    train_total.labels(service=service, status=status).inc()
    train_duration_seconds.labels(service=service).observe(duration_seconds)


def record_predict(service: str, status: str) -> None:
    """
    Record a prediction call.

    Args:
        service: Service name
        status: Call status ("success", "failed", "error")
    """
    if not _enabled:
        return
    predict_total.labels(service=service, status=status).inc()


def record_predict_rejection(service: str, reason: str) -> None:
    if not _enabled:
        return
    predict_rejected_total.labels(service=service, reason=reason).inc()


def record_repository_clear(service: str, status: str) -> None:
    if not _enabled:
        return
    repository_clear_total.labels(service=service, status=status).inc()


def export_measures(service: str, measures: Mapping[str, float]) -> None:
    """
    Publish current measure values as gauges.

    NaN values are skipped.

    Args:
        service: Service name
        measures: Measure name to latest value
    """
    if not _enabled:
        return
    for name, value in measures.items():
        if value is None or math.isnan(value):
            continue
        measure_value.labels(service=service, measure=name).set(value)
