"""
mlservice - Observability

Provides metrics and structured logging.
"""

from .metrics import (
    metrics_registry,
    set_metrics_enabled,
    set_training_running,
    record_train,
    record_predict,
    record_predict_rejection,
    record_repository_clear,
    export_measures,
)

__all__ = [
    "metrics_registry",
    "set_metrics_enabled",
    "set_training_running",
    "record_train",
    "record_predict",
    "record_predict_rejection",
    "record_repository_clear",
    "export_measures",
]
