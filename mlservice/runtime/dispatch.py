"""
mlservice Runtime - Service Dispatch

Caller-side policy around a single service strategy. The strategy only
guarantees that its training_running flag is correct and visible; this
module turns that flag into decisions.

Dispatch Rules:
- Training requires has_train and an initialized strategy
- At most one training job per strategy; a second one is refused
- Measure history is cleared at the start of every training run
- Offline backends (online=False) refuse prediction while training runs
- Online backends interleave training and prediction freely
- Refusals are explicit results, never silent drops

Usage:
    from mlservice.runtime.dispatch import StrategyRunner

    runner = StrategyRunner(strategy, service_name="iris")

    # Training thread
    out = {}
    code = runner.run_train({"mllib": {"iterations": 100}}, out)

    # Request threads
    admission = runner.admit_predict()
    if admission.admitted:
        code = runner.run_predict(parameters, out)
    else:
        return error_response(admission.to_dict())
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from mlservice.observability.logging import LogTimer, service_context
from mlservice.observability.metrics import (
    export_measures,
    record_predict,
    record_predict_rejection,
    record_repository_clear,
    record_train,
    set_training_running,
)
from mlservice.runtime.errors import ServiceError, bad_param_error
from mlservice.runtime.strategy import ServiceStrategy

logger = logging.getLogger(__name__)


# =============================================================================
# ADMISSION - Result of the predict-during-train policy
# =============================================================================


class RejectionReason(Enum):
    """Reasons for refusing a prediction call."""

    TRAINING_RUNNING = "training_running"  # Offline backend busy training
    PREDICT_UNSUPPORTED = "predict_unsupported"  # Backend cannot predict


@dataclass(frozen=True)
class PredictAdmission:
    """
    Outcome of a predict admission check.

    Usage:
        admission = admit_predict(strategy)
        if not admission.admitted:
            handle_rejection(admission.reason)
    """

    admitted: bool
    service: str
    reason: Optional[RejectionReason] = None
    message: str = ""

    @classmethod
    def accept(cls, service: str) -> "PredictAdmission":
        return cls(admitted=True, service=service)

    @classmethod
    def reject(
        cls, service: str, reason: RejectionReason, message: str
    ) -> "PredictAdmission":
        return cls(admitted=False, service=service, reason=reason, message=message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "admitted": self.admitted,
            "service": self.service,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
        }


def admit_predict(
    strategy: ServiceStrategy, service: Optional[str] = None
) -> PredictAdmission:
    """
    Decide whether a prediction call may run now.

    The decision reads training_running at call time. It is a snapshot:
    training may start right after an admitted check.

    Args:
        strategy: Strategy to check
        service: Service name for reporting (defaults to library name)

    Returns:
        PredictAdmission, admitted or rejected with a reason
    """
    service = service or strategy.library_name

    if not strategy.has_predict:
        return PredictAdmission.reject(
            service,
            RejectionReason.PREDICT_UNSUPPORTED,
            f"Service {service} does not support prediction",
        )

    if not strategy.online and strategy.training_running:
        return PredictAdmission.reject(
            service,
            RejectionReason.TRAINING_RUNNING,
            f"Training job is running on service {service}, "
            "prediction is unavailable until it completes",
        )

    return PredictAdmission.accept(service)


# =============================================================================
# STRATEGY RUNNER - Drives one strategy on behalf of a front-end
# =============================================================================


class StrategyRunner:
    """
    Runs train/predict/clear calls against one strategy.

    Safe to share between a training thread and request threads.
    Exceptions raised by the backend propagate unchanged once the training
    flag and metrics have been reset.
    """

    def __init__(self, strategy: ServiceStrategy, service_name: Optional[str] = None):
        """
        Initialize the runner.

        Args:
            strategy: Strategy to drive
            service_name: Name used in logs and metrics (defaults to the
                strategy's library name)
        """
        self.strategy = strategy
        self.service_name = service_name or strategy.library_name
        self._train_lock = threading.Lock()

    def _require_initialized(self) -> None:
        if not self.strategy.initialized:
            raise bad_param_error(
                f"Service {self.service_name} must be initialized first"
            )

    def run_train(self, parameters: Mapping[str, Any], out: MutableMapping[str, Any]) -> int:
        """
        Run one training job.

        Args:
            parameters: Root request object
            out: Output object filled by the backend

        Returns:
            Backend return code (0 if OK)

        Raises:
            BadParamError: If training is unsupported, the strategy is not
                initialized, or a training job is already running
        """
        strategy = self.strategy
        if not strategy.has_train:
            raise bad_param_error(
                f"Service {self.service_name} does not support training"
            )
        self._require_initialized()

        if not self._train_lock.acquire(blocking=False):
            raise bad_param_error(
                f"Training job already running on service {self.service_name}"
            )
        try:
            if strategy.training_running:
                raise bad_param_error(
                    f"Training job already running on service {self.service_name}"
                )
            return self._train(parameters, out)
        finally:
            self._train_lock.release()

    def _train(self, parameters: Mapping[str, Any], out: MutableMapping[str, Any]) -> int:
        strategy = self.strategy
        strategy.clear_measure_history()

        status = "error"
        timer = LogTimer(logger, "Training job", library=strategy.library_name)
        with service_context(self.service_name), strategy.training_job():
            set_training_running(self.service_name, True)
            logger.info("Training job started", extra={"library": strategy.library_name})
            try:
                with timer:
                    code = strategy.train(parameters, out)
                    status = "success" if code == 0 else "failed"
                    timer.extra_fields["status_code"] = code
                    if code != 0:
                        timer.level = logging.WARNING
            finally:
                set_training_running(self.service_name, False)
                record_train(self.service_name, status, timer.duration_ms / 1000)
                export_measures(self.service_name, strategy.measures_snapshot())
        return code

    def admit_predict(self) -> PredictAdmission:
        return admit_predict(self.strategy, self.service_name)

    def run_predict(self, parameters: Mapping[str, Any], out: MutableMapping[str, Any]) -> int:
        """
        Run one prediction unless the dispatch policy refuses it.

        On refusal the admission is stored under out["status"] and 1 is
        returned without calling the backend.

        Raises:
            BadParamError: If the strategy is not initialized
        """
        self._require_initialized()

        admission = self.admit_predict()
        if not admission.admitted:
            record_predict_rejection(self.service_name, admission.reason.value)
            logger.warning(
                "Prediction rejected",
                extra={"service_name": self.service_name, "reason": admission.reason.value},
            )
            out["status"] = admission.to_dict()
            return 1

        status = "error"
        with service_context(self.service_name):
            try:
                code = self.strategy.predict(parameters, out)
                status = "success" if code == 0 else "failed"
            finally:
                record_predict(self.service_name, status)
        return code

    def clear_full(self) -> None:
        """Clear the model repository, recording the outcome."""
        with service_context(self.service_name):
            try:
                self.strategy.clear_full()
            except ServiceError as e:
                record_repository_clear(self.service_name, e.kind.value)
                raise
        record_repository_clear(self.service_name, "success")

    def collect_status(self, out: MutableMapping[str, Any], history: bool = False) -> None:
        """
        Collect a status report for pollers.

        Current measures are always included. The full measure history is
        only included when requested.
        """
        strategy = self.strategy
        out["service"] = self.service_name
        out["library"] = strategy.library_name
        out["repository"] = str(strategy.model.repository)
        out["training_running"] = strategy.training_running
        out["capabilities"] = strategy.capabilities.to_dict()
        strategy.collect_measures(out)
        if history:
            strategy.collect_measure_history(out)
