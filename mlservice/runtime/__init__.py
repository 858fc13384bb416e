"""
mlservice Runtime - Service Strategy Core

This package turns an arbitrary machine learning backend into a uniform,
introspectable, concurrency-safe service unit.

Key components:
- ServiceStrategy: generic base class over input connector, output
  connector and model descriptor types
- CurrentMeasures / MeasureHistory: thread-safe measurement stores
- StrategyRunner: caller-side dispatch policy (training jobs, predict
  admission while training)
- BadParamError / InternalError: the error taxonomy

Usage:
    from mlservice.runtime import RepositoryModel, StrategyRunner

    strategy = MyBackendStrategy(RepositoryModel.from_path("/models/iris"))
    strategy.initialize({})

    runner = StrategyRunner(strategy, service_name="iris")
    out = {}
    runner.run_train({"iterations": 100}, out)
    runner.collect_status(out, history=True)
"""

from mlservice.runtime.errors import (
    ErrorKind,
    ServiceError,
    BadParamError,
    InternalError,
    bad_param_error,
    internal_error,
)
from mlservice.runtime.models import (
    ModelDescriptor,
    RepositoryModel,
    ServiceCapabilities,
)
from mlservice.runtime.measures import (
    CurrentMeasures,
    MeasureHistory,
    MEASURE_FIELD,
    MEASURE_HISTORY_FIELD,
)
from mlservice.runtime.strategy import (
    InputConnector,
    OutputConnector,
    ServiceStrategy,
)
from mlservice.runtime.dispatch import (
    PredictAdmission,
    RejectionReason,
    StrategyRunner,
    admit_predict,
)

__all__ = [
    # Errors
    "ErrorKind",
    "ServiceError",
    "BadParamError",
    "InternalError",
    "bad_param_error",
    "internal_error",
    # Models
    "ModelDescriptor",
    "RepositoryModel",
    "ServiceCapabilities",
    # Measures
    "CurrentMeasures",
    "MeasureHistory",
    "MEASURE_FIELD",
    "MEASURE_HISTORY_FIELD",
    # Strategy
    "InputConnector",
    "OutputConnector",
    "ServiceStrategy",
    # Dispatch
    "PredictAdmission",
    "RejectionReason",
    "StrategyRunner",
    "admit_predict",
]
