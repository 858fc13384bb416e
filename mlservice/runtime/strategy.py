"""
mlservice Runtime - Service Strategy

The generic service unit wrapping one ML backend bound to one model
repository. A concrete backend subclasses ServiceStrategy, picks its input
connector, output connector and model descriptor types, declares its
capability flags and implements init/clear/train/predict/status.

What the base class owns:
- the measurement stores (current values and per-iteration history)
- the training liveness flag, readable and writable from any thread
- the destructive repository reset (clear_full)

What it does not own:
- the predict-during-train policy, enforced by the dispatch layer
  (see mlservice.runtime.dispatch) using training_running as input
- numerics, data marshalling, timeouts, retries

Usage:
    class EchoStrategy(ServiceStrategy[EchoInput, EchoOutput, RepositoryModel]):
        name = "echo"
        has_train = True
        input_connector_class = EchoInput
        output_connector_class = EchoOutput

        def init(self, parameters): ...
        def clear(self, parameters): ...
        def train(self, parameters, out): ...
        def predict(self, parameters, out): ...
        def status(self): ...

    strategy = EchoStrategy(RepositoryModel.from_path("/models/echo"))
    strategy.initialize({"mllib": {}})
"""

from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping, MutableMapping
from contextlib import contextmanager
from typing import Any, Callable, ClassVar, Generic, Optional, Protocol, TypeVar

from mlservice.runtime import fileops
from mlservice.runtime.errors import bad_param_error, internal_error
from mlservice.runtime.measures import CurrentMeasures, MeasureHistory
from mlservice.runtime.models import ModelDescriptor, ServiceCapabilities

logger = logging.getLogger(__name__)


class InputConnector(Protocol):
    """Backend-specific component channeling request data in."""


class OutputConnector(Protocol):
    """Backend-specific component passing results back to the API."""


InputT = TypeVar("InputT", bound=InputConnector)
OutputT = TypeVar("OutputT", bound=OutputConnector)
ModelT = TypeVar("ModelT", bound=ModelDescriptor)

Payload = MutableMapping[str, Any]


class ServiceStrategy(ABC, Generic[InputT, OutputT, ModelT]):
    """
    Base class for machine learning library encapsulation.

    Capability flags are class attributes: a backend's abilities do not
    change per instance.
    """

    name: ClassVar[str] = ""
    has_train: ClassVar[bool] = False
    has_predict: ClassVar[bool] = True
    # When False, prediction calls are rejected while training is running
    online: ClassVar[bool] = False

    input_connector_class: ClassVar[Optional[Callable[[], Any]]] = None
    output_connector_class: ClassVar[Optional[Callable[[], Any]]] = None

    def __init__(
        self,
        model: ModelT,
        input_connector: Optional[InputT] = None,
        output_connector: Optional[OutputT] = None,
        library_name: Optional[str] = None,
    ):
        """
        Initialize the strategy from a resolved model descriptor.

        Args:
            model: Model descriptor, repository location already resolved
            input_connector: Input connector (built from
                input_connector_class if None)
            output_connector: Output connector (built from
                output_connector_class if None)
            library_name: Library name (defaults to the class name attribute)
        """
        self.model = model
        self.input_connector = (
            input_connector
            if input_connector is not None
            else self._build_connector(type(self).input_connector_class)
        )
        self.output_connector = (
            output_connector
            if output_connector is not None
            else self._build_connector(type(self).output_connector_class)
        )
        self._library_name = library_name or self.name or type(self).__name__

        self._measures = CurrentMeasures()
        self._history = MeasureHistory()
        self._training = threading.Event()
        self._initialized = False

    @staticmethod
    def _build_connector(factory: Optional[Callable[[], Any]]) -> Any:
        return factory() if factory is not None else None

    # =========================================================================
    # Identity & flags
    # =========================================================================

    @property
    def library_name(self) -> str:
        return self._library_name

    @property
    def capabilities(self) -> ServiceCapabilities:
        return ServiceCapabilities(
            has_train=self.has_train,
            has_predict=self.has_predict,
            online=self.online,
        )

    @property
    def training_running(self) -> bool:
        """Whether a training job is in flight on this instance."""
        return self._training.is_set()

    @training_running.setter
    def training_running(self, running: bool) -> None:
        if running:
            self._training.set()
        else:
            self._training.clear()

    @contextmanager
    def training_job(self) -> Iterator["ServiceStrategy[InputT, OutputT, ModelT]"]:
        """
        Mark a training job as running for the duration of the block.

        The flag is reset on exit, including when the block raises.
        """
        self._training.set()
        try:
            yield self
        finally:
            self._training.clear()

    @property
    def initialized(self) -> bool:
        return self._initialized

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def initialize(self, parameters: Mapping[str, Any]) -> None:
        """
        Run init() exactly once.

        Raises:
            BadParamError: If the strategy was already initialized
        """
        if self._initialized:
            raise bad_param_error(
                f"Service library {self.library_name} already initialized"
            )
        self.init(parameters)
        self._initialized = True
        logger.info(
            "Service library initialized",
            extra={
                "library": self.library_name,
                "repository": str(self.model.repository),
            },
        )

    @abstractmethod
    def init(self, parameters: Mapping[str, Any]) -> None:
        """
        Prepare connectors and model for service.

        Args:
            parameters: "parameters/mllib" section of the service request
        """
        ...

    @abstractmethod
    def clear(self, parameters: Mapping[str, Any]) -> None:
        """
        Release backend-specific local artifacts (model files etc.).

        Args:
            parameters: Root request object
        """
        ...

    def clear_full(self) -> None:
        """
        Remove everything inside the model repository.

        Destructive and without rollback: a partial failure leaves the
        directory partially emptied and raises InternalError.

        Raises:
            BadParamError: If the repository cannot be opened
            InternalError: If some entries could not be deleted
        """
        repository = str(self.model.repository)
        err = fileops.clear_directory(repository)
        if err > 0:
            error = bad_param_error(
                f"Failed opening directory {repository} for deleting files within"
            )
        elif err < 0:
            error = internal_error(
                f"Failed deleting all files in directory {repository}"
            )
        else:
            logger.info(
                "Model repository cleared",
                extra={"library": self.library_name, "repository": repository},
            )
            return

        logger.error(
            "Model repository clear failed",
            extra={"library": self.library_name, **error.to_log_dict()},
        )
        raise error

    @abstractmethod
    def train(self, parameters: Mapping[str, Any], out: Payload) -> int:
        """
        Train a new model.

        Args:
            parameters: Root request object
            out: Output object (e.g. loss, ...)

        Returns:
            0 if OK, nonzero otherwise
        """
        ...

    @abstractmethod
    def predict(self, parameters: Mapping[str, Any], out: Payload) -> int:
        """
        Predict from the model.

        Args:
            parameters: Root request object
            out: Output object (e.g. predictions, ...)

        Returns:
            0 if OK, nonzero otherwise
        """
        ...

    @abstractmethod
    def status(self) -> int:
        """Backend-specific status code."""
        ...

    # =========================================================================
    # Current measures
    # =========================================================================

    def set_measure(self, name: str, value: float) -> None:
        """Set the current value of a measure."""
        self._measures.set(name, value)

    def get_measure(self, name: str) -> float:
        """Get the current value of a measure, NaN if never set."""
        return self._measures.get(name)

    def collect_measures(self, out: Payload) -> None:
        """Collect current measures into out["measure"]."""
        self._measures.collect(out)

    def measure_names(self) -> list[str]:
        return self._measures.names()

    def measures_snapshot(self) -> dict[str, float]:
        return self._measures.snapshot()

    # =========================================================================
    # Measure history
    # =========================================================================

    def append_measure(self, name: str, value: float) -> None:
        """Add a value to a measure's history."""
        self._history.append(name, value)

    def clear_measure_history(self) -> None:
        """Clear all measures history."""
        self._history.clear_all()

    def collect_measure_history(self, out: Payload) -> None:
        """Collect measures history into out["measure_hist"]."""
        self._history.collect(out)

    def measure_history(self, name: str) -> list[float]:
        return self._history.get(name)

    # =========================================================================
    # Transfer
    # =========================================================================

    def transfer(self) -> "ServiceStrategy[InputT, OutputT, ModelT]":
        """
        Move this service into a new instance of the same class.

        The new instance takes over connectors, model, library name,
        measurement state and the training flag. The source instance should
        not be used afterwards.
        """
        moved = copy.copy(self)
        moved._measures = CurrentMeasures(self._measures.snapshot())
        moved._history = MeasureHistory(self._history.snapshot())
        moved._training = threading.Event()
        if self._training.is_set():
            moved._training.set()
        return moved

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(library={self.library_name!r}, "
            f"repository={str(self.model.repository)!r}, "
            f"training_running={self.training_running})"
        )
