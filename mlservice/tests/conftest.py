"""
Pytest configuration for mlservice tests
"""

import threading
from typing import Any, Optional

import pytest

from mlservice.runtime.models import RepositoryModel
from mlservice.runtime.strategy import ServiceStrategy


# =============================================================================
# TOY BACKEND
# =============================================================================


class ToyInput:
    """Input connector recording the last request it saw."""

    def __init__(self):
        self.last_request: Optional[dict] = None


class ToyOutput:
    """Output connector formatting predictions."""

    def render(self, values: list) -> dict:
        return {"predictions": values}


class ToyStrategy(ServiceStrategy[ToyInput, ToyOutput, RepositoryModel]):
    """
    Minimal offline backend.

    Training parameters:
        iterations: number of iterations (default 3)
        started: threading.Event set once training is under way
        release: threading.Event training waits on before returning
        fail: raise RuntimeError from inside train
        return_code: value returned by train (default 0)
    """

    name = "toy"
    has_train = True
    input_connector_class = ToyInput
    output_connector_class = ToyOutput

    def __init__(self, model, **kwargs):
        super().__init__(model, **kwargs)
        self.init_calls = 0
        self.cleared = False
        self.predict_calls = 0

    def init(self, parameters):
        self.init_calls += 1

    def clear(self, parameters):
        self.cleared = True

    def train(self, parameters, out):
        started = parameters.get("started")
        release = parameters.get("release")
        for i in range(parameters.get("iterations", 3)):
            loss = 1.0 / (i + 1)
            self.set_measure("loss", loss)
            self.append_measure("loss", loss)
        if started is not None:
            started.set()
        if release is not None:
            release.wait(timeout=5)
        if parameters.get("fail"):
            raise RuntimeError("backend exploded")
        out["loss"] = self.get_measure("loss")
        return parameters.get("return_code", 0)

    def predict(self, parameters, out):
        self.predict_calls += 1
        self.input_connector.last_request = dict(parameters)
        out.update(self.output_connector.render([0.1, 0.9]))
        return 0

    def status(self):
        return 1 if self.training_running else 0


class OnlineToyStrategy(ToyStrategy):
    """Backend that interleaves training and prediction."""

    name = "toy_online"
    online = True


class TrainOnlyStrategy(ToyStrategy):
    """Backend without prediction support."""

    name = "toy_train_only"
    has_predict = False


class PredictOnlyStrategy(ToyStrategy):
    """Backend without training support."""

    name = "toy_predict_only"
    has_train = False


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def repository(tmp_path):
    """Provide a model repository directory containing a few files."""
    repo = tmp_path / "repo"
    repo.mkdir()
    for name in ("a", "b", "c"):
        (repo / name).write_text(name)
    return repo


@pytest.fixture
def model(repository):
    """Provide a model descriptor bound to the repository fixture."""
    return RepositoryModel.from_path(repository)


@pytest.fixture
def strategy(model):
    """Provide an initialized offline toy strategy."""
    s = ToyStrategy(model)
    s.initialize({})
    return s


@pytest.fixture
def online_strategy(model):
    """Provide an initialized online toy strategy."""
    s = OnlineToyStrategy(model)
    s.initialize({})
    return s


@pytest.fixture
def strategy_classes():
    """Expose toy strategy classes to tests that build their own."""
    return {
        "offline": ToyStrategy,
        "online": OnlineToyStrategy,
        "train_only": TrainOnlyStrategy,
        "predict_only": PredictOnlyStrategy,
    }


def start_blocking_training(runner: Any, out: Optional[dict] = None):
    """
    Start a training job in a thread that blocks until released.

    Returns (thread, started, release, result) where result["code"] holds
    the training return code once the thread finishes.
    """
    started = threading.Event()
    release = threading.Event()
    result: dict = {}
    out = out if out is not None else {}

    def target():
        result["code"] = runner.run_train(
            {"started": started, "release": release, "iterations": 2}, out
        )

    thread = threading.Thread(target=target)
    thread.start()
    assert started.wait(timeout=5)
    return thread, started, release, result


@pytest.fixture
def blocking_training():
    """Provide the blocking training helper."""
    return start_blocking_training
