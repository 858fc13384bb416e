"""
Tests for the dispatch layer.

Covers:
1. Training jobs (flag handling, history reset, refusal rules)
2. Predict admission for offline and online backends
3. Status collection and repository clear through the runner
"""

import logging
import threading
from unittest.mock import patch

import pytest

from mlservice.observability.metrics import metrics_registry
from mlservice.runtime.dispatch import (
    PredictAdmission,
    RejectionReason,
    StrategyRunner,
    admit_predict,
)
from mlservice.runtime.errors import BadParamError, InternalError


def sample(name, **labels):
    return metrics_registry.get_sample_value(name, labels) or 0.0


# =============================================================================
# TRAINING JOBS
# =============================================================================


class TestRunTrain:
    """Tests for StrategyRunner.run_train."""

    def test_successful_training(self, strategy):
        runner = StrategyRunner(strategy, service_name="svc_train_ok")
        out = {}

        code = runner.run_train({"iterations": 2}, out)

        assert code == 0
        assert out["loss"] == 0.5
        assert strategy.training_running is False

    def test_flag_is_set_during_training(self, strategy, blocking_training):
        runner = StrategyRunner(strategy)

        thread, _, release, result = blocking_training(runner)
        try:
            assert strategy.training_running is True
        finally:
            release.set()
            thread.join(timeout=5)

        assert result["code"] == 0
        assert strategy.training_running is False

    def test_flag_reset_when_backend_raises(self, strategy):
        runner = StrategyRunner(strategy, service_name="svc_train_raise")
        before = sample("mlservice_train_total", service="svc_train_raise", status="error")

        with pytest.raises(RuntimeError, match="backend exploded"):
            runner.run_train({"fail": True}, {})

        assert strategy.training_running is False
        after = sample("mlservice_train_total", service="svc_train_raise", status="error")
        assert after == before + 1

    def test_nonzero_return_code_is_passed_through(self, strategy):
        runner = StrategyRunner(strategy, service_name="svc_train_fail")

        code = runner.run_train({"return_code": 1}, {})

        assert code == 1
        assert strategy.training_running is False
        assert sample("mlservice_train_total", service="svc_train_fail", status="failed") >= 1

    def test_training_job_is_timed_and_logged(self, strategy, caplog):
        runner = StrategyRunner(strategy, service_name="svc_train_log")

        with caplog.at_level(logging.INFO, logger="mlservice.runtime.dispatch"):
            runner.run_train({"iterations": 2}, {})

        record = caplog.records[-1]
        assert record.getMessage() == "Training job completed"
        assert record.levelno == logging.INFO
        assert record.library == "toy"
        assert record.status_code == 0
        assert record.duration_ms >= 0
        assert metrics_registry.get_sample_value(
            "mlservice_train_duration_seconds_count", {"service": "svc_train_log"}
        ) == 1.0

    def test_failed_return_code_logs_warning(self, strategy, caplog):
        runner = StrategyRunner(strategy)

        with caplog.at_level(logging.INFO, logger="mlservice.runtime.dispatch"):
            runner.run_train({"return_code": 2}, {})

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.status_code == 2

    def test_backend_exception_logs_failure(self, strategy, caplog):
        runner = StrategyRunner(strategy)

        with caplog.at_level(logging.INFO, logger="mlservice.runtime.dispatch"):
            with pytest.raises(RuntimeError):
                runner.run_train({"fail": True}, {})

        record = caplog.records[-1]
        assert record.levelno == logging.ERROR
        assert record.getMessage() == "Training job failed"
        assert record.error == "backend exploded"

    def test_history_reflects_current_run_only(self, strategy):
        runner = StrategyRunner(strategy)
        strategy.append_measure("loss", 42.0)

        runner.run_train({"iterations": 2}, {})

        assert strategy.measure_history("loss") == [1.0, 0.5]

    def test_current_measures_survive_between_runs(self, strategy):
        runner = StrategyRunner(strategy)
        strategy.set_measure("acc", 0.8)

        runner.run_train({"iterations": 1}, {})

        assert strategy.get_measure("acc") == 0.8

    def test_second_training_job_is_refused(self, strategy, blocking_training):
        runner = StrategyRunner(strategy)

        thread, _, release, _ = blocking_training(runner)
        try:
            with pytest.raises(BadParamError, match="already running"):
                runner.run_train({}, {})
        finally:
            release.set()
            thread.join(timeout=5)

    def test_externally_flagged_training_is_refused(self, strategy):
        runner = StrategyRunner(strategy)
        strategy.training_running = True

        with pytest.raises(BadParamError, match="already running"):
            runner.run_train({}, {})

        assert strategy.training_running is True

    def test_training_unsupported(self, model, strategy_classes):
        s = strategy_classes["predict_only"](model)
        s.initialize({})

        with pytest.raises(BadParamError, match="does not support training"):
            StrategyRunner(s).run_train({}, {})

    def test_training_requires_initialization(self, model, strategy_classes):
        s = strategy_classes["offline"](model)

        with pytest.raises(BadParamError, match="initialized"):
            StrategyRunner(s).run_train({}, {})

    def test_measures_exported_after_training(self, strategy):
        runner = StrategyRunner(strategy, service_name="svc_export")

        runner.run_train({"iterations": 4}, {})

        assert sample("mlservice_measure_value", service="svc_export", measure="loss") == 0.25
        assert sample("mlservice_training_running", service="svc_export") == 0.0


# =============================================================================
# PREDICT ADMISSION
# =============================================================================


class TestPredictAdmission:
    """Tests for the predict-during-train policy."""

    def test_idle_offline_backend_admits(self, strategy):
        admission = admit_predict(strategy)

        assert admission.admitted is True
        assert admission.reason is None
        assert admission.service == "toy"

    def test_offline_backend_denies_while_training(self, strategy):
        """Thread A flags training; thread B must be denied."""
        flagged = threading.Event()
        done = threading.Event()
        decisions = []

        def thread_a():
            strategy.training_running = True
            flagged.set()
            done.wait(timeout=5)
            strategy.training_running = False

        def thread_b():
            assert flagged.wait(timeout=5)
            decisions.append(admit_predict(strategy))

        a = threading.Thread(target=thread_a)
        b = threading.Thread(target=thread_b)
        a.start()
        b.start()
        b.join(timeout=5)
        done.set()
        a.join(timeout=5)

        assert len(decisions) == 1
        assert decisions[0].admitted is False
        assert decisions[0].reason == RejectionReason.TRAINING_RUNNING
        assert admit_predict(strategy).admitted is True

    def test_online_backend_admits_while_training(self, online_strategy):
        online_strategy.training_running = True

        assert admit_predict(online_strategy).admitted is True

    def test_backend_without_predict_is_denied(self, model, strategy_classes):
        s = strategy_classes["train_only"](model)

        admission = admit_predict(s, service="svc")

        assert admission.admitted is False
        assert admission.reason == RejectionReason.PREDICT_UNSUPPORTED
        assert "svc" in admission.message

    def test_admission_to_dict(self):
        admission = PredictAdmission.reject(
            "svc", RejectionReason.TRAINING_RUNNING, "busy"
        )

        assert admission.to_dict() == {
            "admitted": False,
            "service": "svc",
            "reason": "training_running",
            "message": "busy",
        }


class TestRunPredict:
    """Tests for StrategyRunner.run_predict."""

    def test_predict_when_idle(self, strategy):
        runner = StrategyRunner(strategy, service_name="svc_predict_ok")
        out = {}

        code = runner.run_predict({"data": [1, 2]}, out)

        assert code == 0
        assert out["predictions"] == [0.1, 0.9]
        assert strategy.input_connector.last_request == {"data": [1, 2]}

    def test_offline_predict_rejected_during_training(self, strategy, blocking_training):
        runner = StrategyRunner(strategy, service_name="svc_predict_busy")
        before = sample(
            "mlservice_predict_rejected_total",
            service="svc_predict_busy",
            reason="training_running",
        )

        thread, _, release, _ = blocking_training(runner)
        try:
            out = {}
            code = runner.run_predict({}, out)
        finally:
            release.set()
            thread.join(timeout=5)

        assert code == 1
        assert out["status"]["reason"] == "training_running"
        assert "predictions" not in out
        assert strategy.predict_calls == 0
        after = sample(
            "mlservice_predict_rejected_total",
            service="svc_predict_busy",
            reason="training_running",
        )
        assert after == before + 1

    def test_online_predict_interleaves_with_training(self, online_strategy, blocking_training):
        runner = StrategyRunner(online_strategy)

        thread, _, release, _ = blocking_training(runner)
        try:
            out = {}
            code = runner.run_predict({}, out)
        finally:
            release.set()
            thread.join(timeout=5)

        assert code == 0
        assert out["predictions"] == [0.1, 0.9]

    def test_predict_requires_initialization(self, model, strategy_classes):
        s = strategy_classes["offline"](model)

        with pytest.raises(BadParamError):
            StrategyRunner(s).run_predict({}, {})

    def test_predict_exceptions_propagate(self, strategy):
        runner = StrategyRunner(strategy, service_name="svc_predict_raise")

        with patch.object(strategy, "predict", side_effect=KeyError("input")):
            with pytest.raises(KeyError):
                runner.run_predict({}, {})

        assert sample("mlservice_predict_total", service="svc_predict_raise", status="error") == 1.0


# =============================================================================
# STATUS & CLEAR
# =============================================================================


class TestRunnerStatusAndClear:
    """Tests for collect_status and clear_full through the runner."""

    def test_collect_status_without_history(self, strategy, repository):
        runner = StrategyRunner(strategy, service_name="iris")
        strategy.set_measure("acc", 0.9)
        strategy.append_measure("acc", 0.9)

        out = {}
        runner.collect_status(out)

        assert out == {
            "service": "iris",
            "library": "toy",
            "repository": str(repository),
            "training_running": False,
            "capabilities": {"has_train": True, "has_predict": True, "online": False},
            "measure": {"acc": 0.9},
        }

    def test_collect_status_with_history(self, strategy):
        runner = StrategyRunner(strategy)
        runner.run_train({"iterations": 2}, {})

        out = {}
        runner.collect_status(out, history=True)

        assert out["measure_hist"] == {"loss_hist": [1.0, 0.5]}
        assert out["measure"] == {"loss": 0.5}

    def test_clear_full_success_recorded(self, strategy, repository):
        runner = StrategyRunner(strategy, service_name="svc_clear_ok")

        runner.clear_full()

        assert list(repository.iterdir()) == []
        assert sample("mlservice_repository_clear_total", service="svc_clear_ok", status="success") == 1.0

    def test_clear_full_failure_recorded_and_raised(self, strategy):
        runner = StrategyRunner(strategy, service_name="svc_clear_fail")

        with patch("mlservice.runtime.fileops.clear_directory", return_value=-1):
            with pytest.raises(InternalError):
                runner.clear_full()

        assert sample("mlservice_repository_clear_total", service="svc_clear_fail", status="internal") == 1.0
