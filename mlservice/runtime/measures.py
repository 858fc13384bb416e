"""
mlservice Runtime - Measurement Stores

Thread-safe storage for the named scalar metrics a backend produces while
training or evaluating.

Two independent stores with separate locks:
- CurrentMeasures: latest value per measure, cheap to poll
- MeasureHistory: every value recorded per measure, in iteration order

A long history snapshot never blocks latest-value reads used for liveness
probing, and a training loop recording measures holds each lock only for
the duration of a dict update.
"""

from __future__ import annotations

import math
import threading
from collections.abc import Iterable, Mapping, MutableMapping
from typing import Any, Optional

MEASURE_FIELD = "measure"
MEASURE_HISTORY_FIELD = "measure_hist"
HISTORY_SUFFIX = "_hist"


class CurrentMeasures:
    """
    Latest value of each measure.

    There is no reset operation: values are expected to be overwritten
    continuously as training progresses.
    """

    def __init__(self, values: Optional[Mapping[str, float]] = None) -> None:
        self._values: dict[str, float] = dict(values or {})
        self._lock = threading.Lock()

    def set(self, name: str, value: float) -> None:
        """Upsert the latest value of a measure. Last writer wins."""
        with self._lock:
            self._values[name] = value

    def get(self, name: str) -> float:
        """Return the latest value of a measure, NaN if it was never set."""
        with self._lock:
            return self._values.get(name, math.nan)

    def names(self) -> list[str]:
        with self._lock:
            return list(self._values)

    def snapshot(self) -> dict[str, float]:
        """Return a copy of all current values."""
        with self._lock:
            return dict(self._values)

    def collect(self, out: MutableMapping[str, Any]) -> None:
        """Store a snapshot of all current values under out["measure"]."""
        out[MEASURE_FIELD] = self.snapshot()

    def __len__(self) -> int:
        """Number of measures with a current value."""
        with self._lock:
            return len(self._values)


class MeasureHistory:
    """
    Append-only sequence of values per measure.

    Sequences keep insertion order, which is the iteration order of the
    training run that produced them.
    """

    def __init__(self, series: Optional[Mapping[str, Iterable[float]]] = None) -> None:
        self._series: dict[str, list[float]] = {
            name: list(values) for name, values in (series or {}).items()
        }
        self._lock = threading.Lock()

    def append(self, name: str, value: float) -> None:
        """Append a value to a measure's sequence, creating it if absent."""
        with self._lock:
            self._series.setdefault(name, []).append(value)

    def clear_all(self) -> None:
        """Drop every sequence, typically at the start of a training run."""
        with self._lock:
            self._series.clear()

    def get(self, name: str) -> list[float]:
        """Return a copy of one measure's sequence (empty if unknown)."""
        with self._lock:
            return list(self._series.get(name, ()))

    def snapshot(self) -> dict[str, list[float]]:
        """Return a deep copy of every sequence."""
        with self._lock:
            return {name: list(values) for name, values in self._series.items()}

    def collect(self, out: MutableMapping[str, Any]) -> None:
        """
        Store every sequence under out["measure_hist"].

        Each measure appears as "<name>_hist" mapped to its ordered values.
        """
        series = self.snapshot()
        out[MEASURE_HISTORY_FIELD] = {
            name + HISTORY_SUFFIX: values for name, values in series.items()
        }

    def __len__(self) -> int:
        """Number of measures with a recorded history."""
        with self._lock:
            return len(self._series)
