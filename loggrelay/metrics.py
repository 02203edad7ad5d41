"""Counter and gauge metrics that render themselves as V2 envelopes."""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict, Mapping

from loggrelay.envelope import (
    CounterPayload,
    Envelope,
    GaugeEntry,
    GaugePayload,
    text_value,
)

Tags = Dict[str, Dict[str, object]]
MetricOption = Callable[[Tags], None]
EnvelopeConsumer = Callable[[Envelope], object]

_UINT64_MASK = (1 << 64) - 1
_PRECISION = 2
_SCALE = 10.0**_PRECISION


def with_tags(tags: Mapping[str, str]) -> MetricOption:
    """Return an option that adds *tags* as text tags on the metric's envelopes."""

    def apply(target: Tags) -> None:
        for key, value in tags.items():
            target[key] = text_value(value)

    return apply


def with_version(major: int, minor: int) -> MetricOption:
    """Return an option that sets the metric_version tag to "major.minor"."""
    return with_tags({"metric_version": f"{major}.{minor}"})


def _to_fixed(value: float) -> int:
    return int(value * _SCALE) & _UINT64_MASK


def _from_fixed(value: int) -> float:
    return float(value) / _SCALE


class Counter:
    """A counter whose accumulated delta is emitted and reset on each pulse."""

    def __init__(self, name: str, source_id: str, *options: MetricOption) -> None:
        self.name = name
        self.source_id = source_id
        self._tags: Tags = {}
        for option in options:
            option(self._tags)
        self._delta = 0
        self._lock = threading.Lock()

    def increment(self, amount: int) -> None:
        """Add *amount* to the delta; the delta wraps at 64 bits."""
        if amount < 0:
            raise ValueError("a counter can only be incremented by a non-negative amount")
        with self._lock:
            self._delta = (self._delta + amount) & _UINT64_MASK

    def delta(self) -> int:
        """Return the current delta."""
        with self._lock:
            return self._delta

    def with_envelope(self, fn: EnvelopeConsumer) -> None:
        """Reset the delta and pass an envelope carrying it to *fn*.

        If *fn* raises, the delta is added back and the exception propagates.
        """
        with self._lock:
            taken, self._delta = self._delta, 0
        try:
            fn(self._to_envelope(taken))
        except Exception:
            with self._lock:
                self._delta = (self._delta + taken) & _UINT64_MASK
            raise

    def _to_envelope(self, delta: int) -> Envelope:
        return Envelope(
            source_id=self.source_id,
            timestamp=time.time_ns(),
            message=CounterPayload(name=self.name, delta=delta),
            deprecated_tags=dict(self._tags),
        )


class Gauge:
    """A gauge holding a value with two decimal places of precision."""

    def __init__(
        self, name: str, unit: str, source_id: str, *options: MetricOption
    ) -> None:
        self.name = name
        self.unit = unit
        self.source_id = source_id
        self._tags: Tags = {}
        for option in options:
            option(self._tags)
        self._value = 0
        self._lock = threading.Lock()

    def set(self, value: float) -> None:
        """Set the gauge to *value*."""
        fixed = _to_fixed(value)
        with self._lock:
            self._value = fixed

    def increment(self, value: float) -> None:
        """Add *value* to the gauge."""
        fixed = _to_fixed(value)
        with self._lock:
            self._value = (self._value + fixed) & _UINT64_MASK

    def decrement(self, value: float) -> None:
        """Subtract *value* from the gauge."""
        fixed = _to_fixed(-value)
        with self._lock:
            self._value = (self._value + fixed) & _UINT64_MASK

    def value(self) -> float:
        """Return the current value of the gauge."""
        with self._lock:
            fixed = self._value
        return _from_fixed(fixed)

    def with_envelope(self, fn: EnvelopeConsumer) -> None:
        """Pass an envelope carrying the current value to *fn*."""
        fn(self._to_envelope(self.value()))

    def _to_envelope(self, value: float) -> Envelope:
        return Envelope(
            source_id=self.source_id,
            timestamp=time.time_ns(),
            message=GaugePayload(
                metrics={self.name: GaugeEntry(unit=self.unit, value=value)}
            ),
            deprecated_tags=dict(self._tags),
        )