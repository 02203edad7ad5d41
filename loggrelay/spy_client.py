"""An in-memory metric client that records metrics and events for inspection."""

from __future__ import annotations

import threading
from typing import List, Tuple

from loggrelay.envelope import Envelope
from loggrelay.metrics import Counter, Gauge, MetricOption


class SpyMetricClient:
    """Create metrics without emitting them and expose what they hold."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._counters: List[Tuple[str, Counter]] = []
        self._gauges: List[Tuple[str, Gauge]] = []
        self._events: List[Tuple[str, str]] = []

    def new_counter(self, name: str, *args: MetricOption) -> Counter:
        """Create and record a counter with an empty source id."""
        metric = Counter(name, "", *args)
        with self._lock:
            self._counters.append((name, metric))
        return metric

    def new_gauge(self, name: str, unit: str, *args: MetricOption) -> Gauge:
        """Create and record a gauge with an empty source id."""
        metric = Gauge(name, unit, "", *args)
        with self._lock:
            self._gauges.append((name, metric))
        return metric

    def emit_event(self, title: str, body: str) -> None:
        """Record an event."""
        with self._lock:
            self._events.append((title, body))

    def get_event(self, title: str) -> str:
        """Return the body of the first event with *title*, or an empty string."""
        with self._lock:
            return next((body for t, body in self._events if t == title), "")

    def get_delta(self, name: str) -> int:
        """Return the delta of the first counter named *name*, or 0."""
        with self._lock:
            return next((m.delta() for n, m in self._counters if n == name), 0)

    def get_envelopes(self, name: str) -> List[Envelope]:
        """Return an envelope for every metric named *name*, counters first.

        As when emitting, this resets the delta of each matching counter.
        """
        envelopes: List[Envelope] = []
        with self._lock:
            metrics = [m for n, m in self._counters if n == name]
            metrics += [m for n, m in self._gauges if n == name]
            for metric in metrics:
                metric.with_envelope(envelopes.append)
        return envelopes

    def get_value(self, name: str) -> float:
        """Return the value of the first gauge named *name*, or 0."""
        with self._lock:
            return next((m.value() for n, m in self._gauges if n == name), 0.0)