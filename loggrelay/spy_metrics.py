"""An in-memory metric registry whose metrics can be looked up by name and labels."""

from __future__ import annotations

import threading
from typing import Callable, Dict, List, Mapping, Optional

Labels = Dict[str, str]
LabelOption = Callable[[Labels], None]


def with_labels(labels: Mapping[str, str]) -> LabelOption:
    """Return an option that adds *labels* as constant labels on a metric."""

    def apply(target: Labels) -> None:
        target.update(labels)

    return apply


def _metric_key(name: str, tags: Optional[Mapping[str, str]]) -> str:
    tags = tags or {}
    return name + "".join(f"{key}_{tags[key]}" for key in sorted(tags))


class SpyMetric:
    """A metric that simply holds a float value."""

    def __init__(self, name: str, *args: LabelOption) -> None:
        self.name = name
        self.labels: Labels = {}
        for option in args:
            option(self.labels)
        self.keys: List[str] = sorted(self.labels)
        self._value = 0.0
        self._lock = threading.Lock()

    def set(self, value: float) -> None:
        """Replace the value."""
        with self._lock:
            self._value = value

    def add(self, value: float) -> None:
        """Add *value* to the value."""
        with self._lock:
            self._value += value

    def value(self) -> float:
        """Return the current value."""
        with self._lock:
            return self._value


class SpyMetricRegistry:
    """Create counters and gauges and find them again by name and labels.

    A metric created with the same name and labels as an earlier one
    replaces it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.metrics: Dict[str, SpyMetric] = {}

    def new_counter(self, name: str, help_text: str, *args: LabelOption) -> SpyMetric:
        """Create and record a counter."""
        return self._add(SpyMetric(name, *args))

    def new_gauge(self, name: str, help_text: str, *args: LabelOption) -> SpyMetric:
        """Create and record a gauge."""
        return self._add(SpyMetric(name, *args))

    def get_metric(self, name: str, tags: Optional[Mapping[str, str]] = None) -> SpyMetric:
        """Return the metric with *name* and exactly *tags*; raise KeyError if unknown."""
        with self._lock:
            try:
                return self.metrics[_metric_key(name, tags)]
            except KeyError:
                raise KeyError(f"unknown metric: {name}") from None

    def has_metric(self, name: str, tags: Optional[Mapping[str, str]] = None) -> bool:
        """Return whether a metric with *name* and exactly *tags* exists."""
        with self._lock:
            return _metric_key(name, tags) in self.metrics

    def _add(self, metric: SpyMetric) -> SpyMetric:
        with self._lock:
            self.metrics[_metric_key(metric.name, metric.labels)] = metric
        return metric