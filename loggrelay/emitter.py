"""A client that emits metrics and events to an ingress on a fixed pulse."""

from __future__ import annotations

import contextlib
import threading
import time
from typing import Dict, List, Optional, Protocol, Tuple, Union

from loggrelay.envelope import Envelope, EventPayload
from loggrelay.metrics import Counter, Gauge, MetricOption, with_tags

_EVENT_TIMEOUT = 1.0
_DEFAULT_PULSE_INTERVAL = 5.0


class SenderStream(Protocol):
    """A stream of envelopes to the ingress."""

    def send(self, envelope: Envelope) -> None: ...

    def close(self) -> None: ...


class Ingress(Protocol):
    """Something that can open sender streams."""

    def sender(self, timeout: Optional[float] = None) -> SenderStream: ...


def _close_quietly(stream: SenderStream) -> None:
    with contextlib.suppress(Exception):
        stream.close()


class Client:
    """Emit counters and gauges every *pulse_interval* seconds, and one-off events.

    Each metric created through the client carries the client's tags (origin,
    deployment, job and index) in addition to its own, and its source id.
    """

    def __init__(
        self,
        ingress: Ingress,
        *,
        pulse_interval: float = _DEFAULT_PULSE_INTERVAL,
        source_id: str = "",
        origin: Optional[str] = None,
        deployment: Optional[Tuple[str, str, str]] = None,
    ) -> None:
        if pulse_interval <= 0:
            raise ValueError("pulse interval must be positive")
        self._ingress = ingress
        self._pulse_interval = pulse_interval
        self.source_id = source_id
        self.tags: Dict[str, str] = {}
        if origin is not None:
            self.tags["origin"] = origin
        if deployment is not None:
            name, job, index = deployment
            self.tags.update(deployment=name, job=job, index=index)
        self._stopped = threading.Event()
        self._threads: List[threading.Thread] = []

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def new_counter(self, name: str, *args: MetricOption) -> Counter:
        """Create a counter emitted on every pulse; its delta resets after each send."""
        metric = Counter(name, self.source_id, *args, with_tags(self.tags))
        self._start_pulse(metric)
        return metric

    def new_gauge(self, name: str, unit: str, *args: MetricOption) -> Gauge:
        """Create a gauge whose value is emitted on every pulse."""
        metric = Gauge(name, unit, self.source_id, *args, with_tags(self.tags))
        self._start_pulse(metric)
        return metric

    def emit_event(self, title: str, body: str) -> None:
        """Send an event envelope. Delivery is best effort: failures are ignored."""
        # Streams give no reliable feedback about delivery, so any failure is dropped.
        try:
            stream = self._ingress.sender(timeout=_EVENT_TIMEOUT)
        except Exception:
            return
        try:
            with contextlib.suppress(Exception):
                stream.send(
                    Envelope(
                        source_id=self.source_id,
                        timestamp=time.time_ns(),
                        message=EventPayload(title=title, body=body),
                    )
                )
        finally:
            _close_quietly(stream)

    def close(self) -> None:
        """Stop emitting metrics and wait for the pulse threads to finish."""
        self._stopped.set()
        threads, self._threads = self._threads, []
        for thread in threads:
            thread.join()

    def _start_pulse(self, metric: Union[Counter, Gauge]) -> None:
        thread = threading.Thread(target=self._pulse, args=(metric,), daemon=True)
        self._threads.append(thread)
        thread.start()

    def _pulse(self, metric: Union[Counter, Gauge]) -> None:
        stream: Optional[SenderStream] = None
        while not self._stopped.wait(self._pulse_interval):
            if stream is None:
                try:
                    stream = self._ingress.sender()
                except Exception:
                    continue
            try:
                metric.with_envelope(stream.send)
            except Exception:
                _close_quietly(stream)
                stream = None
        if stream is not None:
            _close_quietly(stream)