"""Strategies that drive a message writer at a steady rate or in bursts."""

from __future__ import annotations

import random
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

MessageGenerator = Callable[[], bytes]
MessageWriter = Callable[[bytes], None]


class _Ticker:
    """Runs an action on a fixed tick until stopped."""

    def __init__(self, interval: float, action: Callable[[], None]) -> None:
        self._interval = interval
        self._action = action
        self._stopped = threading.Event()
        self._finished = threading.Event()
        self._lock = threading.Lock()
        self._running = False

    def run(self) -> None:
        with self._lock:
            if self._running:
                raise RuntimeError("writer is already running")
            self._running = True
            self._finished.clear()
        try:
            deadline = time.monotonic() + self._interval
            while not self._stopped.wait(max(0.0, deadline - time.monotonic())):
                self._action()
                deadline += self._interval
                now = time.monotonic()
                if deadline < now:
                    # Drop ticks that were missed, as a ticker does.
                    deadline = now + self._interval
        finally:
            with self._lock:
                self._running = False
            self._finished.set()

    def stop(self) -> None:
        self._stopped.set()
        with self._lock:
            running = self._running
        if running:
            self._finished.wait()


class ConstantWriteStrategy:
    """Write one generated message *write_rate* times per second."""

    def __init__(
        self, generator: MessageGenerator, writer: MessageWriter, write_rate: int
    ) -> None:
        if write_rate <= 0:
            raise ValueError("write rate must be positive")
        self._generator = generator
        self._writer = writer
        self.write_rate = write_rate
        self._ticker = _Ticker(1.0 / write_rate, self._write_one)

    def start_writer(self) -> None:
        """Write on every tick until stop() is called. Blocks the calling thread."""
        self._ticker.run()

    def stop(self) -> None:
        """Stop the writer and wait until start_writer() has returned."""
        self._ticker.stop()

    def _write_one(self) -> None:
        self._writer(self._generator())


@dataclass(frozen=True)
class BurstParameters:
    """Bounds on the size of each burst and the seconds between bursts."""

    minimum: int
    maximum: int
    frequency: float


def _burst_size(minimum: int, maximum: int, rng: random.Random) -> int:
    if minimum == maximum:
        return minimum
    return minimum + rng.randrange(maximum - minimum)


class BurstWriteStrategy:
    """Every *frequency* seconds, write a burst of generated messages.

    A burst holds at least *minimum* and fewer than *maximum* messages, or
    exactly *minimum* when the two are equal.
    """

    def __init__(
        self,
        generator: MessageGenerator,
        writer: MessageWriter,
        params: BurstParameters,
        rng: Optional[random.Random] = None,
    ) -> None:
        if params.frequency <= 0:
            raise ValueError("burst frequency must be positive")
        if params.maximum < params.minimum:
            raise ValueError("burst maximum must not be below the minimum")
        self._generator = generator
        self._writer = writer
        self.parameters = params
        self._rng = rng if rng is not None else random.Random()
        self._ticker = _Ticker(params.frequency, self._write_burst)

    def start_writer(self) -> None:
        """Write a burst on every tick until stop() is called. Blocks."""
        self._ticker.run()

    def stop(self) -> None:
        """Stop the writer and wait until start_writer() has returned."""
        self._ticker.stop()

    def _write_burst(self) -> None:
        burst = _burst_size(self.parameters.minimum, self.parameters.maximum, self._rng)
        for _ in range(burst):
            self._writer(self._generator())