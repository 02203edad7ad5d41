"""Collect V2 envelopes into batches by size or elapsed time."""

from __future__ import annotations

import time
from typing import Callable, List

from loggrelay.envelope import Envelope

BatchWriter = Callable[[List[Envelope]], None]


class V2EnvelopeBatcher:
    """Batch envelopes and hand each batch to *writer*.

    A batch is written as soon as it holds *size* envelopes, or by flush()
    once *interval* seconds have passed since the previous write. Not
    thread safe: write and flush must be called from the same thread.
    """

    def __init__(
        self,
        size: int,
        interval: float,
        writer: BatchWriter,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._size = size
        self._interval = interval
        self._writer = writer
        self._clock = clock
        self._batch: List[Envelope] = []
        self._last_flush = clock()

    def write(self, envelope: Envelope) -> None:
        """Add *envelope*, writing the batch if it is now full."""
        if not isinstance(envelope, Envelope):
            raise TypeError(f"expected an Envelope, got {type(envelope).__name__}")
        self._batch.append(envelope)
        if len(self._batch) >= self._size:
            self._write_batch()

    def flush(self) -> None:
        """Write a partial batch if the interval has lapsed."""
        if self._batch and self._clock() - self._last_flush >= self._interval:
            self._write_batch()

    def _write_batch(self) -> None:
        batch, self._batch = self._batch, []
        self._writer(batch)
        self._last_flush = self._clock()