"""Track the average size of emitted envelopes over fixed intervals."""

from __future__ import annotations

import threading
from typing import Callable, List, Tuple

_COUNT_SHIFT = 48
_COUNT_MASK = 0xFFFF
_TOTAL_MASK = (1 << _COUNT_SHIFT) - 1
_UINT64_MASK = (1 << 64) - 1


def _decode(packed: int) -> Tuple[int, int]:
    return (packed >> _COUNT_SHIFT) & _COUNT_MASK, packed & _TOTAL_MASK


class EnvelopeAverager:
    """Accumulate envelope counts and sizes and report per-interval averages.

    The count is kept in 16 bits and the total in 48 bits of one 64-bit word,
    so both wrap around; the reported deltas account for that.
    """

    def __init__(self) -> None:
        self._storage = 0
        self._lock = threading.Lock()
        self._runners: List[Tuple[threading.Thread, threading.Event]] = []

    def track(self, count: int, size: int) -> None:
        """Add *count* envelopes totalling *size* bytes. Safe from any thread."""
        with self._lock:
            current_count, current_total = _decode(self._storage)
            new_count = (current_count + (count & _COUNT_MASK)) & _COUNT_MASK
            new_total = (current_total + (size & _UINT64_MASK)) & _UINT64_MASK
            self._storage = (
                (new_count << _COUNT_SHIFT) + (new_total & _TOTAL_MASK)
            ) & _UINT64_MASK

    def start(self, interval: float, callback: Callable[[float], None]) -> None:
        """Call *callback* every *interval* seconds with the average size since the last call."""
        if interval <= 0:
            raise ValueError("interval must be positive")
        stopped = threading.Event()
        thread = threading.Thread(
            target=self._run, args=(interval, callback, stopped), daemon=True
        )
        self._runners.append((thread, stopped))
        thread.start()

    def stop(self) -> None:
        """Stop every reporting thread started with start()."""
        runners, self._runners = self._runners, []
        for _, stopped in runners:
            stopped.set()
        for thread, _ in runners:
            if thread is not threading.current_thread():
                thread.join()

    def _run(
        self,
        interval: float,
        callback: Callable[[float], None],
        stopped: threading.Event,
    ) -> None:
        prev_count = 0
        prev_total = 0
        while not stopped.wait(interval):
            with self._lock:
                count, total = _decode(self._storage)
            delta_count = (count - prev_count) & _COUNT_MASK
            delta_total = (total - prev_total) & _UINT64_MASK
            prev_count, prev_total = count, total
            if delta_count == 0:
                callback(0.0)
            else:
                callback(delta_total / delta_count)