"""Bounded ring buffers that drop the oldest data instead of blocking writers."""

from __future__ import annotations

import threading
from collections import deque
from typing import Any, Callable, Optional, Tuple

Alerter = Callable[[int], None]


class _Ring:
    """A thread-safe bounded buffer that overwrites its oldest entry when full."""

    def __init__(self, size: int, alerter: Optional[Alerter]) -> None:
        if size < 1:
            raise ValueError("diode size must be at least 1")
        self._buffer: deque = deque(maxlen=size)
        self._alerter = alerter
        self._dropped = 0
        self._closed = False
        self._cond = threading.Condition()

    def put(self, data: Any) -> None:
        if data is None:
            raise TypeError("a diode cannot hold None")
        with self._cond:
            if len(self._buffer) == self._buffer.maxlen:
                self._dropped += 1
            self._buffer.append(data)
            self._cond.notify()

    def take(self) -> Any:
        with self._cond:
            if not self._buffer:
                return None
            item, dropped = self._pop()
        self._report(dropped)
        return item

    def wait_take(self, timeout: Optional[float]) -> Any:
        with self._cond:
            ready = self._cond.wait_for(
                lambda: bool(self._buffer) or self._closed, timeout
            )
            if not ready:
                raise TimeoutError("no data became available in the diode")
            if not self._buffer:
                return None
            item, dropped = self._pop()
        self._report(dropped)
        return item

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def _pop(self) -> Tuple[Any, int]:
        dropped, self._dropped = self._dropped, 0
        return self._buffer.popleft(), dropped

    def _report(self, dropped: int) -> None:
        if dropped and self._alerter is not None:
            self._alerter(dropped)


class OneToOne:
    """A diode meant for a single writer and a single reader.

    When the buffer is full, a new item replaces the oldest one. The alerter,
    if given, is called on the reading side with the number of items dropped
    since the previous read.
    """

    def __init__(self, size: int, alerter: Optional[Alerter] = None) -> None:
        self._ring = _Ring(size, alerter)

    def set(self, data: Any) -> None:
        """Insert *data*, dropping the oldest item if the diode is full."""
        self._ring.put(data)

    def try_next(self) -> Any:
        """Return the next item, or None if the diode is empty."""
        return self._ring.take()

    def next(self, timeout: Optional[float] = None) -> Any:
        """Block until an item is available and return it.

        Returns None once the diode is closed and drained; raises
        TimeoutError if *timeout* seconds pass with nothing to read.
        """
        return self._ring.wait_take(timeout)

    def close(self) -> None:
        """Wake any blocked reader; further reads return None once drained."""
        self._ring.close()


class ManyToOne:
    """A diode meant for many concurrent writers and a single reader.

    Overflow and alerting behave as for OneToOne.
    """

    def __init__(self, size: int, alerter: Optional[Alerter] = None) -> None:
        self._ring = _Ring(size, alerter)

    def set(self, data: Any) -> None:
        """Insert *data*, dropping the oldest item if the diode is full."""
        self._ring.put(data)

    def try_next(self) -> Any:
        """Return the next item, or None if the diode is empty."""
        return self._ring.take()

    def next(self, timeout: Optional[float] = None) -> Any:
        """Block until an item is available and return it.

        Returns None once the diode is closed and drained; raises
        TimeoutError if *timeout* seconds pass with nothing to read.
        """
        return self._ring.wait_take(timeout)

    def close(self) -> None:
        """Wake any blocked reader; further reads return None once drained."""
        self._ring.close()