"""A finder that announces a fixed list of doppler addresses."""

from __future__ import annotations

import queue
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

_EVENT_BUFFER = 10


@dataclass
class Event:
    """The set of doppler addresses currently available."""

    grpc_dopplers: List[str] = field(default_factory=list)


class StaticFinder:
    """Yield one event with the configured addresses, then block until stopped."""

    def __init__(self, addrs: Iterable[str]) -> None:
        self._events: "queue.Queue[Event]" = queue.Queue(maxsize=_EVENT_BUFFER)
        self._events.put(Event(list(addrs)))
        self.running = False

    def start(self) -> None:
        """Mark the finder as running; the addresses are known up front."""
        self.running = True

    def stop(self) -> None:
        """Announce that no dopplers remain."""
        self.running = False
        self._events.put(Event([]))

    def next(self, timeout: Optional[float] = None) -> Event:
        """Return the next event, blocking until one is available.

        Raises TimeoutError if *timeout* seconds pass without an event.
        """
        try:
            return self._events.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError("no finder event available") from None