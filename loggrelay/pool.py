"""A pool of connections to dopplers, keyed by address."""

from __future__ import annotations

import contextlib
import logging
import threading
from typing import Any, Callable, Dict, List, Protocol, Sequence

_log = logging.getLogger(__name__)

_DEFAULT_RETRY_DELAY = 5.0


class _Stream(Protocol):
    def recv(self) -> Sequence[bytes]: ...

    def close(self) -> None: ...


class _Connection(Protocol):
    def batch_subscribe(self, request: Any) -> _Stream: ...

    def close(self) -> None: ...


Dialer = Callable[[str], _Connection]


class Pool:
    """Keep one connection per doppler address and open subscriptions on them.

    *dialer* opens a connection to an address; if it raises, the pool waits
    *retry_delay* seconds and tries again until the address is closed.
    """

    def __init__(self, dialer: Dialer, retry_delay: float = _DEFAULT_RETRY_DELAY) -> None:
        self._dialer = dialer
        self._retry_delay = retry_delay
        self._lock = threading.Lock()
        self._dopplers: Dict[str, _Connection] = {}
        self._pending: Dict[str, List[threading.Event]] = {}

    def register_doppler(self, addr: str) -> None:
        """Start connecting to *addr* in the background."""
        cancelled = threading.Event()
        with self._lock:
            self._pending.setdefault(addr, []).append(cancelled)
        threading.Thread(
            target=self._connect, args=(addr, cancelled), daemon=True
        ).start()

    def subscribe(self, addr: str, request: Any) -> _Stream:
        """Open a batch subscription on the connection to *addr*.

        Raises ConnectionError if there is no connection to *addr*.
        """
        with self._lock:
            connection = self._dopplers.get(addr)
        if connection is None:
            raise ConnectionError("no connections available for subscription")
        return connection.batch_subscribe(request)

    def close(self, addr: str) -> None:
        """Drop and close the connection to *addr* and stop connecting to it."""
        with self._lock:
            connection = self._dopplers.pop(addr, None)
            pending = self._pending.pop(addr, [])
        for cancelled in pending:
            cancelled.set()
        if connection is not None:
            connection.close()

    def size(self) -> int:
        """Return the number of established connections."""
        with self._lock:
            return len(self._dopplers)

    def _connect(self, addr: str, cancelled: threading.Event) -> None:
        while not cancelled.is_set():
            _log.info("adding doppler %s", addr)
            try:
                connection = self._dialer(addr)
            except Exception as exc:
                _log.warning("unable to subscribe to doppler %s: %s", addr, exc)
                cancelled.wait(self._retry_delay)
                continue
            with self._lock:
                stale = cancelled.is_set()
                if not stale:
                    self._dopplers[addr] = connection
                    waiting = self._pending.get(addr, [])
                    if cancelled in waiting:
                        waiting.remove(cancelled)
                    if not waiting:
                        self._pending.pop(addr, None)
            if stale:
                with contextlib.suppress(Exception):
                    connection.close()
            return