"""Fan subscriptions out to every known doppler and merge what they send."""

from __future__ import annotations

import contextlib
import logging
import threading
from collections import deque
from concurrent.futures import CancelledError
from dataclasses import dataclass
from typing import Any, Callable, Deque, List, Optional, Protocol, Sequence, Set, Tuple

from loggrelay.metrics import Counter, MetricOption, with_tags, with_version
from loggrelay.static_finder import Event

_log = logging.getLogger(__name__)

_MAX_CONNECTIONS = 2000
_FINDER_POLL = 0.05


class _Stream(Protocol):
    def recv(self) -> Sequence[bytes]: ...

    def close(self) -> None: ...


class _Pool(Protocol):
    def register_doppler(self, addr: str) -> None: ...

    def subscribe(self, addr: str, request: Any) -> _Stream: ...

    def close(self, addr: str) -> None: ...


class _Finder(Protocol):
    def next(self, timeout: Optional[float] = None) -> Event: ...


class _MetricClient(Protocol):
    def new_counter(self, name: str, *args: MetricOption) -> Counter: ...


@dataclass(frozen=True)
class SubscriptionRequest:
    """Which shard a subscriber belongs to, optionally filtered to one app."""

    shard_id: str = ""
    app_id: str = ""


class Subscription:
    """A consumer's view of the merged stream of payloads from all dopplers."""

    def __init__(self, request: SubscriptionRequest, buffer_size: int) -> None:
        self.request = request
        self._capacity = max(1, buffer_size)
        self._buffer: Deque[bytes] = deque()
        self._cond = threading.Condition()
        self._cancelled = False
        self._closers: List[Callable[[], None]] = []
        self._dopplers: Set[str] = set()
        self._doppler_lock = threading.Lock()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cancel()

    @property
    def cancelled(self) -> bool:
        with self._cond:
            return self._cancelled

    def recv(self, timeout: Optional[float] = None) -> bytes:
        """Return the next payload.

        Raises CancelledError once the subscription is cancelled and
        TimeoutError if nothing arrives within *timeout* seconds.
        """
        with self._cond:
            ready = self._cond.wait_for(
                lambda: bool(self._buffer) or self._cancelled, timeout
            )
            if not ready:
                raise TimeoutError("no data received from dopplers")
            if self._cancelled:
                raise CancelledError("subscription cancelled")
            payload = self._buffer.popleft()
            self._cond.notify_all()
            return payload

    def cancel(self) -> None:
        """End the subscription and close its streams."""
        with self._cond:
            if self._cancelled:
                return
            self._cancelled = True
            closers, self._closers = self._closers, []
            self._cond.notify_all()
        for close in closers:
            with contextlib.suppress(Exception):
                close()

    def _deliver(self, payload: bytes) -> bool:
        with self._cond:
            self._cond.wait_for(
                lambda: len(self._buffer) < self._capacity or self._cancelled
            )
            if self._cancelled:
                return False
            self._buffer.append(payload)
            self._cond.notify_all()
            return True

    def _attach(self, closer: Callable[[], None]) -> bool:
        with self._cond:
            if self._cancelled:
                return False
            self._closers.append(closer)
            return True

    def _detach(self, closer: Callable[[], None]) -> None:
        with self._cond:
            if closer in self._closers:
                self._closers.remove(closer)

    def _wait(self, delay: float) -> None:
        with self._cond:
            self._cond.wait_for(lambda: self._cancelled, delay)

    def _try_add_doppler(self, uri: str) -> bool:
        with self._doppler_lock:
            if uri in self._dopplers:
                return False
            self._dopplers.add(uri)
            return True

    def _forget_doppler(self, uri: str) -> None:
        with self._doppler_lock:
            self._dopplers.discard(uri)


@dataclass(eq=False)
class _DopplerClient:
    uri: str
    disconnect: bool = False
    ref_count: int = 0


class Connector:
    """Connect every subscription to every doppler the finder announces.

    Payloads from all dopplers are merged into each subscription. Dopplers
    that the finder drops are closed once no subscription reads from them.
    """

    def __init__(
        self,
        buffer_size: int,
        pool: _Pool,
        finder: _Finder,
        metric_client: _MetricClient,
        *,
        max_connections: int = _MAX_CONNECTIONS,
        initial_retry_delay: float = 0.001,
        max_retry_delay: float = 60.0,
    ) -> None:
        self._buffer_size = buffer_size
        self._pool = pool
        self._finder = finder
        self._max_connections = max_connections
        self._initial_retry_delay = initial_retry_delay
        self._max_retry_delay = max_retry_delay
        self._ingress = metric_client.new_counter(
            "ingress", with_tags({"protocol": "grpc"}), with_version(2, 0)
        )
        self._lock = threading.RLock()
        self._clients: List[_DopplerClient] = []
        self._states_lock = threading.Lock()
        self._states: List[Optional[Subscription]] = [None] * max_connections
        self._stopped = threading.Event()
        self._finder_thread = threading.Thread(target=self._read_finder, daemon=True)
        self._finder_thread.start()

    def subscribe(self, request: SubscriptionRequest) -> Subscription:
        """Open a subscription fed by every known doppler.

        Raises RuntimeError when the connection limit is reached.
        """
        subscription = Subscription(request, self._buffer_size)
        self._add_state(subscription)
        with self._lock:
            _log.info("connecting to %d dopplers", len(self._clients))
            for client in self._clients:
                self._spawn(subscription, client)
        return subscription

    def stop(self) -> None:
        """Stop following the finder and cancel every open subscription."""
        self._stopped.set()
        if self._finder_thread is not threading.current_thread():
            self._finder_thread.join()
        with self._states_lock:
            live = [state for state in self._states if state is not None]
            self._states = [None] * self._max_connections
        for subscription in live:
            subscription.cancel()

    def _read_finder(self) -> None:
        while not self._stopped.is_set():
            try:
                event = self._finder.next(timeout=_FINDER_POLL)
            except TimeoutError:
                continue
            _log.info("event from finder: %s", event)
            self._handle_finder_event(event.grpc_dopplers)

    def _live_states(self) -> List[Subscription]:
        with self._states_lock:
            return [s for s in self._states if s is not None and not s.cancelled]

    def _handle_finder_event(self, uris: Sequence[str]) -> None:
        with self._lock:
            new_uris, dead_clients = self._delta(uris)
            for addr in new_uris:
                self._pool.register_doppler(addr)
                client = _DopplerClient(addr)
                self._clients.append(client)
                for subscription in self._live_states():
                    self._spawn(subscription, client)
            for dead in dead_clients:
                _log.info("disabling reconnects for doppler %s", dead.uri)
                dead.disconnect = True
                if dead.ref_count == 0:
                    self._close_client(dead)

    def _delta(self, uris: Sequence[str]) -> Tuple[List[str], List[_DopplerClient]]:
        dead = list(self._clients)
        added: List[str] = []
        for uri in uris:
            match = next((c for c in dead if c.uri == uri), None)
            if match is None:
                added.append(uri)
            else:
                match.disconnect = False
                dead.remove(match)
        return added, dead

    def _close_client(self, client: _DopplerClient) -> None:
        _log.info("closing doppler connection %s...", client.uri)
        self._pool.close(client.uri)
        self._clients = [c for c in self._clients if c is not client]

    def _spawn(self, subscription: Subscription, client: _DopplerClient) -> None:
        threading.Thread(
            target=self._consume, args=(subscription, client), daemon=True
        ).start()

    def _consume(self, subscription: Subscription, client: _DopplerClient) -> None:
        if not subscription._try_add_doppler(client.uri):
            return
        with self._lock:
            client.ref_count += 1
        try:
            self._consume_loop(subscription, client)
        finally:
            with self._lock:
                client.ref_count -= 1
                if client.ref_count <= 0 and client.disconnect:
                    self._close_client(client)
            subscription._forget_doppler(client.uri)

    def _consume_loop(self, subscription: Subscription, client: _DopplerClient) -> None:
        delay = self._initial_retry_delay
        tried = False
        while True:
            with self._lock:
                disconnect = client.disconnect
            if (tried and disconnect) or subscription.cancelled or self._stopped.is_set():
                _log.info(
                    "disconnecting from stream (%s) (doppler.disconnect=%s) (cancelled=%s)",
                    client.uri,
                    disconnect,
                    subscription.cancelled,
                )
                return
            tried = True
            try:
                stream = self._pool.subscribe(client.uri, subscription.request)
            except Exception as exc:
                _log.warning("unable to connect to doppler (%s): %s", client.uri, exc)
                subscription._wait(delay)
                if delay < self._max_retry_delay:
                    delay *= 10
                continue
            delay = self._initial_retry_delay
            try:
                self._read_stream(stream, subscription)
            except Exception as exc:
                if not subscription.cancelled:
                    _log.warning("error getting logs from provider: %s", exc)

    def _read_stream(self, stream: _Stream, subscription: Subscription) -> None:
        if not subscription._attach(stream.close):
            with contextlib.suppress(Exception):
                stream.close()
            return
        try:
            while True:
                payloads = stream.recv()
                for payload in payloads:
                    if not subscription._deliver(payload):
                        return
                # Number of v1 envelopes received from dopplers.
                self._ingress.increment(len(payloads))
        finally:
            subscription._detach(stream.close)

    def _add_state(self, subscription: Subscription) -> None:
        with self._states_lock:
            for index, state in enumerate(self._states):
                if state is None or state.cancelled:
                    self._states[index] = subscription
                    return
        raise RuntimeError(f"at connection limit: {self._max_connections}")