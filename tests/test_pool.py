import threading
import time

import pytest

from loggrelay.pool import Pool


def eventually(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class FakeStream:
    def recv(self):
        return [b"some-data"]

    def close(self):
        pass


class FakeConnection:
    def __init__(self, addr):
        self.addr = addr
        self.requests = []
        self.closed = False

    def batch_subscribe(self, request):
        self.requests.append(request)
        return FakeStream()

    def close(self):
        self.closed = True


class Dialer:
    def __init__(self):
        self.connections = {}
        self.lock = threading.Lock()

    def __call__(self, addr):
        with self.lock:
            return self.connections.setdefault(addr, FakeConnection(addr))


@pytest.fixture
def dialer():
    return Dialer()


@pytest.fixture
def pool(dialer):
    return Pool(dialer, retry_delay=0.01)


def test_register_adds_entries(pool, dialer):
    pool.register_doppler("192.0.2.10:8080")
    pool.register_doppler("192.0.2.11:8080")
    eventually(lambda: pool.size() == 2)
    assert pool.size() == 2
    assert sorted(dialer.connections) == ["192.0.2.10:8080", "192.0.2.11:8080"]


def test_close_removes_entries(pool, dialer):
    pool.register_doppler("192.0.2.10:8080")
    pool.register_doppler("192.0.2.11:8080")
    assert eventually(lambda: pool.size() == 2)
    pool.close("192.0.2.11:8080")
    assert pool.size() == 1
    assert dialer.connections["192.0.2.11:8080"].closed is True
    assert dialer.connections["192.0.2.10:8080"].closed is False


def test_subscribe_unregistered_raises(pool):
    with pytest.raises(ConnectionError):
        pool.subscribe("invalid", "some-shard-id")


def test_subscribe_after_close_raises(pool):
    pool.register_doppler("192.0.2.10:8080")
    assert eventually(lambda: pool.size() == 1)
    pool.close("192.0.2.10:8080")
    with pytest.raises(ConnectionError):
        pool.subscribe("192.0.2.10:8080", "some-shard-id")


def test_subscribe_uses_registered_connection(pool, dialer):
    addr = "192.0.2.10:8080"
    pool.register_doppler(addr)
    assert eventually(lambda: pool.size() == 1)
    first = pool.subscribe(addr, "some-shard-id")
    second = pool.subscribe(addr, "some-shard-id")
    assert first is not second
    assert first.recv() == [b"some-data"]
    assert dialer.connections[addr].requests == ["some-shard-id", "some-shard-id"]


def test_registered_but_not_up_raises_and_retries():
    attempts = []

    def failing_dialer(addr):
        attempts.append(addr)
        raise OSError("connection refused")

    pool = Pool(failing_dialer, retry_delay=0.01)
    pool.register_doppler("some-addr")
    assert eventually(lambda: len(attempts) >= 2)
    with pytest.raises(ConnectionError):
        pool.subscribe("some-addr", "some-shard-id")
    assert pool.size() == 0

    pool.close("some-addr")
    time.sleep(0.1)
    settled = len(attempts)
    time.sleep(0.1)
    assert len(attempts) == settled