import threading

import pytest

from loggrelay.diodes import ManyToOne, OneToOne
from loggrelay.envelope import Envelope


def test_items_come_out_in_order():
    for diode in (OneToOne(10), ManyToOne(10)):
        for item in (b"a", b"b", b"c"):
            diode.set(item)
        assert [diode.try_next() for _ in range(3)] == [b"a", b"b", b"c"]


def test_try_next_on_empty_returns_none():
    assert OneToOne(4).try_next() is None
    assert ManyToOne(4).try_next() is None


def test_holds_envelopes():
    for diode in (OneToOne(4), ManyToOne(4)):
        env = Envelope(source_id="test-source-id")
        diode.set(env)
        assert diode.try_next() is env


def test_overflow_keeps_newest_and_alerts():
    written = [b"1", b"2", b"3", b"4", b"5"]
    for cls in (OneToOne, ManyToOne):
        alerts = []
        diode = cls(2, alerts.append)
        for item in written:
            diode.set(item)
        received = []
        while (item := diode.try_next()) is not None:
            received.append(item)
        assert received == written[-2:]
        assert sum(alerts) + len(received) == len(written)


def test_no_alert_without_drops():
    alerts = []
    one = OneToOne(3, alerts.append)
    many = ManyToOne(3, alerts.append)
    one.set(b"x")
    many.set(b"y")
    assert one.try_next() == b"x"
    assert many.try_next() == b"y"
    assert alerts == []


def test_invalid_size():
    with pytest.raises(ValueError):
        OneToOne(0)
    with pytest.raises(ValueError):
        ManyToOne(0)


def test_none_is_rejected():
    with pytest.raises(TypeError):
        OneToOne(2).set(None)
    with pytest.raises(TypeError):
        ManyToOne(2).set(None)


def test_next_times_out():
    with pytest.raises(TimeoutError):
        OneToOne(2).next(timeout=0.05)
    with pytest.raises(TimeoutError):
        ManyToOne(2).next(timeout=0.05)


def test_next_blocks_until_set():
    for diode in (OneToOne(2), ManyToOne(2)):
        timer = threading.Timer(0.05, diode.set, args=(b"late",))
        timer.start()
        try:
            assert diode.next(timeout=5) == b"late"
        finally:
            timer.cancel()


def test_close_wakes_reader():
    for diode in (OneToOne(2), ManyToOne(2)):
        timer = threading.Timer(0.05, diode.close)
        timer.start()
        try:
            assert diode.next(timeout=5) is None
        finally:
            timer.cancel()


def test_closed_diode_drains_first():
    for diode in (OneToOne(2), ManyToOne(2)):
        diode.set(b"left")
        diode.close()
        assert diode.next(timeout=1) == b"left"
        assert diode.next(timeout=1) is None


def test_many_writers_deliver_everything():
    diode = ManyToOne(1000)
    writers = [
        threading.Thread(target=lambda n=n: [diode.set((n, i)) for i in range(50)])
        for n in range(4)
    ]
    for w in writers:
        w.start()
    for w in writers:
        w.join()
    received = set()
    while (item := diode.try_next()) is not None:
        received.add(item)
    assert received == {(n, i) for n in range(4) for i in range(50)}