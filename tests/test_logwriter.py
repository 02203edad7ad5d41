import io
import re

from loggrelay.logwriter import LogWriter

STAMP = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{9}Z ")


def test_epoch_timestamp_format():
    out = io.StringIO()
    writer = LogWriter(out, clock=lambda: 0)
    writer.write("hello\n")
    assert out.getvalue() == "1970-01-01T00:00:00.000000000Z hello\n"


def test_nanoseconds_are_kept():
    out = io.StringIO()
    writer = LogWriter(out, clock=lambda: 5)
    writer.write(b"x")
    assert out.getvalue().startswith("1970-01-01T00:00:00.000000005Z ")
    assert out.getvalue().endswith(" x")


def test_returns_bytes_written():
    out = io.StringIO()
    written = LogWriter(out).write(b"message")
    assert written == len(out.getvalue().encode("utf-8"))


def test_real_clock_matches_format():
    out = io.StringIO()
    LogWriter(out).write("line")
    assert STAMP.match(out.getvalue())
    assert out.getvalue().endswith("line")


def test_defaults_to_stderr(capsys):
    LogWriter().write("to stderr")
    captured = capsys.readouterr()
    assert captured.out == ""
    assert STAMP.match(captured.err)
    assert captured.err.endswith("to stderr")