"""A writer that prefixes each chunk with a UTC timestamp."""

from __future__ import annotations

import sys
import time
from typing import Callable, Optional, TextIO, Union

_NANOS_PER_SECOND = 1_000_000_000


class LogWriter:
    """Write text to a stream (stderr by default) behind a nanosecond UTC timestamp."""

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        clock: Callable[[], int] = time.time_ns,
    ) -> None:
        self._stream = stream
        self._clock = clock

    def write(self, data: Union[str, bytes, bytearray]) -> int:
        """Write *data* with a timestamp prefix and return the number of bytes written."""
        if isinstance(data, (bytes, bytearray)):
            text = bytes(data).decode("utf-8", errors="replace")
        else:
            text = data
        seconds, nanos = divmod(self._clock(), _NANOS_PER_SECOND)
        stamp = time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(seconds))
        line = f"{stamp}.{nanos:09d}Z {text}"
        stream = self._stream if self._stream is not None else sys.stderr
        stream.write(line)
        return len(line.encode("utf-8"))