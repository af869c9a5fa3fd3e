"""Destinations for serialized request log lines.

Every sink exposes ``name`` and ``write(line)``. ``line`` is one JSON record
without a trailing newline.
"""

from __future__ import annotations

import sys
from collections import deque
from pathlib import Path
from threading import Lock
from typing import IO, Protocol, runtime_checkable


@runtime_checkable
class Sink(Protocol):
    name: str

    def write(self, line: str) -> None: ...


class ConsoleSink:
    name = "console"

    def __init__(self, stream: IO[str] | None = None) -> None:
        self._stream = stream
        self._lock = Lock()

    @property
    def stream(self) -> IO[str]:
        # Resolved lazily so pytest's capsys sees the writes.
        return self._stream if self._stream is not None else sys.stdout

    def write(self, line: str) -> None:
        with self._lock:
            stream = self.stream
            stream.write(line + "\n")
            stream.flush()


class FileSink:
    """Appends newline-delimited records to ``path``."""

    def __init__(self, path: str | Path, name: str = "file") -> None:
        self.name = name
        self.path = Path(path)
        self._lock = Lock()
        self._fh: IO[str] | None = None

    def _open(self) -> IO[str]:
        if self._fh is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = self.path.open("a", encoding="utf-8")
        return self._fh

    def write(self, line: str) -> None:
        with self._lock:
            fh = self._open()
            fh.write(line + "\n")
            fh.flush()

    def close(self) -> None:
        with self._lock:
            if self._fh is not None:
                self._fh.close()
                self._fh = None


class BufferedSink:
    """Bounds how long a slow sink can hold up request handling.

    Lines go into a drop-oldest queue of ``maxsize``. Whoever manages to take
    the drain lock flushes the queue into the wrapped sink; everyone else
    enqueues and returns. No background thread is involved, so the queue is
    only drained while records keep arriving (or on ``flush``/``close``).

    The bound only bites when writes come from several threads, e.g. sync
    endpoints on the threadpool. Async handlers all log from the event-loop
    thread, so the drain lock is always free there: the writing request drains
    the queue itself and a stalled inner sink still stalls the loop.
    """

    def __init__(self, inner: Sink, maxsize: int = 1024) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        self.inner = inner
        self.name = inner.name
        self.maxsize = maxsize
        self.dropped = 0
        self._queue: deque[str] = deque()
        self._queue_lock = Lock()
        self._drain_lock = Lock()

    def write(self, line: str) -> None:
        with self._queue_lock:
            if len(self._queue) >= self.maxsize:
                self._queue.popleft()
                self.dropped += 1
            self._queue.append(line)

        if self._drain_lock.acquire(blocking=False):
            try:
                self._drain()
            finally:
                self._drain_lock.release()

    def flush(self) -> None:
        with self._drain_lock:
            self._drain()

    def pending(self) -> int:
        with self._queue_lock:
            return len(self._queue)

    def _drain(self) -> None:
        while True:
            with self._queue_lock:
                if not self._queue:
                    return
                line = self._queue.popleft()
            self.inner.write(line)

    def close(self) -> None:
        try:
            self.flush()
        finally:
            close = getattr(self.inner, "close", None)
            if callable(close):
                close()
