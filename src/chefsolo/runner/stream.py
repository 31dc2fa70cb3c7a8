# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chefsolo/runner/stream.py

from __future__ import annotations

import queue
import threading
from typing import BinaryIO, Optional

from chefsolo.observers.interface import OutputObserver
from chefsolo.utils.execution import ExecutionContext

MAX_BUF_SIZE = 8 * 1024

_EOF = object()


class OutputBuffer:
    """Keeps the last ``size`` bytes written to it."""

    def __init__(self, size: int = MAX_BUF_SIZE):
        self.size = size
        self.total_written = 0
        self._data = bytearray()
        self._lock = threading.Lock()

    def write(self, chunk: bytes) -> None:
        with self._lock:
            self.total_written += len(chunk)
            self._data += chunk
            if len(self._data) > self.size:
                del self._data[: len(self._data) - self.size]

    def getvalue(self) -> bytes:
        with self._lock:
            return bytes(self._data)

    def text(self) -> str:
        return self.getvalue().decode("utf-8", errors="replace")


class LineDrain:
    """
    Background reader for a command's output stream.

    A daemon thread reads ``stream`` line by line, tees the raw bytes into
    ``buffer`` and queues the decoded lines; ``forward`` delivers them to
    an observer on the calling thread, in order, until the stream closes.

    If the stream's write end was inherited by an orphaned child the
    thread keeps waiting for EOF after the command itself has exited;
    ``forward`` then only returns once the run is cancelled.
    """

    def __init__(
        self,
        stream: BinaryIO,
        buffer: Optional[OutputBuffer] = None,
        *,
        close_stream: bool = False,
    ):
        self._stream = stream
        self._close_stream = close_stream
        self.buffer = buffer if buffer is not None else OutputBuffer()
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._thread = threading.Thread(target=self._pump, name="output-drain", daemon=True)

    def start(self) -> "LineDrain":
        self._thread.start()
        return self

    def _pump(self) -> None:
        try:
            for raw in iter(self._stream.readline, b""):
                self.buffer.write(raw)
                self._queue.put(raw.decode("utf-8", errors="replace").rstrip("\r\n"))
        except (OSError, ValueError):
            # stream closed underneath us (session torn down)
            pass
        finally:
            if self._close_stream:
                self._stream.close()
            self._queue.put(_EOF)

    def forward(self, observer: OutputObserver, ctx: ExecutionContext, poll: float = 0.1) -> bool:
        """Deliver lines until EOF (True) or until ctx is cancelled (False)."""
        while True:
            # checked on every pass; a chatty command never empties the queue
            if ctx.cancelled:
                return False
            try:
                item = self._queue.get(timeout=poll)
            except queue.Empty:
                continue
            if item is _EOF:
                return True
            observer.output(item)
