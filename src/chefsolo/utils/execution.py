# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chefsolo/utils/execution.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class ExecutionContext:
    """
    Run-scoped cancellation signal.

    A run ends exactly once: either ``finish()`` on normal completion or
    ``cancel()`` when the caller aborts. Background watchers block on
    ``wait()`` and look at ``cancelled`` to decide what to tear down.
    """

    _ended: threading.Event = field(default_factory=threading.Event, repr=False)
    _cancelled: bool = False
    reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if self._ended.is_set():
            return
        self._cancelled = True
        self.reason = reason
        self._ended.set()

    def finish(self) -> None:
        if self._ended.is_set():
            return
        self.reason = "finished"
        self._ended.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def ended(self) -> bool:
        return self._ended.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the run ends; returns False on timeout."""
        return self._ended.wait(timeout)

    def sleep(self, seconds: float) -> bool:
        """Sleep unless the run ends first; returns True if it ended."""
        return self._ended.wait(seconds)
