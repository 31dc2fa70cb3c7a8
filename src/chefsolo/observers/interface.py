# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations
from typing import Protocol
from .events import BaseEvent

class Observer(Protocol):
    def notify(self, event: BaseEvent) -> None: ...


class OutputObserver(Protocol):
    """Receives human-readable status lines and streamed command output."""

    def output(self, line: str) -> None: ...
