# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chefsolo/observers/output.py

from __future__ import annotations

import logging
import re
import threading
from pathlib import Path
from typing import Iterable

log = logging.getLogger("chefsolo")

# colour codes emitted by chef-client and friends
_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]+m")


class LoggerOutput:
    """Forwards output lines to a logger, tagged with the instance id."""

    def __init__(self, instance_id: str, logger: logging.Logger | None = None):
        self.instance_id = instance_id
        self.logger = logger or log

    def output(self, line: str) -> None:
        self.logger.info("(%s) %s", self.instance_id, line)


class InstanceLogFile:
    """
    Appends output to ``<log_dir>/<instance_id>``.

    ANSI escape sequences are stripped and carriage returns become
    newlines before writing. Write failures are logged and otherwise
    ignored so a full disk never aborts a provisioning run.
    """

    def __init__(self, instance_id: str, log_dir: Path | str = "logfiles"):
        self.instance_id = instance_id
        self.path = Path(log_dir) / instance_id
        self._lock = threading.Lock()

    @staticmethod
    def clean(text: str) -> str:
        return _ANSI_ESCAPE.sub("", text).replace("\r", "\n")

    def output(self, line: str) -> None:
        text = self.clean(line)
        if not text.endswith("\n"):
            text += "\n"
        try:
            with self._lock:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with self.path.open("a", encoding="utf-8") as f:
                    f.write(text)
                    f.flush()
        except OSError as exc:
            log.error("Error writing output to logfile %s: %s", self.path, exc)


class OutputFanout:
    """Delivers every line to each sink in order."""

    def __init__(self, sinks: Iterable):
        self._sinks = list(sinks)

    def output(self, line: str) -> None:
        for sink in self._sinks:
            sink.output(line)
