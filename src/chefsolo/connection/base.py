# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chefsolo/connection/base.py

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Protocol

import paramiko

# Errors a transport may raise while connecting or talking to the target.
TRANSPORT_ERRORS: tuple[type[Exception], ...] = (OSError, EOFError, paramiko.SSHException)


@dataclass
class RemoteProcess:
    """A command started on the target: combined output plus exit status."""

    stream: BinaryIO
    wait: Callable[[], int]


class Connection(Protocol):
    """
    Transport to the target machine.

    ``timeout`` is the connection's own retry budget in seconds; the
    connection manager keeps calling ``connect`` until it succeeds or the
    budget runs out.
    """

    timeout: float

    def connect(self) -> None: ...

    def disconnect(self) -> None: ...

    def start(self, command: str) -> RemoteProcess: ...

    def upload(self, remote_path: str, content: str) -> None: ...

    def upload_dir(self, remote_dir: str, local_dir: Path) -> None:
        """Copy ``local_dir`` (the directory itself) into ``remote_dir``."""
        ...
