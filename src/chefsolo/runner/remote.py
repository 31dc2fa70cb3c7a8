# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chefsolo/runner/remote.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from chefsolo.connection.base import TRANSPORT_ERRORS, Connection
from chefsolo.errors import RemoteCommandError
from chefsolo.observers.interface import OutputObserver
from chefsolo.utils.execution import ExecutionContext
from .stream import LineDrain

log = logging.getLogger("chefsolo")


def sudo_wrap(command: str) -> str:
    return f"sudo bash -c '{command}'"


class RemoteRunner:
    """
    Runs commands over an open Connection.

    With ``use_sudo`` the whole command line becomes one elevated
    ``sudo bash -c '<command>'`` invocation.
    """

    def __init__(
        self,
        connection: Connection,
        output: OutputObserver,
        ctx: ExecutionContext,
        *,
        use_sudo: bool = False,
    ):
        self.connection = connection
        self.output = output
        self.ctx = ctx
        self.use_sudo = use_sudo

    def prepare(self, command: str) -> str:
        return sudo_wrap(command) if self.use_sudo else command

    def run(self, command: str) -> None:
        command = self.prepare(command)
        log.debug("remote $ %s", command)

        try:
            proc = self.connection.start(command)
        except TRANSPORT_ERRORS as exc:
            raise RemoteCommandError(
                f"error executing command {command!r}: {exc}", command=command
            ) from exc

        drain = LineDrain(proc.stream).start()
        if not drain.forward(self.output, self.ctx):
            # the session watcher tears the connection down; the remote
            # command itself may still be running
            raise RemoteCommandError(
                f"command {command!r} interrupted: run cancelled",
                command=command,
                output=drain.buffer.text(),
            )

        try:
            rc = proc.wait()
        except TRANSPORT_ERRORS as exc:
            raise RemoteCommandError(
                f"error waiting for command {command!r}: {exc}",
                command=command,
                output=drain.buffer.text(),
            ) from exc

        if rc != 0:
            raise RemoteCommandError(
                f"command {command!r} exited with status {rc}",
                command=command,
                exit_status=rc,
                output=drain.buffer.text(),
            )

    def run_many(self, commands: Sequence[str]) -> None:
        """Run commands in order, stopping at the first failure."""
        for command in commands:
            self.run(command)

    def upload(self, remote_path: str, content: str) -> None:
        try:
            self.connection.upload(remote_path, content)
        except TRANSPORT_ERRORS as exc:
            raise RemoteCommandError(
                f"uploading {remote_path} failed: {exc}", command=f"upload {remote_path}"
            ) from exc

    def upload_dir(self, remote_dir: str, local_dir: Path) -> None:
        try:
            self.connection.upload_dir(remote_dir, local_dir)
        except TRANSPORT_ERRORS as exc:
            raise RemoteCommandError(
                f"uploading {local_dir} failed: {exc}", command=f"upload {local_dir} -> {remote_dir}"
            ) from exc
