# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chefsolo/runner/local.py

from __future__ import annotations

import logging
import os
import subprocess
import time
from typing import Optional, Sequence

from chefsolo.errors import LocalCommandError
from chefsolo.observers.interface import OutputObserver
from chefsolo.utils.execution import ExecutionContext
from .stream import LineDrain, OutputBuffer

log = logging.getLogger("chefsolo")


def _interpreter() -> list[str]:
    if os.name == "nt":
        return ["cmd", "/C"]
    return ["/bin/sh", "-c"]


def run_local(
    ctx: ExecutionContext,
    output: OutputObserver,
    command: str,
    *,
    cwd: Optional[str] = None,
    env: Optional[dict] = None,
) -> None:
    """
    Run ``command`` through the local shell, streaming its output.

    - stdout and stderr share one OS pipe handed straight to the child
    - the last 8 KiB of output are kept and attached to the error
    - cancelling ctx kills the process

    Raises LocalCommandError on an empty command, a start failure or a
    non-zero exit.
    """
    if not command:
        raise LocalCommandError("local command must be a non-empty string", command=command)

    argv = _interpreter() + [command]
    read_fd, write_fd = os.pipe()
    try:
        proc = subprocess.Popen(
            argv,
            stdin=subprocess.DEVNULL,
            stdout=write_fd,
            stderr=write_fd,
            cwd=cwd,
            env={**os.environ, **env} if env else None,
        )
    except OSError as exc:
        os.close(read_fd)
        os.close(write_fd)
        raise LocalCommandError(
            f"error running command '{command}': {exc}", command=command
        ) from exc

    # The child holds its own copy; ours must go so the reader sees EOF.
    os.close(write_fd)

    buffer = OutputBuffer()
    # The drain thread closes the read end once it sees EOF.
    drain = LineDrain(os.fdopen(read_fd, "rb"), buffer, close_stream=True).start()
    output.output(f"Executing: {argv!r}")
    start = time.time()

    drained = drain.forward(output, ctx)
    if not drained and proc.poll() is None:
        log.debug("Killing %r after cancellation", command)
        proc.kill()
    rc = proc.wait()

    elapsed = round(time.time() - start, 2)

    if not drained:
        raise LocalCommandError(
            f"error running command '{command}': cancelled. Output: {buffer.text()}",
            command=command,
            exit_status=rc,
            output=buffer.text(),
        )

    if rc != 0:
        raise LocalCommandError(
            f"error running command '{command}': exit status {rc}. Output: {buffer.text()}",
            command=command,
            exit_status=rc,
            output=buffer.text(),
        )

    log.debug("local command completed in %ss: %s", elapsed, command)


def run_local_many(ctx: ExecutionContext, output: OutputObserver, commands: Sequence[str]) -> None:
    """Run commands in order, stopping at the first failure."""
    for command in commands:
        run_local(ctx, output, command)
