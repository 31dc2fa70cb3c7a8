# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chefsolo/connection/manager.py

from __future__ import annotations

import logging
import threading

from chefsolo.config.models import ConnectionInfo
from chefsolo.errors import ConfigurationError, RemoteConnectionError
from chefsolo.observers.interface import OutputObserver
from chefsolo.utils.execution import ExecutionContext
from chefsolo.utils.retry import RetryError, retry_until
from .base import TRANSPORT_ERRORS, Connection
from .ssh import SSHConnection

log = logging.getLogger("chefsolo")


def open_connection(info: ConnectionInfo) -> Connection:
    """Build the transport for ``info.type``."""
    if info.type in ("ssh", ""):
        if not info.host:
            raise ConfigurationError("ssh connection requires 'connection.host'")
        return SSHConnection(info)
    if info.type == "winrm":
        raise ConfigurationError(
            "no built-in winrm transport; pass a Connection to the Provisioner"
        )
    raise ConfigurationError(f"unsupported connection type: {info.type}")


def _disconnect_on_cancel(ctx: ExecutionContext, connection: Connection) -> None:
    ctx.wait()
    if ctx.cancelled:
        log.debug("run cancelled (%s), disconnecting", ctx.reason)
        try:
            connection.disconnect()
        except TRANSPORT_ERRORS as exc:
            log.warning("error while disconnecting: %s", exc)


def open_session(
    ctx: ExecutionContext,
    connection: Connection,
    output: OutputObserver,
    *,
    initial_delay: float = 1.0,
) -> Connection:
    """
    Connect, retrying within ``connection.timeout`` and never past ctx.

    Once connected a watcher thread disconnects the session if ctx is
    cancelled; on normal completion the caller disconnects it.
    """

    def on_retry(attempt: int, exc: Exception) -> None:
        output.output(f"Connection attempt {attempt} failed: {exc}")

    output.output("Connecting to remote host...")
    try:
        retry_until(
            connection.connect,
            timeout=connection.timeout,
            ctx=ctx,
            initial_delay=initial_delay,
            retry_on=TRANSPORT_ERRORS,
            on_retry=on_retry,
        )
    except RetryError as exc:
        cause = exc.__cause__
        raise RemoteConnectionError(
            f"unable to connect after {exc.attempts} attempts: {cause}"
        ) from cause

    if ctx.ended:
        connection.disconnect()
        raise RemoteConnectionError(f"run ended while connecting ({ctx.reason})")

    threading.Thread(
        target=_disconnect_on_cancel,
        args=(ctx, connection),
        name="session-watcher",
        daemon=True,
    ).start()
    output.output("Connected!")
    return connection
