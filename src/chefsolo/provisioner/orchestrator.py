# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chefsolo/provisioner/orchestrator.py

from __future__ import annotations

import enum
import logging
import time
from typing import Callable, Optional

from chefsolo.bundle.coordinator import BundleCoordinator, LocalRunner
from chefsolo.config.loader import configure_request
from chefsolo.config.models import ProvisionRequest
from chefsolo.connection.base import TRANSPORT_ERRORS, Connection
from chefsolo.connection.manager import open_connection, open_session
from chefsolo.errors import ProvisionError
from chefsolo.observers.dispatcher import EventBus
from chefsolo.observers.events import (
    RunSummary,
    StageFailed,
    StageStarted,
    StageSucceeded,
    new_ctx,
)
from chefsolo.observers.interface import OutputObserver
from chefsolo.observers.output import InstanceLogFile, LoggerOutput, OutputFanout
from chefsolo.platform.strategy import OSStrategy, select_strategy
from chefsolo.runner.local import run_local
from chefsolo.runner.remote import RemoteRunner
from chefsolo.utils.execution import ExecutionContext

log = logging.getLogger("chefsolo")


class ProvisionState(str, enum.Enum):
    NEW = "New"
    CONFIGURED = "Configured"
    LOCAL_ARTIFACTS_PREPARED = "LocalArtifactsPrepared"
    MACHINE_PREPARED = "MachinePrepared"
    CLIENT_RAN = "ClientRan"
    DONE = "Done"


def default_output(request: ProvisionRequest) -> OutputObserver:
    sinks = [LoggerOutput(request.instance_id)]
    if request.log_to_file:
        sinks.append(InstanceLogFile(request.instance_id, request.log_dir))
    return OutputFanout(sinks)


class Provisioner:
    """
    One convergence run for one machine.

    Configured -> LocalArtifactsPrepared -> MachinePrepared -> ClientRan -> Done

    Each transition either succeeds or aborts the run; nothing is rolled
    back. Re-running is the recovery path: shared artifacts are only
    built once and never overwritten.
    """

    def __init__(
        self,
        request: ProvisionRequest,
        *,
        output: Optional[OutputObserver] = None,
        connection: Optional[Connection] = None,
        connection_factory: Callable[..., Connection] = open_connection,
        local_runner: LocalRunner = run_local,
        bus: Optional[EventBus] = None,
        run_id: Optional[str] = None,
        ctx: Optional[ExecutionContext] = None,
        connect_initial_delay: float = 1.0,
    ):
        self.request = request
        self.output = output or default_output(request)
        self.connection = connection
        self.connection_factory = connection_factory
        self.local_runner = local_runner
        self.bus = bus or EventBus()
        self.run_id = run_id
        self.ctx = ctx or ExecutionContext()
        self.connect_initial_delay = connect_initial_delay

        self.state = ProvisionState.NEW
        self.strategy: Optional[OSStrategy] = None
        self.use_sudo = False

    # ------------------ helpers ------------------

    def _event_ctx(self) -> dict:
        return new_ctx(self.request.instance_id, self.run_id)

    def _stage(self, target: ProvisionState, fn: Callable[[], None]) -> None:
        stage = target.value
        self.bus.emit(StageStarted(**self._event_ctx(), stage=stage))
        start = time.time()
        try:
            fn()
        except ProvisionError as exc:
            exc.stage = exc.stage or stage
            self.bus.emit(StageFailed(**self._event_ctx(), stage=stage, error=str(exc)))
            raise
        self.state = target
        self.bus.emit(
            StageSucceeded(
                **self._event_ctx(),
                stage=stage,
                duration_ms=int((time.time() - start) * 1000),
            )
        )

    # ------------------ stages ------------------

    def configure(self) -> None:
        """Validate the request and select the platform; no remote contact."""

        def _configure() -> None:
            request = configure_request(self.request)
            strategy = select_strategy(request.os_type, request.connection.type)
            use_sudo = request.use_sudo and strategy.supports_elevation
            strategy.validate(request, use_sudo)
            # transport settings are checked here, before the bundle is built
            connection = self.connection or self.connection_factory(request.connection)
            self.request, self.strategy, self.use_sudo = request, strategy, use_sudo
            self.connection = connection

        self._stage(ProvisionState.CONFIGURED, _configure)

    def _prepare_local(self) -> None:
        self.output.output("Creating configuration files...")
        BundleCoordinator(
            self.request,
            self.output,
            local_runner=self.local_runner,
            bus=self.bus,
            run_id=self.run_id,
        ).prepare(self.ctx)

    def _connect(self) -> RemoteRunner:
        self.connection = open_session(
            self.ctx, self.connection, self.output, initial_delay=self.connect_initial_delay
        )
        return RemoteRunner(self.connection, self.output, self.ctx, use_sudo=self.use_sudo)

    def _prepare_machine(self, runner: RemoteRunner) -> None:
        self.output.output("Preparing the machine...")
        self.output.output("Uploading config files")
        self.strategy.upload_config_files(runner, self.request)
        if not self.request.skip_install:
            self.output.output("Installing chef client")
            self.strategy.install_client(runner, self.request)

    def _run_client(self, runner: RemoteRunner) -> None:
        self.output.output("Starting initial Chef-Client run...")
        client_cmd = self.strategy.client_command(self.request)
        if self.request.install_as_service:
            self.strategy.install_service(runner, self.request, client_cmd)
        runner.run(self.strategy.run_command(self.request))

    def run(self) -> None:
        """Run every stage after configure(); closes the session at the end."""
        if self.state is not ProvisionState.CONFIGURED:
            raise RuntimeError(f"run() needs a configured provisioner, state is {self.state.value}")

        runner: Optional[RemoteRunner] = None

        def _machine() -> None:
            nonlocal runner
            runner = self._connect()
            self._prepare_machine(runner)

        try:
            self._stage(ProvisionState.LOCAL_ARTIFACTS_PREPARED, self._prepare_local)
            self._stage(ProvisionState.MACHINE_PREPARED, _machine)
            self._stage(ProvisionState.CLIENT_RAN, lambda: self._run_client(runner))
        finally:
            if runner is not None and not self.ctx.cancelled:
                try:
                    self.connection.disconnect()
                except TRANSPORT_ERRORS as exc:
                    log.warning("error while disconnecting: %s", exc)
            self.ctx.finish()

        self.state = ProvisionState.DONE

    def apply(self) -> None:
        """configure() then run(), emitting a RunSummary either way."""
        try:
            self.configure()
            self.run()
        except ProvisionError as exc:
            status = "CANCELLED" if self.ctx.cancelled else "FAILED"
            self.bus.emit(RunSummary(**self._event_ctx(), status=status, error=str(exc)))
            raise
        self.bus.emit(RunSummary(**self._event_ctx(), status=ProvisionState.DONE.name))
