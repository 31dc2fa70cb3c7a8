# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chefsolo/bundle/coordinator.py

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from chefsolo.config.loader import node_id, parse_descriptor
from chefsolo.config.models import ProvisionRequest
from chefsolo.errors import ArtifactError, CoordinationTimeoutError
from chefsolo.observers.dispatcher import EventBus
from chefsolo.observers.events import BundleAwaited, BundleBuilt, new_ctx
from chefsolo.observers.interface import OutputObserver
from chefsolo.render.renderer import write_if_absent
from chefsolo.runner.local import run_local
from chefsolo.utils.execution import ExecutionContext
from .layout import OutputLayout
from .lock import FileLock

log = logging.getLogger("chefsolo")

LocalRunner = Callable[[ExecutionContext, OutputObserver, str], None]


def bundle_commands(request: ProvisionRequest) -> List[str]:
    """Commands that vendor cookbooks (or export a policy) into the output dir."""
    prefix = request.bundle_prefix
    module = request.chef_module_path
    out = request.output_dir
    if request.use_policyfile:
        return [
            f"{prefix} chef install {module}/Policyfile.rb",
            f"{prefix} chef export --force {module}/Policyfile.rb {out}",
        ]
    return [f'{prefix} berks vendor -b="{module}/Berksfile" {out}']


class BundleCoordinator:
    """
    Builds the shared bundle at most once per output directory.

    The run that wins the build lock vendors the bundle, writes the node
    files and drops the marker. Every other run waits for the marker with
    exponential backoff and gives up once the next wait would reach the
    ceiling. Each run then writes its own DNA file.
    """

    def __init__(
        self,
        request: ProvisionRequest,
        output: OutputObserver,
        *,
        local_runner: LocalRunner = run_local,
        bus: Optional[EventBus] = None,
        run_id: Optional[str] = None,
        sleep: Optional[Callable[[float], Optional[bool]]] = None,
    ):
        self.request = request
        self.output = output
        self.layout = OutputLayout(request.output_dir)
        self.local_runner = local_runner
        self.bus = bus or EventBus()
        self.run_id = run_id
        self.sleep = sleep

    # ------------------ protocol ------------------

    def prepare(self, ctx: ExecutionContext) -> None:
        lock = FileLock(self.layout.build_lock)
        if lock.try_acquire():
            try:
                if self.layout.bundle_done():
                    self.output.output("Bundle already built, skipping")
                else:
                    self._build(ctx)
            finally:
                lock.release()
        else:
            self.wait_for_bundle(ctx)

        self.output.output(f"Bundling dna file {self.request.instance_id}")
        self.build_dna()

    def _build(self, ctx: ExecutionContext) -> None:
        start = time.time()
        for command in bundle_commands(self.request):
            self.local_runner(ctx, self.output, command)
        self.build_node_files()
        try:
            self.layout.marker.touch()
        except OSError as exc:
            raise ArtifactError(f"error creating bundle marker {self.layout.marker}: {exc}") from exc

        duration_ms = int((time.time() - start) * 1000)
        log.info("bundle built in %sms at %s", duration_ms, self.layout.root)
        self.bus.emit(
            BundleBuilt(
                **new_ctx(self.request.instance_id, self.run_id),
                output_dir=str(self.layout.root),
                duration_ms=duration_ms,
            )
        )

    def wait_for_bundle(self, ctx: ExecutionContext) -> None:
        """
        Poll for the marker; raise CoordinationTimeoutError if it never shows.

        Sleeps with ``ctx.sleep`` unless a sleep function was injected, so a
        cancelled run stops waiting at once.
        """
        sleep = self.sleep or ctx.sleep
        initial = self.request.bundle_wait_initial
        ceiling = self.request.bundle_wait_ceiling
        self.output.output("Bundle is being built by another run, waiting")

        waited = 0.0
        ttw = initial
        while not self.layout.bundle_done() and ttw < ceiling:
            if sleep(ttw):
                raise CoordinationTimeoutError(
                    f"stopped waiting for the bundle in {self.layout.root}: {ctx.reason}"
                )
            waited += ttw
            ttw *= 2

        if not self.layout.bundle_done():
            raise CoordinationTimeoutError(
                f"bundle seems stuck, stopping it (no {self.layout.marker} after {waited:g}s)"
            )

        self.bus.emit(
            BundleAwaited(
                **new_ctx(self.request.instance_id, self.run_id),
                output_dir=str(self.layout.root),
                waited_s=waited,
            )
        )

    # ------------------ artifacts ------------------

    def build_node_files(self) -> None:
        try:
            self.layout.nodes_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ArtifactError(f"error creating node directory for output dir: {exc}") from exc

        lock = FileLock(self.layout.nodes_lock)
        if not lock.try_acquire():
            self.output.output("Node list is being written by another run, skipping")
            return
        try:
            for node in self.request.nodes:
                write_if_absent(self.layout.node_file(node_id(node)), node, self.output)
        finally:
            lock.release()

    def build_dna(self) -> None:
        try:
            self.layout.dna_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ArtifactError(f"error creating dna directory for output dir: {exc}") from exc

        parse_descriptor(self.request.target_node)
        write_if_absent(
            self.layout.dna_file(self.request.instance_id),
            self.request.target_node,
            self.output,
        )
