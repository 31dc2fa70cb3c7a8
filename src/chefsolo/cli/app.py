# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chefsolo/cli/app.py
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import List, Optional

import typer

from chefsolo.config.loader import load_requests, parse_descriptor, node_id
from chefsolo.config.models import ProvisionRequest
from chefsolo.connection.manager import open_connection
from chefsolo.errors import ProvisionError
from chefsolo.logging.log import init_logging
from chefsolo.observers.dispatcher import EventBus
from chefsolo.observers.jsonfile import JsonFileObserver
from chefsolo.observers.logger import LoggerObserver
from chefsolo.platform.strategy import select_strategy
from chefsolo.provisioner.orchestrator import Provisioner


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Provision machines with chef-client in local mode")


def _load_all(configs: List[Path]) -> List[ProvisionRequest]:
    requests: List[ProvisionRequest] = []
    for path in configs:
        requests.extend(load_requests(path))
    return requests


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command()
def apply(
    configs: List[Path] = typer.Argument(..., help="Provisioning config file(s)"),
    parallel: int = typer.Option(1, "--parallel", "-p", min=1, help="Runs executed concurrently"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug output on the console"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", help="Directory for the run log"),
    events_file: Optional[Path] = typer.Option(None, "--events-file", help="Write lifecycle events as JSON lines"),
):
    """
    Bundle the chef module once, then converge every instance.

    All requests are configured first (this wipes their output
    directories), then run with up to --parallel concurrent runs sharing
    the bundle.
    """
    logger, run_id, _ = init_logging(base_dir=log_dir, verbose=verbose)

    observers = [LoggerObserver(logger)]
    if events_file:
        observers.append(JsonFileObserver(events_file))
    bus = EventBus(observers=observers)

    try:
        requests = _load_all(configs)
    except ProvisionError as exc:
        logger.error("%s", exc)
        raise typer.Exit(code=1)

    provisioners = [Provisioner(r, bus=bus, run_id=run_id) for r in requests]

    try:
        for p in provisioners:
            p.configure()
    except ProvisionError as exc:
        logger.error("%s: %s", p.request.instance_id, exc)
        raise typer.Exit(code=1)

    failures = 0
    pool = ThreadPoolExecutor(max_workers=parallel, thread_name_prefix="provision")
    try:
        futures = {pool.submit(p.run): p for p in provisioners}
        for future in as_completed(futures):
            p = futures[future]
            try:
                future.result()
                logger.info("%s: done", p.request.instance_id)
            except ProvisionError as exc:
                failures += 1
                logger.error("%s: %s", p.request.instance_id, exc)
    except KeyboardInterrupt:
        # cancel before joining the workers, otherwise they run to completion
        for p in provisioners:
            p.ctx.cancel("interrupted")
        logger.error("interrupted, cancelling runs")
        pool.shutdown(wait=False, cancel_futures=True)
        raise typer.Exit(code=130)
    pool.shutdown()

    logger.info("OK=%d FAILED=%d", len(provisioners) - failures, failures)
    if failures:
        raise typer.Exit(code=1)


@app.command()
def validate(
    configs: List[Path] = typer.Argument(..., help="Provisioning config file(s)"),
):
    """
    Check config files without touching the output directory or the network.
    """
    try:
        for request in _load_all(configs):
            for node in request.nodes:
                node_id(node)
            parse_descriptor(request.target_node)
            strategy = select_strategy(request.os_type, request.connection.type)
            strategy.validate(request, request.use_sudo and strategy.supports_elevation)
            open_connection(request.connection)
            typer.echo(f"{request.instance_id}: ok ({strategy.name})")
    except ProvisionError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
