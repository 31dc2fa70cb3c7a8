# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chefsolo/__init__.py

from .config.loader import load_requests
from .config.models import ConnectionInfo, ProvisionRequest
from .provisioner.orchestrator import Provisioner, ProvisionState

__all__ = [
    "ConnectionInfo",
    "ProvisionRequest",
    "ProvisionState",
    "Provisioner",
    "load_requests",
]
