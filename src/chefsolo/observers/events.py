# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chefsolo/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str            # ISO timestamp
    run_id: str        # correlates all events in a single invocation
    instance_id: str   # machine being provisioned

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(instance_id: str, run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
        "instance_id": instance_id,
    }


# ---------------------------------------------------------------------
# Stage lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class StageStarted(BaseEvent):
    stage: str

@dataclass(frozen=True)
class StageSucceeded(BaseEvent):
    stage: str
    duration_ms: int

@dataclass(frozen=True)
class StageFailed(BaseEvent):
    stage: str
    error: str


# ---------------------------------------------------------------------
# Bundle coordination
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BundleBuilt(BaseEvent):
    output_dir: str
    duration_ms: int

@dataclass(frozen=True)
class BundleAwaited(BaseEvent):
    output_dir: str
    waited_s: float


# ---------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class RunSummary(BaseEvent):
    status: str        # "DONE" | "FAILED" | "CANCELLED"
    error: Optional[str] = None
