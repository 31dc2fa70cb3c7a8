# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chefsolo/bundle/layout.py

from dataclasses import dataclass
from pathlib import Path

MARKER_FILE = "bundle-done"
BUILD_LOCK_FILE = "chef-solo.lock"
NODES_DIR = "nodes"
NODES_LOCK_FILE = "nodes.lock"
DNA_DIR = "dna"


@dataclass(frozen=True)
class OutputLayout:
    """
    Files shared by every run that targets the same output directory.

    The marker's presence is the only signal that the bundle step
    completed; the lock file alone says nothing about success.
    """

    root: Path

    @property
    def marker(self) -> Path:
        return self.root / MARKER_FILE

    @property
    def build_lock(self) -> Path:
        return self.root / BUILD_LOCK_FILE

    @property
    def nodes_dir(self) -> Path:
        return self.root / NODES_DIR

    @property
    def nodes_lock(self) -> Path:
        return self.nodes_dir / NODES_LOCK_FILE

    @property
    def dna_dir(self) -> Path:
        return self.root / DNA_DIR

    def node_file(self, node_id: str) -> Path:
        return self.nodes_dir / f"{node_id}.json"

    def dna_file(self, instance_id: str) -> Path:
        return self.dna_dir / f"{instance_id}.json"

    def bundle_done(self) -> bool:
        return self.marker.exists()
