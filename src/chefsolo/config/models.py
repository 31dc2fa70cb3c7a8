# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chefsolo/config/models.py

from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_ENVIRONMENT = "_default"


class ConnectionInfo(BaseModel):
    """How to reach the target machine."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: str = "ssh"                    # ssh | winrm
    host: Optional[str] = None
    port: Optional[int] = None
    user: str = "root"
    password: Optional[str] = None
    private_key: Optional[Path] = None
    timeout: float = 300.0               # retry budget for connect, seconds


class ProvisionRequest(BaseModel):
    """
    Immutable description of one provisioning run.

    Built once from the config file; ``configure_request`` returns the
    resolved copy (expanded paths, normalized values) that the rest of
    the run works with.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Identity and local inputs
    instance_id: str
    chef_module_path: Path
    output_dir: Path
    nodes: List[str]                     # JSON documents, one per known node
    target_node: str                     # JSON document for this instance

    # Platform and privileges
    os_type: Optional[Literal["linux", "windows"]] = None
    use_sudo: bool = False
    install_as_service: bool = False
    skip_install: bool = False

    # Client install pins
    version: str = ""
    channel: str = "stable"

    # Run selection
    environment: str = DEFAULT_ENVIRONMENT
    use_policyfile: bool = False
    named_run_list: str = ""

    # client.rb
    http_proxy: str = ""
    https_proxy: str = ""
    no_proxy: List[str] = Field(default_factory=list)
    ssl_verify_mode: str = ""
    client_options: List[str] = Field(default_factory=list)
    disable_reporting: bool = False
    rubygems_url: Optional[str] = None

    # Extra local directories shipped next to the bundle
    resources: List[Path] = Field(default_factory=list)

    # Per-instance log file
    log_to_file: bool = False
    log_dir: Path = Path("logfiles")

    # Bundle step
    bundle_prefix: str = "bundle exec"
    bundle_wait_initial: float = 2.0
    bundle_wait_ceiling: float = 5.0
    clean_output_dir: bool = True

    connection: ConnectionInfo = Field(default_factory=ConnectionInfo)

    @property
    def base_output_dir(self) -> str:
        return self.output_dir.name
