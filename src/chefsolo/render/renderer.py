# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chefsolo/render/renderer.py

from __future__ import annotations

import os
import posixpath
import re
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from chefsolo.config.models import ProvisionRequest
from chefsolo.errors import ArtifactError, ConfigurationError
from chefsolo.observers.interface import OutputObserver

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

CLIENT_RB = "client.rb"
SERVICE_NAME = "chef-run.service"
WINDOWS_INSTALLER = "ChefClient.ps1"


def expand_env_vars(value: str) -> str:
    return re.sub(r"\$\{([^}^{]+)\}", lambda m: os.getenv(m.group(1), m.group(0)), value)


class TemplateRenderer:
    def __init__(self, templates_dir: Path = TEMPLATES_DIR):
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )

    def render(self, template_name: str, context: dict) -> str:
        expanded = {k: expand_env_vars(str(v)) if isinstance(v, str) else v for k, v in context.items()}
        try:
            tmpl = self.env.get_template(template_name)
            return tmpl.render(**expanded)
        except TemplateError as exc:
            raise ConfigurationError(f"error executing {template_name} template: {exc}") from exc

    # ------------------ remote configuration ------------------

    def client_config(self, request: ProvisionRequest, conf_dir: str) -> str:
        """client.rb for a chef-client run rooted at ``conf_dir``."""
        return self.render(
            f"{CLIENT_RB}.j2",
            {
                "http_proxy": request.http_proxy,
                "https_proxy": request.https_proxy,
                "no_proxy": list(request.no_proxy),
                "ssl_verify_mode": request.ssl_verify_mode,
                "disable_reporting": request.disable_reporting,
                "client_options": list(request.client_options),
                "use_policyfile": request.use_policyfile,
                "bundle_dir": posixpath.join(conf_dir, request.base_output_dir),
                "rubygems_url": request.rubygems_url or "",
            },
        )

    def service_unit(self, working_directory: str, chef_cmd: str, restart_policy: str = "on-failure") -> str:
        return self.render(
            f"{SERVICE_NAME}.j2",
            {
                "working_directory": working_directory,
                "chef_cmd": chef_cmd,
                "restart_policy": restart_policy,
            },
        )

    def windows_installer(self, request: ProvisionRequest) -> str:
        return self.render(
            f"{WINDOWS_INSTALLER}.j2",
            {
                "channel": request.channel,
                "version": request.version,
                "http_proxy": request.http_proxy,
                "no_proxy": list(request.no_proxy),
            },
        )


# ------------------ local artifacts ------------------

def write_if_absent(path: Path, data: str, output: OutputObserver) -> bool:
    """
    Write ``data`` to ``path`` unless the file already exists.

    Returns True when the file was written. Existing files are never
    touched, so re-runs against a shared output directory leave sibling
    node data byte-identical.
    """
    output.output(f"Looking for {path} existence")
    if path.exists():
        output.output("File already exist, not building it again")
        return False

    output.output(f"Writing {path}")
    try:
        # "x" fails if a concurrent run created the file in the meantime
        with path.open("x", encoding="utf-8") as f:
            f.write(data)
    except FileExistsError:
        output.output("File already exist, not building it again")
        return False
    except OSError as exc:
        raise ArtifactError(f"error creating file {path}: {exc}") from exc
    output.output(f"File written {path}")
    return True
