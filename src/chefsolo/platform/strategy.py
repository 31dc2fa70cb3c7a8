# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chefsolo/platform/strategy.py

from __future__ import annotations

import logging
import posixpath
from abc import ABC, abstractmethod
from typing import List, Optional

from chefsolo.config.models import ProvisionRequest
from chefsolo.errors import ConfigurationError
from chefsolo.render.renderer import CLIENT_RB, SERVICE_NAME, WINDOWS_INSTALLER, TemplateRenderer
from chefsolo.runner.remote import RemoteRunner

log = logging.getLogger("chefsolo")

LINUX = "linux"
WINDOWS = "windows"

LINUX_CONF_DIR = "/opt/chef/0"
LINUX_CHEF_CMD = "/opt/chef/embedded/bin/ruby --disable-gems /usr/bin/chef-client"
INSTALL_URL = "https://omnitruck.chef.io/install.sh"
SERVICE_PATH = "/etc/systemd/system/"
CHMOD_FILES = "find {path} -maxdepth 1 -type f -exec /bin/chmod -R {mode} {{}} +"

WINDOWS_CONF_DIR = "C:/chef"
WINDOWS_CHEF_CMD = "cmd /c chef-client"
WINDOWS_SCRIPT_DIR = "C:/Windows/Temp"


def _quote(value: str) -> str:
    return f'"{value}"'


class OSStrategy(ABC):
    """
    Per-platform commands and file layout.

    Exactly two implementations exist; pick one with ``select_strategy``.
    Command builders are pure; the ``upload_config_files`` /
    ``install_client`` / ``install_service`` steps drive a RemoteRunner
    through them.
    """

    name: str
    conf_dir: str
    chef_cmd: str
    supports_elevation: bool = True

    def __init__(self, renderer: Optional[TemplateRenderer] = None):
        self.renderer = renderer or TemplateRenderer()

    # ------------------ layout ------------------

    def bundle_dir(self, request: ProvisionRequest) -> str:
        return posixpath.join(self.conf_dir, request.base_output_dir)

    def dna_path(self, request: ProvisionRequest) -> str:
        return posixpath.join(self.bundle_dir(request), "dna", f"{request.instance_id}.json")

    # ------------------ client invocation ------------------

    def client_command(self, request: ProvisionRequest) -> str:
        """chef-client invocation in environment or policy mode."""
        cmd = "{} -z -c {} -j {}".format(
            self.chef_cmd,
            posixpath.join(self.conf_dir, CLIENT_RB),
            _quote(self.dna_path(request)),
        )
        if request.use_policyfile:
            if request.named_run_list:
                cmd = f"{cmd} -n {_quote(request.named_run_list)}"
        else:
            cmd = f"{cmd} -E {_quote(request.environment)}"
        return cmd

    def run_command(self, request: ProvisionRequest) -> str:
        return f"cd {self.bundle_dir(request)} && {self.client_command(request)}"

    # ------------------ validation ------------------

    def validate(self, request: ProvisionRequest, use_sudo: bool) -> None:
        if request.install_as_service and not use_sudo:
            raise ConfigurationError(
                "you need to use the option use_sudo to install chef as a service"
            )

    # ------------------ steps ------------------

    @abstractmethod
    def upload_config_files(self, runner: RemoteRunner, request: ProvisionRequest) -> None: ...

    @abstractmethod
    def install_client(self, runner: RemoteRunner, request: ProvisionRequest) -> None: ...

    @abstractmethod
    def install_service(self, runner: RemoteRunner, request: ProvisionRequest, chef_cmd: str) -> None: ...

    def _upload_bundle(self, runner: RemoteRunner, request: ProvisionRequest) -> None:
        runner.output.output("Uploading client conf")
        runner.upload(
            posixpath.join(self.conf_dir, CLIENT_RB),
            self.renderer.client_config(request, self.conf_dir),
        )

        runner.output.output(f"Deploying {self.bundle_dir(request)}")
        self._upload_directory(runner, request.output_dir, self.conf_dir)
        for resource in request.resources:
            self._upload_directory(runner, resource, self.bundle_dir(request))

    @staticmethod
    def _upload_directory(runner: RemoteRunner, src, dest: str) -> None:
        if not src.is_dir():
            runner.output.output(f"Warning: {src} does not exist, uploading nothing.")
            return
        runner.upload_dir(dest, src)


class LinuxStrategy(OSStrategy):
    name = LINUX
    conf_dir = LINUX_CONF_DIR
    chef_cmd = LINUX_CHEF_CMD

    def pre_upload_commands(self, directory: str, use_sudo: bool) -> List[str]:
        commands = [f"mkdir -p {directory}"]
        # make sure we have enough rights to upload the files when using sudo
        if use_sudo:
            commands.append(f"chmod -R 777 {directory}")
        return commands

    def post_upload_commands(self, directory: str, use_sudo: bool) -> List[str]:
        if not use_sudo:
            return []
        return [
            f"chmod -R 755 {directory}",
            CHMOD_FILES.format(path=directory, mode=600),
            f"chown -R root.root {directory}",
        ]

    @staticmethod
    def proxy_prefix(request: ProvisionRequest) -> str:
        prefix = ""
        if request.http_proxy:
            prefix += f"http_proxy='{request.http_proxy}' "
        if request.https_proxy:
            prefix += f"https_proxy='{request.https_proxy}' "
        if request.no_proxy:
            prefix += f"no_proxy='{','.join(request.no_proxy)}' "
        return prefix

    def install_commands(self, request: ProvisionRequest) -> List[str]:
        prefix = self.proxy_prefix(request)
        install = f"{prefix}bash ./install.sh"
        if request.version:
            install += f" -v {_quote(request.version)}"
        install += f" -c {request.channel}"
        return [
            f"{prefix}curl -LO {INSTALL_URL}",
            install,
            f"{prefix}rm -f install.sh",
        ]

    def service_commands(self, staged_unit: str) -> List[str]:
        return [
            CHMOD_FILES.format(path=staged_unit, mode=755),
            f"mv {staged_unit} {posixpath.join(SERVICE_PATH, SERVICE_NAME)}",
            "systemctl daemon-reload",
            f"systemctl enable {SERVICE_NAME}",
        ]

    def upload_config_files(self, runner: RemoteRunner, request: ProvisionRequest) -> None:
        runner.run_many(self.pre_upload_commands(self.conf_dir, runner.use_sudo))
        self._upload_bundle(runner, request)
        runner.run_many(self.post_upload_commands(self.conf_dir, runner.use_sudo))

    def install_client(self, runner: RemoteRunner, request: ProvisionRequest) -> None:
        runner.run_many(self.install_commands(request))

    def install_service(self, runner: RemoteRunner, request: ProvisionRequest, chef_cmd: str) -> None:
        if not runner.use_sudo:
            raise ConfigurationError("you need to use the option use_sudo to install chef as a service")
        staged = posixpath.join("/tmp", SERVICE_NAME)
        unit = self.renderer.service_unit(self.bundle_dir(request), chef_cmd)
        runner.output.output(f"Installing {SERVICE_NAME}")
        runner.upload(staged, unit)
        runner.run_many(self.service_commands(staged))


class WindowsStrategy(OSStrategy):
    name = WINDOWS
    conf_dir = WINDOWS_CONF_DIR
    chef_cmd = WINDOWS_CHEF_CMD
    supports_elevation = False

    def validate(self, request: ProvisionRequest, use_sudo: bool) -> None:
        if request.install_as_service:
            raise ConfigurationError("installing chef as a service is not supported on windows")

    def pre_upload_commands(self, directory: str) -> List[str]:
        return [f"cmd /c if not exist {_quote(directory)} mkdir {_quote(directory)}"]

    def install_commands(self, script: str) -> List[str]:
        return [
            f"powershell -NoProfile -ExecutionPolicy Bypass -File {script}",
            f"cmd /c del /f {_quote(script)}",
        ]

    def upload_config_files(self, runner: RemoteRunner, request: ProvisionRequest) -> None:
        runner.run_many(self.pre_upload_commands(self.conf_dir))
        self._upload_bundle(runner, request)

    def install_client(self, runner: RemoteRunner, request: ProvisionRequest) -> None:
        script = posixpath.join(WINDOWS_SCRIPT_DIR, WINDOWS_INSTALLER)
        runner.upload(script, self.renderer.windows_installer(request))
        runner.run_many(self.install_commands(script))

    def install_service(self, runner: RemoteRunner, request: ProvisionRequest, chef_cmd: str) -> None:
        raise ConfigurationError("installing chef as a service is not supported on windows")


_STRATEGIES = {
    LINUX: LinuxStrategy,
    WINDOWS: WindowsStrategy,
}


def infer_os_type(transport: Optional[str]) -> str:
    """ssh (the default transport) means linux, winrm means windows."""
    if transport in ("ssh", "", None):
        return LINUX
    if transport == "winrm":
        return WINDOWS
    raise ConfigurationError(f"unsupported connection type: {transport}")


def select_strategy(
    os_type: Optional[str],
    transport: Optional[str],
    renderer: Optional[TemplateRenderer] = None,
) -> OSStrategy:
    os_type = os_type or infer_os_type(transport)
    try:
        strategy_cls = _STRATEGIES[os_type]
    except KeyError:
        raise ConfigurationError(f"unsupported os type: {os_type}") from None
    log.debug("selected %s strategy (transport=%s)", os_type, transport)
    return strategy_cls(renderer)
