# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chefsolo/connection/ssh.py

from __future__ import annotations

import logging
import posixpath
from pathlib import Path
from typing import Optional

import paramiko

from chefsolo.config.models import ConnectionInfo
from .base import RemoteProcess

log = logging.getLogger("chefsolo")


def load_private_key(path: Path) -> paramiko.PKey:
    """Try the key formats paramiko supports, most modern first."""
    last_exc: Optional[Exception] = None
    for key_cls in (
        paramiko.Ed25519Key,
        paramiko.RSAKey,
        paramiko.ECDSAKey,
    ):
        try:
            return key_cls.from_private_key_file(str(path))
        except paramiko.SSHException as exc:
            last_exc = exc
            continue
    raise paramiko.SSHException(f"Unsupported private key format for {path}: {last_exc}")


class SSHConnection:
    """paramiko-backed Connection for linux targets."""

    def __init__(self, info: ConnectionInfo, *, connect_timeout: float = 20.0):
        if not info.host:
            raise ValueError("ssh connection needs a host")
        self.info = info
        self.timeout = info.timeout
        self.connect_timeout = connect_timeout
        self.client: Optional[paramiko.SSHClient] = None

    # ------------------ session ------------------

    def connect(self) -> None:
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        pkey = load_private_key(self.info.private_key) if self.info.private_key else None

        try:
            client.connect(
                hostname=self.info.host,
                port=self.info.port or 22,
                username=self.info.user,
                password=self.info.password if not pkey else None,
                pkey=pkey,
                timeout=self.connect_timeout,
                allow_agent=pkey is None,
                look_for_keys=pkey is None,
            )
        except Exception:
            client.close()
            raise

        log.debug("ssh connected to %s@%s", self.info.user, self.info.host)
        self.client = client

    def disconnect(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None

    def _require_client(self) -> paramiko.SSHClient:
        if self.client is None:
            raise paramiko.SSHException("ssh session is not connected")
        return self.client

    # ------------------ commands ------------------

    def start(self, command: str) -> RemoteProcess:
        transport = self._require_client().get_transport()
        if transport is None or not transport.is_active():
            raise paramiko.SSHException("ssh transport is not active")
        channel = transport.open_session()
        channel.set_combine_stderr(True)
        channel.exec_command(command)
        return RemoteProcess(stream=channel.makefile("rb"), wait=channel.recv_exit_status)

    # ------------------ uploads ------------------

    def upload(self, remote_path: str, content: str) -> None:
        sftp = self._require_client().open_sftp()
        try:
            with sftp.open(remote_path, "w") as f:
                f.write(content)
        finally:
            sftp.close()

    def upload_dir(self, remote_dir: str, local_dir: Path) -> None:
        """
        Recursively upload a directory to the remote host using SFTP.
        """
        sftp = self._require_client().open_sftp()
        try:
            self._put_dir_recursive(sftp, local_dir, posixpath.join(remote_dir, local_dir.name))
        finally:
            sftp.close()

    def _put_dir_recursive(self, sftp: paramiko.SFTPClient, local: Path, remote: str) -> None:
        try:
            sftp.mkdir(remote)
        except IOError:
            pass  # already exists

        for item in sorted(local.iterdir()):
            rpath = posixpath.join(remote, item.name)
            if item.is_dir():
                self._put_dir_recursive(sftp, item, rpath)
            else:
                sftp.put(str(item), rpath)
