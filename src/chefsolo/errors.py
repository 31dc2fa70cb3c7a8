# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chefsolo/errors.py

from __future__ import annotations

from typing import Optional


class ProvisionError(RuntimeError):
    """Base class for provisioning failures.

    ``stage`` is filled in by the orchestrator with the name of the
    state transition that failed, so the final message always says where
    the run stopped.
    """

    def __init__(self, message: str, *, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class ConfigurationError(ProvisionError):
    """Invalid or unsupported request; raised before any remote interaction."""


class MalformedInputError(ConfigurationError):
    """A node or target descriptor is not a well-formed JSON object."""


class CoordinationTimeoutError(ProvisionError):
    """The shared bundle never completed within the wait ceiling."""


class RemoteConnectionError(ProvisionError):
    """No session could be established within the connection timeout."""


class ArtifactError(ProvisionError):
    """A local artifact (node file, DNA file, marker) could not be written."""


class CommandError(ProvisionError):
    """A command exited non-zero or could not be started."""

    def __init__(
        self,
        message: str,
        *,
        command: str,
        exit_status: Optional[int] = None,
        output: str = "",
        stage: Optional[str] = None,
    ):
        super().__init__(message, stage=stage)
        self.command = command
        self.exit_status = exit_status
        self.output = output


class RemoteCommandError(CommandError):
    pass


class LocalCommandError(CommandError):
    pass
