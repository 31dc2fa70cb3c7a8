# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chefsolo/config/loader.py

import copy
import json
import logging
import os
import shutil
from pathlib import Path
from typing import List

import yaml
from pydantic import ValidationError

from chefsolo.errors import ConfigurationError, MalformedInputError
from .models import ProvisionRequest

log = logging.getLogger("chefsolo")


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Recursively merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        else:
            if value not in (None, ""):
                base[key] = value
    return base


def _find_secrets_file(config_path: Path) -> Path | None:
    """
    Locate secrets.yaml using this priority:

    1. CHEFSOLO_SECRETS_FILE environment variable (explicit override)
    2. secrets.yaml in the same directory as the config
    """
    env = os.environ.get("CHEFSOLO_SECRETS_FILE")
    if env:
        p = Path(env)
        if p.is_file():
            return p
        log.warning("CHEFSOLO_SECRETS_FILE=%s does not exist, skipping", env)
        return None

    p = config_path.parent / "secrets.yaml"
    if p.is_file():
        return p

    return None


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    try:
        raw = path.read_text()
    except OSError as exc:
        raise ConfigurationError(f"cannot read config file {path}: {exc}") from exc
    expanded = os.path.expandvars(raw)
    try:
        data = yaml.safe_load(expanded) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")
    return data


def _validate(data: dict, source: str) -> ProvisionRequest:
    try:
        return ProvisionRequest.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid provisioning config in {source}:\n{exc}") from exc


def load_requests(path: str | Path) -> List[ProvisionRequest]:
    """
    Load one or more provisioning requests from a YAML file.

    The file is either a single request mapping, or a fleet file::

        defaults:
          chef_module_path: ~/chef/module
          output_dir: /tmp/bundle
        instances:
          - instance_id: web-1
            target_node: '{"id": "web-1"}'
          - instance_id: web-2
            target_node: '{"id": "web-2"}'

    where every instance is deep-merged over ``defaults``. A secrets.yaml
    (see ``_find_secrets_file``) is deep-merged into the document before
    validation, so passwords and keys can stay out of the main file.
    """
    path = Path(path)
    data = _load_yaml(path)

    secrets_path = _find_secrets_file(path)
    if secrets_path:
        log.debug("Merging secrets from %s", secrets_path)
        _deep_merge(data, _load_yaml(secrets_path))

    if "instances" not in data:
        return [_validate(data, str(path))]

    defaults = data.get("defaults") or {}
    instances = data.get("instances") or []
    if not isinstance(instances, list) or not instances:
        raise ConfigurationError(f"{path}: 'instances' must be a non-empty list")

    requests = []
    for index, instance in enumerate(instances):
        if not isinstance(instance, dict):
            raise ConfigurationError(f"{path}: instances[{index}] must be a mapping")
        merged = _deep_merge(copy.deepcopy(defaults), instance)
        requests.append(_validate(merged, f"{path} instances[{index}]"))
    return requests


def parse_descriptor(text: str) -> dict:
    """Return the JSON object in *text* or raise MalformedInputError."""
    try:
        value = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise MalformedInputError(f"error unable to render json {text}: {exc}") from exc
    if not isinstance(value, dict):
        raise MalformedInputError(f"error unable to render json {text}: not a JSON object")
    return value


def node_id(text: str) -> str:
    """The ``id`` attribute of a node descriptor."""
    value = parse_descriptor(text).get("id")
    if not isinstance(value, str) or not value:
        raise MalformedInputError(f"node descriptor {text} has no string 'id'")
    return value


def configure_request(request: ProvisionRequest) -> ProvisionRequest:
    """
    Validate local inputs and prepare the output directory.

    - every node descriptor and the target node must be JSON objects
    - chef_module_path must exist and be readable
    - output_dir is wiped (when clean_output_dir) and recreated
    - ssl_verify_mode is written as a Ruby symbol
    """
    for node in request.nodes:
        node_id(node)
    parse_descriptor(request.target_node)

    module_path = request.chef_module_path.expanduser()
    if not module_path.exists():
        raise ConfigurationError(f"error expanding the chef module path {module_path}: does not exist")
    if not os.access(module_path, os.R_OK):
        raise ConfigurationError(f"error expanding the chef module path {module_path}: not readable")

    output_dir = request.output_dir.expanduser()
    try:
        if request.clean_output_dir and output_dir.exists():
            log.debug("Wiping output directory %s", output_dir)
            shutil.rmtree(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigurationError(f"error creating output directory {output_dir}: {exc}") from exc

    ssl_verify_mode = request.ssl_verify_mode
    if ssl_verify_mode and not ssl_verify_mode.startswith(":"):
        ssl_verify_mode = f":{ssl_verify_mode}"

    return request.model_copy(
        update={
            "chef_module_path": module_path,
            "output_dir": output_dir,
            "resources": [p.expanduser() for p in request.resources],
            "ssl_verify_mode": ssl_verify_mode,
        }
    )
