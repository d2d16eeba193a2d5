"""
Workflow configuration loading.

A workflow file may sit next to a ``base.yaml`` that provides shared
defaults; keys in the workflow file win. String values may reference
environment variables as ``${VAR}`` or ``${VAR:default}``.
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml

from modelflow.config.settings import WorkflowConfig
from modelflow.utils.logging import get_logger

log = get_logger(__name__)

ENV_REFERENCE = re.compile(r"\$\{(?P<name>[^}:]+)(?::(?P<default>[^}]*))?\}")

REQUIRED_KEYS = ("project", "data.source", "formula.outcome")

BASE_CONFIG_NAME = "base.yaml"


def expand_env(value: Any) -> Any:
    """Replace ``${VAR:default}`` references in all strings of a YAML tree."""
    if isinstance(value, str):
        return ENV_REFERENCE.sub(
            lambda m: os.environ.get(m["name"], m["default"] or ""), value
        )
    if isinstance(value, dict):
        return {key: expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env(item) for item in value]
    return value


def merge_configs(defaults: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Merge nested mappings; scalars and lists in ``overrides`` replace defaults."""
    merged = dict(defaults)
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_configs(current, value)
        else:
            merged[key] = value
    return merged


def read_yaml(path: Path) -> dict[str, Any]:
    """Parse a YAML mapping with environment references expanded."""
    content = yaml.safe_load(path.read_text(encoding="utf-8"))
    return expand_env(content) if content else {}


def _lookup(data: dict[str, Any], dotted: str) -> Any:
    node: Any = data
    for part in dotted.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(part)
    return node


def load_config(
    config_path: Path,
    base_path: Path | None = None,
) -> WorkflowConfig:
    """
    Load and validate a workflow configuration.

    Only ``project``, ``data.source`` and ``formula.outcome`` are required;
    everything else has defaults.

    Args:
        config_path: Workflow YAML file.
        base_path: Defaults file. A ``base.yaml`` beside ``config_path`` is
            used when omitted.

    Returns:
        Validated WorkflowConfig.

    Raises:
        FileNotFoundError: If the workflow file does not exist.
        ValueError: If a required key is missing or validation fails.
    """
    if not config_path.exists():
        msg = f"Config file not found: {config_path}"
        raise FileNotFoundError(msg)

    if base_path is None:
        sibling = config_path.parent / BASE_CONFIG_NAME
        if sibling.exists() and sibling.resolve() != config_path.resolve():
            base_path = sibling

    defaults = read_yaml(base_path) if base_path is not None else {}
    data = merge_configs(defaults, read_yaml(config_path))

    missing = [key for key in REQUIRED_KEYS if not _lookup(data, key)]
    if missing:
        msg = f"Config must specify {', '.join(repr(k) for k in missing)}"
        raise ValueError(msg)

    output = data.pop("output", None) or {}
    data["output"] = {"output_root": Path(output.get("root", "./output"))}

    log.debug(
        "Loaded configuration",
        path=str(config_path),
        base=str(base_path) if base_path else None,
    )
    return WorkflowConfig.model_validate(data)
