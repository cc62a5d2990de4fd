"""
Configuration loader (``garment_config.loader``).

Reads YAML files and turns them into ``ErpConfig``.  Callers normally go
through ``garment_config.get_active_config``; the functions here are the
building blocks and are used directly by tests.

Failure modes
-------------
* Missing file -> ``FileNotFoundError`` propagates.
* Malformed YAML -> ``ConfigurationError`` naming the file.
* Invalid values -> ``ConfigurationError`` from the schema.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from garment_kernel.exceptions import ConfigurationError
from garment_config.schema import ErpConfig

DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file and return the parsed mapping (empty file -> {})."""
    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"malformed YAML: {e}", source=str(path)) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError("top-level YAML value must be a mapping", source=str(path))
    return data


def merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursive dict merge; values in ``override`` win."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Path | None = None, overrides: Mapping[str, Any] | None = None) -> ErpConfig:
    """Defaults file, then ``path``, then ``overrides``, validated as ErpConfig."""
    data = load_yaml_file(DEFAULTS_FILE)
    if path is not None:
        data = merge(data, load_yaml_file(Path(path)))
    if overrides:
        data = merge(data, overrides)
    return ErpConfig.from_dict(data)
