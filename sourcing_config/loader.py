"""
Configuration Loader (``sourcing_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses its ``sourcing`` section into a
``SourcingConfig``.  Runtime callers go through
``sourcing_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or bad values  -> ``ValueError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from sourcing_config.schema import SourcingConfig


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_sourcing_config(data: dict[str, Any]) -> SourcingConfig:
    """Parse the ``sourcing`` section of a configuration set."""
    section = data.get("sourcing")
    if section is None:
        return SourcingConfig()
    if not isinstance(section, dict):
        raise ValueError("'sourcing' section must be a mapping")
    return SourcingConfig.from_dict(section)


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of a parsed configuration set."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def load_config_set(path: Path) -> tuple[SourcingConfig, dict[str, Any]]:
    """Load ``path`` and return the parsed config plus the raw document."""
    raw = load_yaml_file(path)
    return parse_sourcing_config(raw), raw
