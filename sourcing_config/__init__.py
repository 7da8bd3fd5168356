"""
sourcing_config -- single public entrypoint for sourcing configuration.

Responsibility:
    ``get_active_config()`` is the only way services obtain configuration.
    It loads a YAML configuration set (``sets/default.yaml`` unless a path is
    given) and returns a frozen ``SourcingConfig``.

Architecture position:
    Configuration -- sits above ``sourcing_kernel`` and below
    ``sourcing_modules`` / ``sourcing_services``.  The kernel never imports
    from this package.

Audit relevance:
    Every successful call emits a ``sourcing_config_loaded`` log entry with
    the source path, config id, version and checksum.
"""

from __future__ import annotations

from pathlib import Path

from sourcing_config.loader import compute_checksum, load_config_set
from sourcing_config.schema import DefaultCriteriaWeights, SourcingConfig
from sourcing_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | str | None = None) -> SourcingConfig:
    """Load and return the active sourcing configuration."""
    source = Path(path) if path is not None else _DEFAULT_CONFIG_PATH
    config, raw = load_config_set(source)
    _logger.info(
        "sourcing_config_loaded",
        extra={
            "source": str(source),
            "config_id": raw.get("config_id"),
            "version": raw.get("version"),
            "checksum": compute_checksum(raw),
            "auto_transition_mode": config.auto_transition_mode,
        },
    )
    return config


__all__ = [
    "DefaultCriteriaWeights",
    "SourcingConfig",
    "get_active_config",
]
