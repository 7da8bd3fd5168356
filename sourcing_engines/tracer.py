"""
sourcing_engines.tracer -- Engine invocation tracer emitting SOURCING_ENGINE_TRACE.

Responsibility:
    Provide a lightweight decorator (``@traced_engine``) that wraps pure
    engine calls with one structured log record: engine name, engine version,
    a deterministic input fingerprint and the call duration.

Architecture position:
    Engines -- infrastructure support for the pure calculation layer.
    Emits a log record only; engines stay free of I/O.

Invariants enforced:
    - Fingerprints are deterministic: values are canonicalized (dict keys
      sorted, Decimals and UUIDs rendered with ``str``) and hashed with
      SHA-256, truncated to 16 hex chars.
    - The decorator never mutates arguments or results.

Usage:
    from sourcing_engines.tracer import traced_engine

    @traced_engine("savings", "1.0", fingerprint_fields=("estimated_budget",))
    def compute_savings(estimated_budget, actual_award_amount):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import time
from collections.abc import Callable
from typing import Any

from sourcing_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")


def _canonicalize(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: dict[str, Any],
) -> str:
    """SHA-256 prefix over the selected arguments; missing ones hash as "null"."""
    parts = [f"{name}={_canonicalize(arguments.get(name))}" for name in fingerprint_fields]
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits SOURCING_ENGINE_TRACE for each engine call."""

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = ""
            if fingerprint_fields:
                bound = signature.bind_partial(*args, **kwargs)
                fp = compute_input_fingerprint(fingerprint_fields, dict(bound.arguments))

            t0 = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - t0) * 1000, 2)

            _logger.debug(
                "SOURCING_ENGINE_TRACE",
                extra={
                    "trace_type": "SOURCING_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fp,
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
