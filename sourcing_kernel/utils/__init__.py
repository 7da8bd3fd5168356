"""Kernel utilities."""

from sourcing_kernel.utils.serialization import to_jsonable

__all__ = ["to_jsonable"]
