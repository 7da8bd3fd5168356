"""
Document numbering (``sourcing_kernel.domain.numbering``).

Pure helpers for year-scoped document numbers of the form
``<KIND>-<YYYY>-<NNNN>`` (``RFQ-2024-0007``, ``BID-2024-0132``).

The sequence is the highest existing sequence under the prefix plus one.
Padding is a minimum width: sequence 10000 renders as ``RFQ-2024-10000``.
"""

from datetime import datetime

DEFAULT_WIDTH = 4


def year_prefix(kind: str, now: datetime) -> str:
    """Prefix for documents created at ``now``: ``"RFQ-2024-"``."""
    return f"{kind.upper()}-{now.year}-"


def parse_sequence(number: str | None) -> int:
    """
    Extract the trailing sequence from a document number.

    Unparseable or missing numbers count as sequence 0.
    """
    if not number:
        return 0
    parts = number.split("-")
    if len(parts) < 3:
        return 0
    try:
        return int(parts[2])
    except ValueError:
        return 0


def format_number(prefix: str, sequence: int, width: int = DEFAULT_WIDTH) -> str:
    """``format_number("RFQ-2024-", 7) == "RFQ-2024-0007"``."""
    if sequence < 1:
        raise ValueError(f"sequence must be positive, got {sequence}")
    return f"{prefix}{sequence:0{width}d}"


def next_number(prefix: str, last_number: str | None, width: int = DEFAULT_WIDTH) -> str:
    """Number following ``last_number`` under ``prefix``."""
    return format_number(prefix, parse_sequence(last_number) + 1, width)
