"""
Sourcing Configuration Schema.

Defines the structure and defaults for RFQ/Bid sourcing settings.  Actual
values are loaded from a YAML configuration set at runtime.
"""

from dataclasses import dataclass, field, fields
from decimal import Decimal
from typing import Self

from sourcing_kernel.logging_config import get_logger

logger = get_logger("config.schema")

AUTO_TRANSITION_MODES = ("lazy", "sweep")


@dataclass(frozen=True)
class DefaultCriteriaWeights:
    """Weights applied to a new RFQ when the caller gives none."""
    technical: Decimal = Decimal("40")
    financial: Decimal = Decimal("60")
    delivery: Decimal = Decimal("0")
    quality: Decimal = Decimal("0")


@dataclass(frozen=True)
class SourcingConfig:
    """
    Configuration schema for the sourcing engine.

    Field defaults mirror long-standing behaviour of the RFQ process.
    Override at instantiation or through a YAML set:

        config = SourcingConfig.from_dict(load_yaml_file(path)["sourcing"])
    """

    # Criteria
    weight_tolerance: Decimal = Decimal("0.01")
    default_criteria: DefaultCriteriaWeights = field(default_factory=DefaultCriteriaWeights)

    # Bids
    compliance_threshold: Decimal = Decimal("80")
    default_validity_period_days: int = 30

    # Numbering
    rfq_prefix: str = "RFQ"
    bid_prefix: str = "BID"
    number_width: int = 4

    # Queries
    attention_window_days: int = 7
    expiring_bid_window_days: int = 7

    # Time-driven transitions: "lazy" (on load/save) or "sweep" (caller also
    # runs TimeTransitionSweep).  Lazy checks run in both modes.
    auto_transition_mode: str = "lazy"

    default_currency: str = "USD"

    def __post_init__(self):
        if self.auto_transition_mode not in AUTO_TRANSITION_MODES:
            raise ValueError(
                f"auto_transition_mode must be one of {AUTO_TRANSITION_MODES}, "
                f"got {self.auto_transition_mode!r}"
            )
        if self.number_width < 1:
            raise ValueError(f"number_width must be positive, got {self.number_width}")
        if self.weight_tolerance < 0:
            raise ValueError(f"weight_tolerance must be >= 0, got {self.weight_tolerance}")

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the standard defaults."""
        logger.info("sourcing_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from a dictionary (e.g. a parsed YAML set)."""
        logger.info(
            "sourcing_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ValueError(f"Unknown sourcing config keys: {unknown}")

        values = dict(data)
        for key in ("weight_tolerance", "compliance_threshold"):
            if key in values:
                values[key] = Decimal(str(values[key]))
        if "default_criteria" in values:
            raw = values["default_criteria"] or {}
            values["default_criteria"] = DefaultCriteriaWeights(
                **{k: Decimal(str(v)) for k, v in raw.items()}
            )
        return cls(**values)
