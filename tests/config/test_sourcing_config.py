"""
Tests for sourcing configuration loading.

Validates:
- Schema defaults and value checks
- from_dict conversions and unknown-key rejection
- get_active_config with the shipped set and with a custom YAML file
"""

from decimal import Decimal

import pytest
import yaml

from sourcing_config import DefaultCriteriaWeights, SourcingConfig, get_active_config
from sourcing_config.loader import compute_checksum, parse_sourcing_config


class TestSchema:

    def test_defaults(self):
        config = SourcingConfig()
        assert config.weight_tolerance == Decimal("0.01")
        assert config.default_criteria == DefaultCriteriaWeights()
        assert config.compliance_threshold == Decimal("80")
        assert config.default_validity_period_days == 30
        assert (config.rfq_prefix, config.bid_prefix, config.number_width) == ("RFQ", "BID", 4)
        assert config.auto_transition_mode == "lazy"

    def test_bad_mode(self):
        with pytest.raises(ValueError, match="auto_transition_mode"):
            SourcingConfig(auto_transition_mode="eager")

    def test_bad_width(self):
        with pytest.raises(ValueError):
            SourcingConfig(number_width=0)

    def test_from_dict_converts_decimals(self):
        config = SourcingConfig.from_dict({
            "weight_tolerance": 0.5,
            "compliance_threshold": "75",
            "default_criteria": {"technical": 30, "financial": 70},
        })
        assert config.weight_tolerance == Decimal("0.5")
        assert config.compliance_threshold == Decimal("75")
        assert config.default_criteria.technical == Decimal("30")
        assert config.default_criteria.quality == Decimal("0")

    def test_from_dict_rejects_unknown_keys(self):
        with pytest.raises(ValueError, match="Unknown sourcing config keys"):
            SourcingConfig.from_dict({"tolerance": 1})


class TestLoader:

    def test_missing_section_gives_defaults(self):
        assert parse_sourcing_config({"config_id": "empty"}) == SourcingConfig()

    def test_section_must_be_mapping(self):
        with pytest.raises(ValueError):
            parse_sourcing_config({"sourcing": ["not", "a", "mapping"]})

    def test_checksum_is_order_independent(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})


class TestActiveConfig:

    def test_shipped_set(self, captured_logs):
        config = get_active_config()
        assert config == SourcingConfig()

        [record] = [r for r in captured_logs() if r["message"] == "sourcing_config_loaded"]
        assert record["config_id"] == "sourcing-default"
        assert record["version"] == 1
        assert len(record["checksum"]) == 64

    def test_custom_file(self, tmp_path):
        path = tmp_path / "strict.yaml"
        path.write_text(yaml.safe_dump({
            "config_id": "strict",
            "version": 2,
            "sourcing": {
                "compliance_threshold": 95,
                "auto_transition_mode": "sweep",
                "default_currency": "GBP",
            },
        }))
        config = get_active_config(path)
        assert config.compliance_threshold == Decimal("95")
        assert config.auto_transition_mode == "sweep"
        assert config.default_currency == "GBP"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")
