"""
Channel configuration tests.

Loads the shipped channels.yaml and checks the per-channel decision table,
then exercises the strict parser and bridge on hand-written variants.
"""

from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from silver_config import get_channel_policies, get_channel_policy
from silver_config.bridges import build_channel_policies
from silver_config.loader import compute_checksum, parse_channel, parse_config_set
from silver_kernel.domain.channel import GstMode, LaborFormula, NetWeightSource
from silver_kernel.exceptions import UnknownChannelError


def _channel(**overrides):
    data = {
        "voucher_prefix": "EX",
        "labor_formula": "gross_based",
        "net_weight_source": "supplied",
        "monetize_silver": True,
        "cash_for_silver_offsets_cash": True,
        "supports_silver_return": False,
    }
    data.update(overrides)
    return data


class TestShippedChannels:
    def test_four_channels_configured(self, policies):
        assert set(policies) == {"regular", "wholesale", "product", "gst"}

    def test_prefixes(self, policies):
        assert {c: p.voucher_prefix for c, p in policies.items()} == {
            "regular": "REG",
            "wholesale": "WS",
            "product": "PB",
            "gst": "GST",
        }

    def test_regular_channel(self, policies):
        regular = policies["regular"]
        assert regular.labor_formula is LaborFormula.NET_BASED
        assert regular.net_weight_source is NetWeightSource.DERIVED
        assert regular.monetize_silver is False
        assert regular.gst_mode is GstMode.NEVER

    def test_wholesale_channel(self, policies):
        wholesale = policies["wholesale"]
        assert wholesale.supports_silver_return is True
        assert wholesale.cash_for_silver_offsets_cash is False
        assert wholesale.labor_formula is LaborFormula.GROSS_BASED

    def test_gst_channel_is_mandatory(self, policies):
        assert policies["gst"].gst_mode is GstMode.MANDATORY

    def test_default_tolerances_applied(self, policies):
        for policy in policies.values():
            assert policy.tolerances.weight == Decimal("0.005")
            assert policy.tolerances.cash == Decimal("1")

    def test_mapping_is_read_only(self, policies):
        with pytest.raises(TypeError):
            policies["export"] = policies["regular"]

    def test_get_channel_policy_unknown(self):
        with pytest.raises(UnknownChannelError):
            get_channel_policy("export")

    def test_load_logged(self, captured_logs):
        get_channel_policies()
        records = [r for r in captured_logs() if r["message"] == "channel_config_loaded"]
        assert records
        assert records[-1]["channels"] == ["gst", "product", "regular", "wholesale"]
        assert len(records[-1]["checksum"]) == 64


class TestParser:
    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="unknown key"):
            parse_channel("ex", _channel(monetise_silver=True))

    def test_missing_key_rejected(self):
        data = _channel()
        del data["voucher_prefix"]
        with pytest.raises(KeyError):
            parse_channel("ex", data)

    def test_non_bool_flag_rejected(self):
        with pytest.raises(ValueError, match="true/false"):
            parse_channel("ex", _channel(monetize_silver="yes please"))

    def test_empty_channels_rejected(self):
        with pytest.raises(ValueError):
            parse_config_set({"channels": {}})

    def test_checksum_is_key_order_independent(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})


class TestBridges:
    def test_channel_override_beats_defaults(self):
        config = parse_config_set({
            "defaults": {"tolerances": {"weight": "0.01"}},
            "channels": {"ex": _channel(tolerances={"cash": "2"}, cgst_percent="9")},
        })
        policy = build_channel_policies(config)["ex"]
        assert policy.tolerances.weight == Decimal("0.01")
        assert policy.tolerances.cash == Decimal("2")
        assert policy.default_cgst_percent == Decimal("9")
        assert policy.default_sgst_percent == Decimal("1.5")

    def test_bad_enum_value_rejected(self):
        config = parse_config_set({"channels": {"ex": _channel(labor_formula="per_piece")}})
        with pytest.raises(ValueError, match="LaborFormula"):
            build_channel_policies(config)

    def test_duplicate_prefix_rejected(self):
        config = parse_config_set({
            "channels": {"a": _channel(), "b": _channel()},
        })
        with pytest.raises(ValueError, match="used by both"):
            build_channel_policies(config)

    def test_override_file(self, tmp_path: Path):
        path = tmp_path / "channels.yaml"
        path.write_text(yaml.safe_dump({"version": 2, "channels": {"ex": _channel()}}))
        policies = get_channel_policies(path)
        assert list(policies) == ["ex"]
