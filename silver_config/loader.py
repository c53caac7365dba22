"""
YAML loading and parsing for channel configuration.

Parsing is strict: unknown keys and missing required keys fail loudly so
that a typo in ``channels.yaml`` cannot silently change billing behavior.

* Missing required key  -> ``KeyError``
* Unknown key / bad type -> ``ValueError``
* Malformed YAML         -> ``yaml.YAMLError`` propagates.
"""

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from silver_config.schema import ChannelConfigSet, ChannelDefinition

_CHANNEL_KEYS = frozenset({
    "description",
    "voucher_prefix",
    "labor_formula",
    "net_weight_source",
    "monetize_silver",
    "cash_for_silver_offsets_cash",
    "supports_silver_return",
    "gst",
    "cgst_percent",
    "sgst_percent",
    "tolerances",
})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _require_bool(code: str, data: dict[str, Any], key: str) -> bool:
    value = data[key]
    if not isinstance(value, bool):
        raise ValueError(f"Channel '{code}': {key} must be true/false, got {value!r}")
    return value


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)


def parse_channel(code: str, data: dict[str, Any]) -> ChannelDefinition:
    """Parse one entry of the ``channels`` mapping."""
    if not isinstance(data, dict):
        raise ValueError(f"Channel '{code}' must be a mapping")
    unknown = set(data) - _CHANNEL_KEYS
    if unknown:
        raise ValueError(f"Channel '{code}': unknown key(s) {sorted(unknown)}")
    tolerances = data.get("tolerances") or {}
    return ChannelDefinition(
        code=code,
        voucher_prefix=str(data["voucher_prefix"]),
        labor_formula=str(data["labor_formula"]),
        net_weight_source=str(data["net_weight_source"]),
        monetize_silver=_require_bool(code, data, "monetize_silver"),
        cash_for_silver_offsets_cash=_require_bool(code, data, "cash_for_silver_offsets_cash"),
        supports_silver_return=_require_bool(code, data, "supports_silver_return"),
        gst=str(data.get("gst", "never")),
        cgst_percent=_optional_str(data.get("cgst_percent")),
        sgst_percent=_optional_str(data.get("sgst_percent")),
        tolerance_weight=_optional_str(tolerances.get("weight")),
        tolerance_cash=_optional_str(tolerances.get("cash")),
        description=str(data.get("description", "")),
    )


def parse_config_set(data: dict[str, Any]) -> ChannelConfigSet:
    """Parse the whole file."""
    channels = data["channels"]
    if not isinstance(channels, dict) or not channels:
        raise ValueError("'channels' must be a non-empty mapping")
    defaults = data.get("defaults") or {}
    tolerances = defaults.get("tolerances") or {}
    gst = defaults.get("gst") or {}
    return ChannelConfigSet(
        version=int(data.get("version", 1)),
        default_tolerance_weight=str(tolerances.get("weight", "0.005")),
        default_tolerance_cash=str(tolerances.get("cash", "1")),
        default_cgst_percent=str(gst.get("cgst_percent", "1.5")),
        default_sgst_percent=str(gst.get("sgst_percent", "1.5")),
        channels=tuple(parse_channel(code, channels[code]) for code in sorted(channels)),
        checksum=compute_checksum(data),
    )


def load_config_set(path: Path) -> ChannelConfigSet:
    return parse_config_set(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
