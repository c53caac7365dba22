"""
Configuration schema -- frozen, string-typed mirror of ``channels.yaml``.

These dataclasses describe the file, not the engine.  ``bridges.py`` turns
them into kernel ``ChannelPolicy`` objects.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ChannelDefinition:
    code: str
    voucher_prefix: str
    labor_formula: str
    net_weight_source: str
    monetize_silver: bool
    cash_for_silver_offsets_cash: bool
    supports_silver_return: bool
    gst: str = "never"
    cgst_percent: str | None = None
    sgst_percent: str | None = None
    tolerance_weight: str | None = None
    tolerance_cash: str | None = None
    description: str = ""


@dataclass(frozen=True)
class ChannelConfigSet:
    version: int
    default_tolerance_weight: str
    default_tolerance_cash: str
    default_cgst_percent: str
    default_sgst_percent: str
    channels: tuple[ChannelDefinition, ...] = field(default_factory=tuple)
    checksum: str = ""
