"""
Config -> kernel bridges.

Converts parsed ``ChannelDefinition`` entries into the kernel's frozen
``ChannelPolicy``.  These live in ``silver_config`` because the kernel never
imports configuration code.
"""

from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Mapping

from silver_config.schema import ChannelConfigSet, ChannelDefinition
from silver_kernel.domain.channel import (
    ChannelPolicy,
    GstMode,
    LaborFormula,
    NetWeightSource,
    SettlementTolerances,
)


def _decimal(code: str, name: str, value: str) -> Decimal:
    try:
        result = Decimal(value)
    except InvalidOperation:
        raise ValueError(f"Channel '{code}': {name} is not a number: {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"Channel '{code}': {name} must be finite")
    return result


def _enum(code: str, enum_cls, value: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValueError(
            f"Channel '{code}': {value!r} is not a valid {enum_cls.__name__} ({allowed})"
        ) from None


def build_channel_policy(defn: ChannelDefinition, config: ChannelConfigSet) -> ChannelPolicy:
    code = defn.code
    return ChannelPolicy(
        code=code,
        voucher_prefix=defn.voucher_prefix,
        labor_formula=_enum(code, LaborFormula, defn.labor_formula),
        net_weight_source=_enum(code, NetWeightSource, defn.net_weight_source),
        monetize_silver=defn.monetize_silver,
        cash_for_silver_offsets_cash=defn.cash_for_silver_offsets_cash,
        supports_silver_return=defn.supports_silver_return,
        gst_mode=_enum(code, GstMode, defn.gst),
        default_cgst_percent=_decimal(
            code, "cgst_percent", defn.cgst_percent or config.default_cgst_percent
        ),
        default_sgst_percent=_decimal(
            code, "sgst_percent", defn.sgst_percent or config.default_sgst_percent
        ),
        tolerances=SettlementTolerances(
            weight=_decimal(
                code, "tolerances.weight", defn.tolerance_weight or config.default_tolerance_weight
            ),
            cash=_decimal(
                code, "tolerances.cash", defn.tolerance_cash or config.default_tolerance_cash
            ),
        ),
        description=defn.description,
    )


def build_channel_policies(config: ChannelConfigSet) -> Mapping[str, ChannelPolicy]:
    """
    Build the read-only ``code -> ChannelPolicy`` mapping.

    Raises:
        ValueError: On invalid values or a voucher prefix shared by two
            channels (voucher numbers must stay globally unique).
    """
    policies = {defn.code: build_channel_policy(defn, config) for defn in config.channels}
    seen: dict[str, str] = {}
    for policy in policies.values():
        other = seen.setdefault(policy.voucher_prefix, policy.code)
        if other != policy.code:
            raise ValueError(
                f"Voucher prefix '{policy.voucher_prefix}' is used by both "
                f"'{other}' and '{policy.code}'"
            )
    return MappingProxyType(policies)
