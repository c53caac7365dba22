"""
Channel policy -- the parameters that distinguish the four billing channels.

Responsibility:
    One settlement engine serves the regular, wholesale, product and gst
    channels.  Everything that differs between them (voucher prefix, labor
    formula, where net weight comes from, whether silver is priced into the
    bill, cash-for-silver treatment, silver returns, GST) is a field of a
    frozen ``ChannelPolicy``.  Policies are built by ``silver_config`` from
    YAML; nothing in the engine branches on a channel name.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Mapping

from silver_kernel.exceptions import UnknownChannelError


class LaborFormula(str, Enum):
    """Named labor-charge strategies (see ``formula.LABOR_FORMULAS``)."""

    GROSS_BASED = "gross_based"  # (gross / 1000) * rate_per_kg
    NET_BASED = "net_based"  # (net * rate_per_kg) / 1000


class NetWeightSource(str, Enum):
    """Where a line's net weight comes from."""

    DERIVED = "derived"  # always gross - stone, must be >= 0
    SUPPLIED = "supplied"  # caller value, defaults to gross - stone


class GstMode(str, Enum):
    """Whether GST can, must, or must not be charged on a channel."""

    NEVER = "never"
    OPTIONAL = "optional"
    MANDATORY = "mandatory"


DEFAULT_CGST_PERCENT = Decimal("1.5")
DEFAULT_SGST_PERCENT = Decimal("1.5")


@dataclass(frozen=True)
class SettlementTolerances:
    """A balance at or below these values counts as settled."""

    weight: Decimal = Decimal("0.005")
    cash: Decimal = Decimal("1")

    def __post_init__(self):
        if self.weight < 0 or self.cash < 0:
            raise ValueError("Settlement tolerances cannot be negative")


DEFAULT_TOLERANCES = SettlementTolerances()


@dataclass(frozen=True)
class GstRequest:
    """Caller's GST choice for one sale.  Unset percentages use the channel's rates."""

    applicable: bool = True
    cgst_percent: Decimal | None = None
    sgst_percent: Decimal | None = None


@dataclass(frozen=True)
class ChannelPolicy:
    """
    Immutable description of one billing channel.

    Guarantees:
        - voucher_prefix is non-empty, alphanumeric and upper-case.
        - cgst/sgst defaults are non-negative.
    """

    code: str
    voucher_prefix: str
    labor_formula: LaborFormula
    net_weight_source: NetWeightSource
    monetize_silver: bool
    cash_for_silver_offsets_cash: bool
    supports_silver_return: bool
    gst_mode: GstMode = GstMode.NEVER
    default_cgst_percent: Decimal = DEFAULT_CGST_PERCENT
    default_sgst_percent: Decimal = DEFAULT_SGST_PERCENT
    tolerances: SettlementTolerances = field(default_factory=SettlementTolerances)
    description: str = ""

    def __post_init__(self):
        if not self.code or not self.code.strip():
            raise ValueError("Channel code cannot be empty")
        prefix = self.voucher_prefix
        if not prefix or not prefix.isalnum() or prefix.upper() != prefix:
            raise ValueError(
                f"Voucher prefix for channel '{self.code}' must be upper-case "
                f"alphanumeric, got {prefix!r}"
            )
        if self.default_cgst_percent < 0 or self.default_sgst_percent < 0:
            raise ValueError(f"GST percentages for channel '{self.code}' cannot be negative")

    @property
    def requires_silver_rate(self) -> bool:
        return self.monetize_silver

    def resolve_gst(self, requested: GstRequest | None) -> GstRequest:
        """
        Apply the channel's GST mode to the caller's request.

        NEVER ignores the request; MANDATORY forces GST on; OPTIONAL defaults
        to off.  Percentages the caller leaves unset come from the channel.
        """
        if self.gst_mode is GstMode.NEVER:
            applicable = False
        elif self.gst_mode is GstMode.MANDATORY:
            applicable = True
        else:
            applicable = requested is not None and requested.applicable

        cgst = requested.cgst_percent if requested is not None else None
        sgst = requested.sgst_percent if requested is not None else None
        return GstRequest(
            applicable=applicable,
            cgst_percent=self.default_cgst_percent if cgst is None else cgst,
            sgst_percent=self.default_sgst_percent if sgst is None else sgst,
        )


def policy_for(policies: Mapping[str, ChannelPolicy], code: str) -> ChannelPolicy:
    """
    Look up a channel policy by code.

    Raises:
        UnknownChannelError: If ``code`` is not configured.
    """
    try:
        return policies[code]
    except KeyError:
        raise UnknownChannelError(code, tuple(sorted(policies))) from None
