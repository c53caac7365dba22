"""
Formula Engine -- pure per-line and per-sale computation.

Responsibility:
    Turns caller-supplied line inputs into fine-silver weight, labor charges
    and item amounts, and aggregates them into sale totals (with optional
    GST).  Knows nothing about customers, balances or persistence.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Formulas:
    silver_weight = (touch_percent + wastage_percent) * net_weight / 100
    labor (GROSS_BASED) = (gross_weight / 1000) * labor_rate_per_unit
    labor (NET_BASED)   = (net_weight * labor_rate_per_unit) / 1000
    item_amount = silver_weight * silver_rate + labor   (monetizing channels)
    item_amount = labor                                  (otherwise)

Rounding:
    Nothing here is rounded.  Weights go to 3 dp and money to 2 dp only when
    the settlement processor persists them; totals are sums of the exact
    line values, rounded once.

Failure modes:
    - InvalidLineError for negative weights/percents/rates, missing
      description, or stone heavier than gross on a DERIVED channel.
    - InvalidArgumentError for an empty line list or a bad silver rate.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Mapping, Sequence
from uuid import UUID

from silver_kernel.db.types import to_decimal
from silver_kernel.domain.channel import (
    ChannelPolicy,
    GstRequest,
    LaborFormula,
    NetWeightSource,
)
from silver_kernel.exceptions import InvalidArgumentError, InvalidLineError

ZERO = Decimal("0")
HUNDRED = Decimal("100")
THOUSAND = Decimal("1000")


@dataclass(frozen=True)
class LineInput:
    """One line item as entered on the bill."""

    description: str
    gross_weight: Decimal
    touch_percent: Decimal
    stone_weight: Decimal = ZERO
    net_weight: Decimal | None = None
    wastage_percent: Decimal = ZERO
    labor_rate_per_unit: Decimal = ZERO
    pieces: int = 1
    product_id: UUID | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LineInput":
        """Build from a loosely typed mapping (form or JSON payload)."""
        net = data.get("net_weight")
        product_id = data.get("product_id")
        return cls(
            description=str(data.get("description") or ""),
            gross_weight=to_decimal(data.get("gross_weight"), "gross_weight"),
            touch_percent=to_decimal(data.get("touch_percent"), "touch_percent"),
            stone_weight=to_decimal(data.get("stone_weight", 0), "stone_weight"),
            net_weight=None if net is None else to_decimal(net, "net_weight"),
            wastage_percent=to_decimal(data.get("wastage_percent", 0), "wastage_percent"),
            labor_rate_per_unit=to_decimal(data.get("labor_rate_per_unit", 0), "labor_rate_per_unit"),
            pieces=int(data.get("pieces", 1)),
            product_id=None if product_id is None else UUID(str(product_id)),
        )


@dataclass(frozen=True)
class ComputedLine:
    """A line after the formula engine has run.  All values are exact."""

    source: LineInput
    net_weight: Decimal
    wastage_weight: Decimal
    silver_weight: Decimal
    labor_charges: Decimal
    item_amount: Decimal


@dataclass(frozen=True)
class SaleTotals:
    """Aggregated, unrounded totals for a sale."""

    lines: tuple[ComputedLine, ...]
    total_net_weight: Decimal
    total_wastage: Decimal
    total_silver_weight: Decimal
    total_labor_charges: Decimal
    subtotal: Decimal
    gst_applicable: bool
    cgst_percent: Decimal
    sgst_percent: Decimal
    cgst: Decimal
    sgst: Decimal
    total_amount: Decimal


# ---------------------------------------------------------------------------
# Primitive formulas
# ---------------------------------------------------------------------------


def silver_weight(touch_percent: Decimal, wastage_percent: Decimal, net_weight: Decimal) -> Decimal:
    """Fine silver content of a line, in grams."""
    return (touch_percent + wastage_percent) * net_weight / HUNDRED


def _gross_based_labor(gross_weight: Decimal, net_weight: Decimal, rate: Decimal) -> Decimal:
    return (gross_weight / THOUSAND) * rate


def _net_based_labor(gross_weight: Decimal, net_weight: Decimal, rate: Decimal) -> Decimal:
    return (net_weight * rate) / THOUSAND


LaborFn = Callable[[Decimal, Decimal, Decimal], Decimal]

LABOR_FORMULAS: dict[LaborFormula, LaborFn] = {
    LaborFormula.GROSS_BASED: _gross_based_labor,
    LaborFormula.NET_BASED: _net_based_labor,
}


def labor_charges(
    formula: LaborFormula,
    gross_weight: Decimal,
    net_weight: Decimal,
    labor_rate_per_unit: Decimal,
) -> Decimal:
    """Labor for one line under the named strategy."""
    return LABOR_FORMULAS[formula](gross_weight, net_weight, labor_rate_per_unit)


# ---------------------------------------------------------------------------
# Line validation and computation
# ---------------------------------------------------------------------------


def _require_non_negative(index: int, name: str, value: Decimal) -> None:
    if value < ZERO:
        raise InvalidLineError(index, f"{name} cannot be negative (got {value})", field=name)


def _validate_line(index: int, line: LineInput) -> None:
    if not line.description or not line.description.strip():
        raise InvalidLineError(index, "description is required", field="description")
    if line.pieces < 0:
        raise InvalidLineError(index, f"pieces cannot be negative (got {line.pieces})", field="pieces")
    _require_non_negative(index, "gross_weight", line.gross_weight)
    _require_non_negative(index, "stone_weight", line.stone_weight)
    _require_non_negative(index, "touch_percent", line.touch_percent)
    _require_non_negative(index, "wastage_percent", line.wastage_percent)
    _require_non_negative(index, "labor_rate_per_unit", line.labor_rate_per_unit)
    if line.net_weight is not None:
        _require_non_negative(index, "net_weight", line.net_weight)


def resolve_net_weight(index: int, line: LineInput, source: NetWeightSource) -> Decimal:
    """Net weight for a line according to the channel's net-weight source."""
    derived = line.gross_weight - line.stone_weight
    if source is NetWeightSource.DERIVED:
        if derived < ZERO:
            raise InvalidLineError(
                index,
                f"stone_weight {line.stone_weight} exceeds gross_weight {line.gross_weight}",
                field="stone_weight",
            )
        return derived
    if line.net_weight is not None:
        return line.net_weight
    if derived < ZERO:
        raise InvalidLineError(
            index,
            "net_weight omitted and stone_weight exceeds gross_weight",
            field="net_weight",
        )
    return derived


def compute_line(
    index: int,
    line: LineInput,
    policy: ChannelPolicy,
    silver_rate: Decimal,
) -> ComputedLine:
    """Validate and compute a single line."""
    _validate_line(index, line)
    net = resolve_net_weight(index, line, policy.net_weight_source)
    silver = silver_weight(line.touch_percent, line.wastage_percent, net)
    labor = labor_charges(policy.labor_formula, line.gross_weight, net, line.labor_rate_per_unit)
    if policy.monetize_silver:
        amount = silver * silver_rate + labor
    else:
        amount = labor
    return ComputedLine(
        source=line,
        net_weight=net,
        wastage_weight=line.wastage_percent * net / HUNDRED,
        silver_weight=silver,
        labor_charges=labor,
        item_amount=amount,
    )


def validate_silver_rate(policy: ChannelPolicy, silver_rate: Decimal | None) -> Decimal:
    """
    Check the rate against the channel.  Monetizing channels need a
    positive rate; others accept None (treated as zero) or any
    non-negative value, which is recorded on the sale for reference.
    """
    if silver_rate is None:
        if policy.requires_silver_rate:
            raise InvalidArgumentError(
                f"A silver rate is required on channel '{policy.code}'",
                field="silver_rate",
            )
        return ZERO
    if silver_rate < ZERO:
        raise InvalidArgumentError(f"silver_rate cannot be negative (got {silver_rate})", field="silver_rate")
    if policy.requires_silver_rate and silver_rate == ZERO:
        raise InvalidArgumentError(
            f"silver_rate must be positive on channel '{policy.code}'",
            field="silver_rate",
        )
    return silver_rate


def compute_sale_totals(
    lines: Sequence[LineInput],
    policy: ChannelPolicy,
    silver_rate: Decimal | None,
    gst: GstRequest | None = None,
) -> SaleTotals:
    """
    Run the formula engine over every line and aggregate.

    Preconditions: at least one line.
    Postconditions: total_amount == subtotal + cgst + sgst, all unrounded.
    """
    if not lines:
        raise InvalidArgumentError("A sale needs at least one line item", field="lines")
    rate = validate_silver_rate(policy, silver_rate)
    effective_gst = policy.resolve_gst(gst)
    if effective_gst.cgst_percent < ZERO or effective_gst.sgst_percent < ZERO:
        raise InvalidArgumentError("GST percentages cannot be negative", field="gst")

    computed = tuple(compute_line(i, line, policy, rate) for i, line in enumerate(lines))

    subtotal = sum((c.item_amount for c in computed), ZERO)
    if effective_gst.applicable:
        cgst = subtotal * effective_gst.cgst_percent / HUNDRED
        sgst = subtotal * effective_gst.sgst_percent / HUNDRED
    else:
        cgst = sgst = ZERO

    return SaleTotals(
        lines=computed,
        total_net_weight=sum((c.net_weight for c in computed), ZERO),
        total_wastage=sum((c.wastage_weight for c in computed), ZERO),
        total_silver_weight=sum((c.silver_weight for c in computed), ZERO),
        total_labor_charges=sum((c.labor_charges for c in computed), ZERO),
        subtotal=subtotal,
        gst_applicable=effective_gst.applicable,
        cgst_percent=effective_gst.cgst_percent if effective_gst.applicable else ZERO,
        sgst_percent=effective_gst.sgst_percent if effective_gst.applicable else ZERO,
        cgst=cgst,
        sgst=sgst,
        total_amount=subtotal + cgst + sgst,
    )
