"""
Status Resolver -- derived payment status of a sale.

Status is a pure function of the sale's two remaining balances and whether
any settlement event exists in its ledger history.  It is recomputed from
scratch after every mutation and never read back as an input, so the same
final state always yields the same status no matter how it was reached.
"""

from decimal import Decimal
from enum import Enum

from silver_kernel.domain.channel import DEFAULT_TOLERANCES, SettlementTolerances

ZERO = Decimal("0")


class SaleStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class SilverReturnStatus(str, Enum):
    NOT_APPLICABLE = "na"
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETED = "completed"


def is_settled(
    weight_balance: Decimal,
    cash_balance: Decimal,
    tolerances: SettlementTolerances = DEFAULT_TOLERANCES,
) -> bool:
    """Both balances at or below tolerance.  Overpayment counts as settled."""
    return weight_balance <= tolerances.weight and cash_balance <= tolerances.cash


def resolve_status(
    weight_balance: Decimal,
    cash_balance: Decimal,
    any_payment_made: bool,
    tolerances: SettlementTolerances = DEFAULT_TOLERANCES,
) -> SaleStatus:
    """
    paid    -- both balances within tolerance
    partial -- not settled, at least one payment recorded
    pending -- not settled, no payment ever recorded
    """
    if is_settled(weight_balance, cash_balance, tolerances):
        return SaleStatus.PAID
    if any_payment_made:
        return SaleStatus.PARTIAL
    return SaleStatus.PENDING


def resolve_silver_return_status(
    silver_to_return: Decimal,
    silver_returned: Decimal,
    tolerance: Decimal = ZERO,
) -> SilverReturnStatus:
    """Progress of the wholesale silver-return obligation."""
    if silver_to_return <= ZERO:
        return SilverReturnStatus.NOT_APPLICABLE
    if silver_returned <= ZERO:
        return SilverReturnStatus.PENDING
    if silver_to_return - silver_returned <= tolerance:
        return SilverReturnStatus.COMPLETED
    return SilverReturnStatus.PARTIAL
