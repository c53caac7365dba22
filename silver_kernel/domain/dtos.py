"""
DTOs -- immutable views returned across the service boundary.

Responsibility:
    Frozen dataclasses built from ORM rows by ``to_dto()`` on each model.
    Callers of the services and the ``LedgerEngine`` facade only ever see
    these, never live ORM entities.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from silver_kernel.domain.payments import EntryType
from silver_kernel.domain.status import SaleStatus, SilverReturnStatus


@dataclass(frozen=True)
class CustomerView:
    id: UUID
    name: str
    phone: str
    email: str | None
    address: str | None
    gst_number: str | None
    is_active: bool
    weight_balance: Decimal
    cash_balance: Decimal


@dataclass(frozen=True)
class SaleLineView:
    id: UUID
    line_number: int
    description: str
    pieces: int
    product_id: UUID | None
    gross_weight: Decimal
    stone_weight: Decimal
    net_weight: Decimal
    wastage_percent: Decimal
    touch_percent: Decimal
    labor_rate_per_unit: Decimal
    silver_weight: Decimal
    labor_charges: Decimal
    item_amount: Decimal


@dataclass(frozen=True)
class SaleView:
    """A sale with its totals, balance snapshots, settlement counters and status."""

    id: UUID
    voucher_number: str
    channel: str
    customer_id: UUID
    sale_date: date
    silver_rate: Decimal
    lines: tuple[SaleLineView, ...]
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
    previous_balance_weight: Decimal
    previous_balance_cash: Decimal
    closing_balance_weight: Decimal | None
    closing_balance_cash: Decimal | None
    paid_weight: Decimal
    paid_cash: Decimal
    silver_paid: Decimal
    cash_for_silver_weight: Decimal
    cash_for_silver_value: Decimal
    silver_to_return: Decimal
    silver_returned: Decimal
    silver_return_status: SilverReturnStatus
    remaining_weight: Decimal
    remaining_cash: Decimal
    status: SaleStatus
    notes: str | None


@dataclass(frozen=True)
class LedgerEntryView:
    id: UUID
    customer_id: UUID
    sale_id: UUID | None
    sequence: int
    entry_type: EntryType
    weight_delta: Decimal
    cash_delta: Decimal
    balance_weight_before: Decimal
    balance_weight_after: Decimal
    balance_cash_before: Decimal
    balance_cash_after: Decimal
    cash_amount: Decimal
    silver_rate: Decimal | None
    actor_id: UUID
    note: str | None
    occurred_at: datetime


@dataclass(frozen=True)
class SilverRateView:
    id: UUID
    rate_date: date
    rate_per_gram: Decimal
    is_active: bool


@dataclass(frozen=True)
class CustomerStatement:
    """Ledger entries for a customer over a window, with opening/closing balances."""

    customer: CustomerView
    start: datetime | None
    end: datetime | None
    opening_weight: Decimal
    opening_cash: Decimal
    entries: tuple[LedgerEntryView, ...]
    closing_weight: Decimal
    closing_cash: Decimal


@dataclass(frozen=True)
class BalanceCheck:
    """Stored customer balances compared with the sum of their ledger deltas."""

    customer_id: UUID
    stored_weight: Decimal
    stored_cash: Decimal
    ledger_weight: Decimal
    ledger_cash: Decimal
    entry_count: int

    @property
    def weight_difference(self) -> Decimal:
        return self.stored_weight - self.ledger_weight

    @property
    def cash_difference(self) -> Decimal:
        return self.stored_cash - self.ledger_cash

    @property
    def is_consistent(self) -> bool:
        return self.weight_difference == 0 and self.cash_difference == 0


@dataclass(frozen=True)
class StockItemView:
    id: UUID
    name: str
    pieces: int
    gross_weight: Decimal
    net_weight: Decimal
    touch: Decimal | None
    is_active: bool
