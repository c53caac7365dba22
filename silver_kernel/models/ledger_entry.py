"""
LedgerEntry -- append-only record of one balance movement.

Every change to a customer's balances writes exactly one entry carrying the
signed deltas and the before/after values of both balances.  Entries are
never updated.  They are deleted only when the sale they belong to is
reversed.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from silver_kernel.db.base import TrackedBase, UUIDString
from silver_kernel.db.types import Money, Rate, Weight
from silver_kernel.domain.dtos import LedgerEntryView
from silver_kernel.domain.payments import EntryType


class LedgerEntry(TrackedBase):
    __tablename__ = "ledger_entries"

    __table_args__ = (
        UniqueConstraint("customer_id", "sequence", name="uq_ledger_entries_customer_sequence"),
        Index("idx_ledger_entries_customer_occurred", "customer_id", "occurred_at"),
        Index("idx_ledger_entries_sale_id", "sale_id"),
        Index("idx_ledger_entries_entry_type", "entry_type"),
    )

    customer_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("customers.id"), nullable=False
    )
    sale_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("sales.id"), nullable=True
    )
    # Position in the customer's ledger; orders entries written in one transaction
    sequence: Mapped[int] = mapped_column(nullable=False)
    entry_type: Mapped[str] = mapped_column(String(30), nullable=False)

    weight_delta: Mapped[Weight] = mapped_column(nullable=False)
    cash_delta: Mapped[Money] = mapped_column(nullable=False)
    balance_weight_before: Mapped[Weight] = mapped_column(nullable=False)
    balance_weight_after: Mapped[Weight] = mapped_column(nullable=False)
    balance_cash_before: Mapped[Money] = mapped_column(nullable=False)
    balance_cash_after: Mapped[Money] = mapped_column(nullable=False)

    # Cash physically received (informational; may differ from cash_delta)
    cash_amount: Mapped[Money] = mapped_column(nullable=False, default=Decimal("0"))
    silver_rate: Mapped[Rate | None] = mapped_column(nullable=True)
    note: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @property
    def actor_id(self) -> UUID:
        return self.created_by_id

    def to_dto(self) -> LedgerEntryView:
        return LedgerEntryView(
            id=self.id,
            customer_id=self.customer_id,
            sale_id=self.sale_id,
            sequence=self.sequence,
            entry_type=EntryType(self.entry_type),
            weight_delta=self.weight_delta,
            cash_delta=self.cash_delta,
            balance_weight_before=self.balance_weight_before,
            balance_weight_after=self.balance_weight_after,
            balance_cash_before=self.balance_cash_before,
            balance_cash_after=self.balance_cash_after,
            cash_amount=self.cash_amount,
            silver_rate=self.silver_rate,
            actor_id=self.created_by_id,
            note=self.note,
            occurred_at=self.occurred_at,
        )

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry {self.entry_type} dw={self.weight_delta} dc={self.cash_delta}>"
        )
