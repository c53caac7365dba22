"""
Customer -- the aggregate carrying both running balances.

``weight_balance`` and ``cash_balance`` are positive when the customer owes
the shop.  They are written only by the settlement, payment, reversal and
adjustment paths, always together with a ledger entry, so that the sum of a
customer's ledger deltas equals the stored balances.
"""

from decimal import Decimal

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from silver_kernel.db.base import TrackedBase
from silver_kernel.db.types import Money, Weight
from silver_kernel.domain.dtos import CustomerView


class Customer(TrackedBase):
    __tablename__ = "customers"

    __table_args__ = (
        UniqueConstraint("phone", name="uq_customers_phone"),
        Index("idx_customers_name", "name"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str] = mapped_column(String(20), nullable=False)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    gst_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    weight_balance: Mapped[Weight] = mapped_column(nullable=False, default=Decimal("0"))
    cash_balance: Mapped[Money] = mapped_column(nullable=False, default=Decimal("0"))

    # Last ledger sequence issued for this customer (see LedgerWriter)
    last_entry_sequence: Mapped[int] = mapped_column(nullable=False, default=0)

    def to_dto(self) -> CustomerView:
        return CustomerView(
            id=self.id,
            name=self.name,
            phone=self.phone,
            email=self.email,
            address=self.address,
            gst_number=self.gst_number,
            is_active=self.is_active,
            weight_balance=self.weight_balance,
            cash_balance=self.cash_balance,
        )

    def __repr__(self) -> str:
        return f"<Customer {self.phone} w={self.weight_balance} c={self.cash_balance}>"
