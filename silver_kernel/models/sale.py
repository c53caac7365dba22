"""
Sale and SaleLineItem -- one bill and its lines.

Snapshots (``previous_balance_*``, ``closing_balance_*``) record the
customer's balances around the sale's creation-time ledger entries and are
frozen once written (see ``db/immutability.py``).  Settlement counters
(``paid_*``, ``silver_*``, ``cash_for_silver_*``) and the remaining balances
move only through the payment processor.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from silver_kernel.db.base import TrackedBase, UUIDString
from silver_kernel.db.types import Money, Percent, Rate, Weight
from silver_kernel.domain.dtos import SaleLineView, SaleView
from silver_kernel.domain.status import SaleStatus, SilverReturnStatus

ZERO = Decimal("0")


class Sale(TrackedBase):
    __tablename__ = "sales"

    __table_args__ = (
        UniqueConstraint("voucher_number", name="uq_sales_voucher_number"),
        Index("idx_sales_customer_id", "customer_id"),
        Index("idx_sales_channel_date", "channel", "sale_date"),
        Index("idx_sales_status", "status"),
    )

    voucher_number: Mapped[str] = mapped_column(String(30), nullable=False)
    channel: Mapped[str] = mapped_column(String(20), nullable=False)
    customer_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("customers.id"), nullable=False
    )
    sale_date: Mapped[date] = mapped_column(Date, nullable=False)
    silver_rate: Mapped[Rate] = mapped_column(nullable=False, default=ZERO)

    # Totals
    total_net_weight: Mapped[Weight] = mapped_column(nullable=False, default=ZERO)
    total_wastage: Mapped[Weight] = mapped_column(nullable=False, default=ZERO)
    total_silver_weight: Mapped[Weight] = mapped_column(nullable=False, default=ZERO)
    total_labor_charges: Mapped[Money] = mapped_column(nullable=False, default=ZERO)
    subtotal: Mapped[Money] = mapped_column(nullable=False, default=ZERO)
    gst_applicable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cgst_percent: Mapped[Percent] = mapped_column(nullable=False, default=ZERO)
    sgst_percent: Mapped[Percent] = mapped_column(nullable=False, default=ZERO)
    cgst: Mapped[Money] = mapped_column(nullable=False, default=ZERO)
    sgst: Mapped[Money] = mapped_column(nullable=False, default=ZERO)
    total_amount: Mapped[Money] = mapped_column(nullable=False, default=ZERO)

    # Balance snapshots
    previous_balance_weight: Mapped[Weight] = mapped_column(nullable=False)
    previous_balance_cash: Mapped[Money] = mapped_column(nullable=False)
    closing_balance_weight: Mapped[Weight | None] = mapped_column(nullable=True)
    closing_balance_cash: Mapped[Money | None] = mapped_column(nullable=True)

    # Settlement counters
    paid_weight: Mapped[Weight] = mapped_column(nullable=False, default=ZERO)
    paid_cash: Mapped[Money] = mapped_column(nullable=False, default=ZERO)
    silver_paid: Mapped[Weight] = mapped_column(nullable=False, default=ZERO)
    cash_for_silver_weight: Mapped[Weight] = mapped_column(nullable=False, default=ZERO)
    cash_for_silver_value: Mapped[Money] = mapped_column(nullable=False, default=ZERO)
    silver_to_return: Mapped[Weight] = mapped_column(nullable=False, default=ZERO)
    silver_returned: Mapped[Weight] = mapped_column(nullable=False, default=ZERO)
    silver_return_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SilverReturnStatus.NOT_APPLICABLE.value
    )
    remaining_weight: Mapped[Weight] = mapped_column(nullable=False, default=ZERO)
    remaining_cash: Mapped[Money] = mapped_column(nullable=False, default=ZERO)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SaleStatus.PENDING.value
    )
    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    lines: Mapped[list["SaleLineItem"]] = relationship(
        back_populates="sale",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="SaleLineItem.line_number",
    )

    def to_dto(self) -> SaleView:
        return SaleView(
            id=self.id,
            voucher_number=self.voucher_number,
            channel=self.channel,
            customer_id=self.customer_id,
            sale_date=self.sale_date,
            silver_rate=self.silver_rate,
            lines=tuple(line.to_dto() for line in self.lines),
            total_net_weight=self.total_net_weight,
            total_wastage=self.total_wastage,
            total_silver_weight=self.total_silver_weight,
            total_labor_charges=self.total_labor_charges,
            subtotal=self.subtotal,
            gst_applicable=self.gst_applicable,
            cgst_percent=self.cgst_percent,
            sgst_percent=self.sgst_percent,
            cgst=self.cgst,
            sgst=self.sgst,
            total_amount=self.total_amount,
            previous_balance_weight=self.previous_balance_weight,
            previous_balance_cash=self.previous_balance_cash,
            closing_balance_weight=self.closing_balance_weight,
            closing_balance_cash=self.closing_balance_cash,
            paid_weight=self.paid_weight,
            paid_cash=self.paid_cash,
            silver_paid=self.silver_paid,
            cash_for_silver_weight=self.cash_for_silver_weight,
            cash_for_silver_value=self.cash_for_silver_value,
            silver_to_return=self.silver_to_return,
            silver_returned=self.silver_returned,
            silver_return_status=SilverReturnStatus(self.silver_return_status),
            remaining_weight=self.remaining_weight,
            remaining_cash=self.remaining_cash,
            status=SaleStatus(self.status),
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return f"<Sale {self.voucher_number} {self.status}>"


class SaleLineItem(TrackedBase):
    __tablename__ = "sale_line_items"

    __table_args__ = (
        UniqueConstraint("sale_id", "line_number", name="uq_sale_line_items_sale_line"),
        Index("idx_sale_line_items_product_id", "product_id"),
    )

    sale_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("sales.id"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    pieces: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # Not a foreign key: lines may name products the inventory no longer tracks.
    product_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    gross_weight: Mapped[Weight] = mapped_column(nullable=False)
    stone_weight: Mapped[Weight] = mapped_column(nullable=False, default=ZERO)
    net_weight: Mapped[Weight] = mapped_column(nullable=False)
    wastage_percent: Mapped[Percent] = mapped_column(nullable=False, default=ZERO)
    touch_percent: Mapped[Percent] = mapped_column(nullable=False)
    labor_rate_per_unit: Mapped[Rate] = mapped_column(nullable=False, default=ZERO)
    silver_weight: Mapped[Weight] = mapped_column(nullable=False)
    labor_charges: Mapped[Money] = mapped_column(nullable=False)
    item_amount: Mapped[Money] = mapped_column(nullable=False)

    sale: Mapped["Sale"] = relationship(back_populates="lines")

    def to_dto(self) -> SaleLineView:
        return SaleLineView(
            id=self.id,
            line_number=self.line_number,
            description=self.description,
            pieces=self.pieces,
            product_id=self.product_id,
            gross_weight=self.gross_weight,
            stone_weight=self.stone_weight,
            net_weight=self.net_weight,
            wastage_percent=self.wastage_percent,
            touch_percent=self.touch_percent,
            labor_rate_per_unit=self.labor_rate_per_unit,
            silver_weight=self.silver_weight,
            labor_charges=self.labor_charges,
            item_amount=self.item_amount,
        )
